"""Relational persistence of Kafka requests.

All reads exclude soft-deleted rows. Writes are field-scoped ``UPDATE``
statements so concurrent writers touching different columns of the same row
(preparation vs. reconciler status updates) never overwrite each other.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, func, select, text, update
from sqlalchemy.orm import Session, sessionmaker

from fleet_manager.db.models import KafkaRequest, KafkaStatus, utcnow
from fleet_manager.db.queryparser import DBQuery

ORDERABLE_COLUMNS = frozenset(
    {
        "id",
        "name",
        "owner",
        "region",
        "cloud_provider",
        "status",
        "organisation_id",
        "cluster_id",
        "created_at",
        "updated_at",
    }
)


class RecordNotFound(LookupError):
    """Raised when no live row matches a lookup."""


class InvalidOrderBy(ValueError):
    """Raised for an order-by argument naming an unknown column or direction."""


@dataclass(frozen=True)
class Scope:
    """Row visibility filter for a caller: by owner or by organisation."""

    owner: str | None = None
    organisation_id: str | None = None


@dataclass
class Page:
    items: list[KafkaRequest]
    page: int
    size: int
    total: int


def parse_order_by(order_by: Iterable[str]) -> list[ColumnElement[Any]]:
    """Translate ``["name asc", "created_at desc"]`` into ORDER BY clauses."""
    clauses: list[ColumnElement[Any]] = []
    for arg in order_by:
        parts = arg.strip().split()
        if not parts or len(parts) > 2:
            msg = f"invalid order by argument: {arg!r}"
            raise InvalidOrderBy(msg)
        column_name = parts[0].lower()
        direction = parts[1].lower() if len(parts) == 2 else "asc"
        if column_name not in ORDERABLE_COLUMNS or direction not in ("asc", "desc"):
            msg = f"invalid order by argument: {arg!r}"
            raise InvalidOrderBy(msg)
        column = getattr(KafkaRequest, column_name)
        clauses.append(column.asc() if direction == "asc" else column.desc())
    return clauses


class KafkaRequestStore:
    """Data access for the ``kafka_requests`` table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _live() -> ColumnElement[bool]:
        return KafkaRequest.deleted_at.is_(None)

    @staticmethod
    def _scoped(scope: Scope) -> list[ColumnElement[bool]]:
        filters: list[ColumnElement[bool]] = []
        if scope.organisation_id is not None:
            filters.append(KafkaRequest.organisation_id == scope.organisation_id)
        if scope.owner is not None:
            filters.append(KafkaRequest.owner == scope.owner)
        return filters

    # -- reads -----------------------------------------------------------------

    def count(self) -> int:
        with self._session() as session:
            stmt = select(func.count()).select_from(KafkaRequest).where(self._live())
            return int(session.execute(stmt).scalar_one())

    def get(self, kafka_id: str, scope: Scope | None = None) -> KafkaRequest:
        stmt = select(KafkaRequest).where(KafkaRequest.id == kafka_id, self._live())
        if scope is not None:
            stmt = stmt.where(*self._scoped(scope))
        with self._session() as session:
            row = session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFound(kafka_id)
        return row

    def list_by_status(self, statuses: Sequence[KafkaStatus]) -> list[KafkaRequest]:
        stmt = select(KafkaRequest).where(
            KafkaRequest.status.in_([s.value for s in statuses]), self._live()
        )
        with self._session() as session:
            return list(session.execute(stmt).scalars())

    def list_for_cluster(
        self,
        cluster_id: str,
        statuses: Sequence[KafkaStatus],
        *,
        require_sso_client: bool,
    ) -> list[KafkaRequest]:
        stmt = select(KafkaRequest).where(
            KafkaRequest.cluster_id == cluster_id,
            KafkaRequest.status.in_([s.value for s in statuses]),
            KafkaRequest.bootstrap_server_host != "",
            self._live(),
        )
        if require_sso_client:
            stmt = stmt.where(
                KafkaRequest.sso_client_id != "",
                KafkaRequest.sso_client_secret != "",
            )
        with self._session() as session:
            return list(session.execute(stmt).scalars())

    def count_by_status(self, statuses: Sequence[KafkaStatus]) -> dict[str, int]:
        stmt = (
            select(KafkaRequest.status, func.count())
            .where(KafkaRequest.status.in_([s.value for s in statuses]), self._live())
            .group_by(KafkaRequest.status)
        )
        with self._session() as session:
            return {status: int(count) for status, count in session.execute(stmt)}

    def list_page(
        self,
        scope: Scope,
        *,
        page: int,
        size: int,
        search: DBQuery | None = None,
        order_by: Sequence[str] = (),
    ) -> Page:
        """Return one page of scoped rows plus the total matching row count.

        ``size`` is clamped down to the total when it exceeds it.
        """
        filters = [self._live(), *self._scoped(scope)]
        if search is not None:
            filters.append(text(f"({search.query})").bindparams(**search.values))
        ordering = parse_order_by(order_by) if order_by else [KafkaRequest.name.asc()]

        with self._session() as session:
            total_stmt = select(func.count()).select_from(KafkaRequest).where(*filters)
            total = int(session.execute(total_stmt).scalar_one())
            size = min(size, total)
            stmt = (
                select(KafkaRequest)
                .where(*filters)
                .order_by(*ordering)
                .offset(max(page - 1, 0) * size)
                .limit(size)
            )
            items = list(session.execute(stmt).scalars())
        return Page(items=items, page=page, size=size, total=total)

    # -- writes ----------------------------------------------------------------

    def insert(self, request: KafkaRequest) -> KafkaRequest:
        with self._session() as session:
            session.add(request)
            session.flush()
            session.refresh(request)
        return request

    def update_fields(
        self,
        kafka_id: str,
        fields: dict[str, Any],
        *,
        skip_statuses: Sequence[KafkaStatus] = (),
        only_statuses: Sequence[KafkaStatus] = (),
    ) -> int:
        """Update only *fields* on a live row; returns the affected row count."""
        stmt = (
            update(KafkaRequest)
            .where(KafkaRequest.id == kafka_id, self._live())
            .values(**fields, updated_at=utcnow())
        )
        if skip_statuses:
            stmt = stmt.where(KafkaRequest.status.not_in([s.value for s in skip_statuses]))
        if only_statuses:
            stmt = stmt.where(KafkaRequest.status.in_([s.value for s in only_statuses]))
        with self._session() as session:
            return session.execute(stmt).rowcount

    def update_status(
        self,
        kafka_id: str,
        status: KafkaStatus,
        *,
        expected_status: KafkaStatus | None = None,
    ) -> int:
        """Set the status, optionally only while the row is still in *expected_status*."""
        stmt = (
            update(KafkaRequest)
            .where(KafkaRequest.id == kafka_id, self._live())
            .values(status=status.value, updated_at=utcnow())
        )
        if expected_status is not None:
            stmt = stmt.where(KafkaRequest.status == expected_status.value)
        with self._session() as session:
            return session.execute(stmt).rowcount

    def bulk_update_status(
        self,
        status: KafkaStatus,
        *,
        skip_statuses: Sequence[KafkaStatus],
        owners: Sequence[str] | None = None,
        created_before: datetime | None = None,
        exclude_ids: Sequence[str] = (),
    ) -> int:
        """Move every matching live row to *status*; returns the affected row count."""
        stmt = update(KafkaRequest).where(
            self._live(),
            KafkaRequest.status.not_in([s.value for s in skip_statuses]),
        )
        if owners is not None:
            stmt = stmt.where(KafkaRequest.owner.in_(list(owners)))
        if created_before is not None:
            stmt = stmt.where(KafkaRequest.created_at <= created_before)
        if exclude_ids:
            stmt = stmt.where(KafkaRequest.id.not_in(list(exclude_ids)))
        stmt = stmt.values(status=status.value, updated_at=utcnow()).execution_options(
            synchronize_session=False
        )
        with self._session() as session:
            return session.execute(stmt).rowcount

    def soft_delete(self, kafka_id: str) -> int:
        stmt = (
            update(KafkaRequest)
            .where(KafkaRequest.id == kafka_id, self._live())
            .values(deleted_at=utcnow())
        )
        with self._session() as session:
            return session.execute(stmt).rowcount
