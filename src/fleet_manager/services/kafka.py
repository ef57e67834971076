"""Kafka request lifecycle service.

Keeps the request store, the quota authority, the identity provider and the
DNS authority consistent with the advertised status of each Kafka request.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import structlog

from fleet_manager.auth import Identity, require_identity
from fleet_manager.clients.keycloak import IdentityRegistry
from fleet_manager.clients.placement import ClusterPlacement
from fleet_manager.clients.quota import QuotaService
from fleet_manager.config.models import KafkaConfig
from fleet_manager.db.models import (
    DELETION_STATUSES,
    MANAGED_CR_STATUSES,
    PREPARABLE_STATUSES,
    KafkaRequest,
    KafkaStatus,
    is_transition_allowed,
    utcnow,
)
from fleet_manager.db.queryparser import DBQuery, QueryParseError, parse_search
from fleet_manager.db.store import InvalidOrderBy, KafkaRequestStore, RecordNotFound, Scope
from fleet_manager.dns.records import DNSRecordManager, RecordAction
from fleet_manager.errors import (
    FailedToChangeDNSRecordsError,
    FailedToCheckQuotaError,
    FailedToCreateSSOClientError,
    FailedToDeleteSSOClientError,
    FailedToParseSearchError,
    GeneralError,
    InsufficientQuotaError,
    NotFoundError,
    ServiceError,
    TooManyInstancesError,
    ValidationError,
)
from fleet_manager.observability import metrics
from fleet_manager.observability.metrics import KafkaOperation
from fleet_manager.services.managed_kafka import ManagedKafka, build_managed_kafka_cr
from fleet_manager.services.naming import (
    InvalidHostName,
    build_kafka_host_label,
    build_keycloak_client_name,
    build_namespace_name,
    to_managed_ingress,
)

logger = structlog.get_logger()

# Compare-and-set retries before a status write gives up.
_STATUS_WRITE_ATTEMPTS = 3


@dataclass
class ListArguments:
    page: int = 1
    size: int = 100
    search: str = ""
    order_by: list[str] = field(default_factory=list)


@dataclass
class PagingMeta:
    page: int
    size: int
    total: int


@dataclass
class KafkaStatusCount:
    status: KafkaStatus
    count: int


@contextmanager
def _wrap_errors(reason: str, **context: Any) -> Iterator[None]:
    """Re-raise unexpected failures as GeneralError with a stable public reason."""
    try:
        yield
    except ServiceError:
        raise
    except Exception as exc:
        logger.error("kafka.operation_failed", reason=reason, error=str(exc), **context)
        raise GeneralError(reason, cause=exc) from exc


def _status_rejection(kafka_id: str, current: KafkaStatus, new: KafkaStatus) -> str | None:
    if current == KafkaStatus.DEPROVISION and new != KafkaStatus.DELETING:
        return "cluster is deprovisioning"
    if current == new:
        return f"the cluster {kafka_id} is already in {new.value} state"
    if not is_transition_allowed(current, new):
        return f"transition from {current.value} to {new.value} is not allowed"
    return None


class KafkaService:
    """Lifecycle controller for Kafka requests.

    Only admission is serialized in-process; every other operation relies on
    the store's row-scoped updates for consistency.
    """

    def __init__(
        self,
        store: KafkaRequestStore,
        placement: ClusterPlacement,
        identity_registry: IdentityRegistry,
        quota_service: QuotaService,
        dns_manager: DNSRecordManager,
        kafka_config: KafkaConfig,
        *,
        query_parser: Callable[[str], DBQuery] = parse_search,
    ) -> None:
        self._store = store
        self._placement = placement
        self._identity_registry = identity_registry
        self._quota_service = quota_service
        self._dns_manager = dns_manager
        self._kafka_config = kafka_config
        self._query_parser = query_parser
        self._admission_lock = threading.Lock()

    @property
    def _auth_enabled(self) -> bool:
        return self._identity_registry.get_config().enable_authentication_on_kafka

    # -- admission -------------------------------------------------------------

    def has_available_capacity(self) -> bool:
        max_capacity = self._kafka_config.capacity.max_capacity
        with _wrap_errors("failed to count kafka request"):
            count = self._store.count()
        logger.info("kafka.capacity", count=count, max_capacity=max_capacity)
        return count < max_capacity

    def register_kafka_job(self, request: KafkaRequest) -> KafkaRequest:
        """Admit a new Kafka request in ``accepted`` status."""
        if not request.name or not request.owner:
            raise ValidationError("kafka request name and owner are required")

        metrics.increase_total_operations(KafkaOperation.CREATE)
        with self._admission_lock:
            try:
                has_capacity = self.has_available_capacity()
            except ServiceError as exc:
                raise GeneralError("failed to create kafka request", cause=exc) from exc
            if not has_capacity:
                logger.warning(
                    "kafka.capacity_exhausted",
                    max_capacity=self._kafka_config.capacity.max_capacity,
                )
                raise TooManyInstancesError("cluster capacity exhausted")

            if self._kafka_config.enable_quota_service:
                self._check_quota(request)

            request.version = self._kafka_config.default_kafka_version
            request.status = KafkaStatus.ACCEPTED.value
            with _wrap_errors("failed to create kafka request", owner=request.owner):
                request = self._store.insert(request)

        metrics.increase_success_operations(KafkaOperation.CREATE)
        metrics.update_status_since_created(
            KafkaStatus.ACCEPTED,
            request.id,
            request.cluster_id,
            utcnow() - request.created_at,
        )
        logger.info("kafka.admitted", kafka_id=request.id, owner=request.owner)
        return request

    def _check_quota(self, request: KafkaRequest) -> None:
        try:
            allowed, _ = self._quota_service.reserve_quota(
                self._kafka_config.quota_product_id,
                request.cluster_id,
                str(uuid.uuid4()),
                request.owner,
                False,
                self._kafka_config.quota_availability_zone,
            )
        except Exception as exc:
            logger.error("kafka.quota_check_failed", owner=request.owner, error=str(exc))
            raise FailedToCheckQuotaError(
                "failed to create kafka request", cause=exc
            ) from exc
        if not allowed:
            logger.info("kafka.quota_denied", owner=request.owner)
            raise InsufficientQuotaError("Insufficient Quota")

    def service_status(self) -> dict[str, bool]:
        return {"max_capacity_reached": not self.has_available_capacity()}

    # -- preparation -----------------------------------------------------------

    def _managed_ingress(self, cluster_id: str) -> str:
        with _wrap_errors("error retrieving cluster DNS", cluster_id=cluster_id):
            cluster_dns = self._placement.get_cluster_dns(cluster_id)
        return to_managed_ingress(cluster_dns)

    def prepare_kafka_request(self, request: KafkaRequest) -> None:
        """Assign the bootstrap host and identity client, then move to provisioning.

        Any failure leaves the stored status untouched so the call can be retried.
        """
        if not request.cluster_id:
            raise ValidationError("cluster id is undefined")
        try:
            host_label = build_kafka_host_label(request.name, request.id)
        except InvalidHostName as exc:
            logger.error("kafka.invalid_host", kafka_id=request.id, error=str(exc))
            raise GeneralError("generated host is not valid", cause=exc) from exc

        cluster_dns = self._managed_ingress(request.cluster_id)
        bootstrap_host = f"{host_label}.{cluster_dns}"

        external = self._kafka_config.enable_kafka_external_certificate
        if external:
            bootstrap_host = f"{host_label}.{self._kafka_config.kafka_domain_name}"
        request.bootstrap_server_host = bootstrap_host
        if external:
            self.change_kafka_cname_records(request, cluster_dns, RecordAction.CREATE)

        if self._auth_enabled:
            client_id = build_keycloak_client_name(request.id)
            try:
                secret = self._identity_registry.register_kafka_client(
                    client_id, request.organisation_id
                )
            except Exception as exc:
                logger.error(
                    "kafka.sso_client_create_failed",
                    kafka_id=request.id,
                    client_id=client_id,
                    error=str(exc),
                )
                raise FailedToCreateSSOClientError(
                    f"failed to create sso client {client_id}", cause=exc
                ) from exc
            request.sso_client_id = client_id
            request.sso_client_secret = secret

        fields = {
            "bootstrap_server_host": request.bootstrap_server_host,
            "sso_client_id": request.sso_client_id,
            "sso_client_secret": request.sso_client_secret,
            "status": KafkaStatus.PROVISIONING.value,
        }
        with _wrap_errors("failed to update kafka request", kafka_id=request.id):
            updated = self._store.update_fields(
                request.id, fields, only_statuses=PREPARABLE_STATUSES
            )
        if updated:
            request.status = KafkaStatus.PROVISIONING.value
            logger.info(
                "kafka.prepared",
                kafka_id=request.id,
                bootstrap_server_host=request.bootstrap_server_host,
            )
        else:
            logger.warning("kafka.prepare_skipped", kafka_id=request.id)

    def change_kafka_cname_records(
        self, request: KafkaRequest, cluster_dns: str, action: RecordAction
    ) -> dict[str, Any]:
        try:
            return self._dns_manager.change_records(
                request.bootstrap_server_host, cluster_dns, action
            )
        except Exception as exc:
            logger.error(
                "kafka.dns_change_failed",
                kafka_id=request.id,
                action=action.value,
                error=str(exc),
            )
            raise FailedToChangeDNSRecordsError(
                "Unable to change domain record sets", cause=exc
            ) from exc

    # -- retrieval -------------------------------------------------------------

    @staticmethod
    def _scope_for(identity: Identity) -> Scope:
        if identity.filter_by_organisation:
            return Scope(organisation_id=identity.org_id)
        return Scope(owner=identity.username)

    def _find(self, kafka_id: str, scope: Scope | None = None) -> KafkaRequest:
        with _wrap_errors("unable to get kafka request", kafka_id=kafka_id):
            try:
                return self._store.get(kafka_id, scope)
            except RecordNotFound as exc:
                raise NotFoundError(
                    f"KafkaResource with id='{kafka_id}' not found", cause=exc
                ) from exc

    def get(self, identity: Identity | None, kafka_id: str) -> KafkaRequest:
        """Fetch a Kafka request visible to *identity*."""
        if not kafka_id:
            raise ValidationError("id is undefined")
        identity = require_identity(identity)
        return self._find(kafka_id, self._scope_for(identity))

    def get_by_id(self, kafka_id: str) -> KafkaRequest:
        """Fetch a Kafka request without any caller scoping."""
        if not kafka_id:
            raise ValidationError("id is undefined")
        return self._find(kafka_id)

    def list(
        self, identity: Identity | None, list_args: ListArguments
    ) -> tuple[list[KafkaRequest], PagingMeta]:
        identity = require_identity(identity)
        search: DBQuery | None = None
        if list_args.search:
            try:
                search = self._query_parser(list_args.search)
            except QueryParseError as exc:
                raise FailedToParseSearchError(
                    f"Unable to list kafka requests for {identity.username}: {exc}",
                    cause=exc,
                ) from exc
        with _wrap_errors("Unable to list kafka requests"):
            try:
                page = self._store.list_page(
                    self._scope_for(identity),
                    page=list_args.page,
                    size=list_args.size,
                    search=search,
                    order_by=list_args.order_by,
                )
            except InvalidOrderBy as exc:
                raise ValidationError(str(exc), cause=exc) from exc
        return page.items, PagingMeta(page=page.page, size=page.size, total=page.total)

    def list_by_status(self, *statuses: KafkaStatus) -> list[KafkaRequest]:
        if not statuses:
            raise GeneralError("no status provided")
        with _wrap_errors("failed to list by status"):
            return self._store.list_by_status(statuses)

    def count_by_status(self, statuses: Sequence[KafkaStatus]) -> list[KafkaStatusCount]:
        with _wrap_errors("Failed to count kafkas"):
            counts = self._store.count_by_status(statuses)
        return [KafkaStatusCount(status=s, count=counts.get(s.value, 0)) for s in statuses]

    def get_managed_kafka_by_cluster_id(self, cluster_id: str) -> list[ManagedKafka]:
        with _wrap_errors("unable to list kafka requests", cluster_id=cluster_id):
            requests = self._store.list_for_cluster(
                cluster_id,
                MANAGED_CR_STATUSES,
                require_sso_client=self._auth_enabled,
            )
            keycloak_config = self._identity_registry.get_config()
            return [
                build_managed_kafka_cr(
                    request,
                    self._kafka_config,
                    keycloak_config,
                    build_namespace_name(request.id),
                )
                for request in requests
            ]

    # -- status ----------------------------------------------------------------

    def update(self, request: KafkaRequest, fields: Sequence[str]) -> None:
        """Persist the named *fields* of *request*; ignored for rows under deletion.

        ``status`` is not accepted here; it only changes through :meth:`update_status`.
        """
        if "status" in fields:
            raise ValidationError("status can only be changed through update_status")
        values = {name: getattr(request, name) for name in fields}
        with _wrap_errors("Failed to update kafka", kafka_id=request.id):
            self._store.update_fields(request.id, values, skip_statuses=DELETION_STATUSES)

    def update_status(self, kafka_id: str, status: KafkaStatus) -> bool:
        """Move a Kafka request to *status*.

        Returns whether the status was written. Nothing is written when the
        request is deprovisioning (only ``deleting`` may follow), when it is
        already in *status*, or when the transition is not allowed. A write
        that loses a race with another writer is re-validated against the
        status that writer left behind.
        """
        for _ in range(_STATUS_WRITE_ATTEMPTS):
            try:
                kafka = self.get_by_id(kafka_id)
            except ServiceError as exc:
                raise GeneralError("failed to update status", cause=exc) from exc

            current = KafkaStatus(kafka.status)
            rejection = _status_rejection(kafka_id, current, status)
            if rejection is not None:
                logger.info(
                    "kafka.status_update_skipped",
                    kafka_id=kafka_id,
                    current=current.value,
                    requested=status.value,
                    reason=rejection,
                )
                return False

            with _wrap_errors("Failed to update kafka status", kafka_id=kafka_id):
                updated = self._store.update_status(
                    kafka_id, status, expected_status=current
                )
            if updated:
                return True
            logger.info(
                "kafka.status_changed_concurrently",
                kafka_id=kafka_id,
                expected=current.value,
                requested=status.value,
            )

        raise GeneralError(
            "failed to update status",
            cause=RuntimeError(f"status of {kafka_id} kept changing concurrently"),
        )

    # -- deprovision & deletion ------------------------------------------------

    def register_kafka_deprovision_job(
        self, identity: Identity | None, kafka_id: str
    ) -> None:
        if not kafka_id:
            raise ValidationError("id is undefined")
        identity = require_identity(identity)
        kafka = self._find(kafka_id, Scope(owner=identity.username))

        metrics.increase_total_operations(KafkaOperation.DEPROVISION)
        if self.update_status(kafka_id, KafkaStatus.DEPROVISION):
            metrics.increase_success_operations(KafkaOperation.DEPROVISION)
            metrics.update_status_since_created(
                KafkaStatus.DEPROVISION,
                kafka.id,
                kafka.cluster_id,
                utcnow() - kafka.created_at,
            )
            logger.info("kafka.deprovision_registered", kafka_id=kafka_id)

    def _record_bulk_deprovision(self, affected: int) -> None:
        if affected >= 1:
            metrics.increase_total_operations(KafkaOperation.DEPROVISION, affected)
            metrics.increase_success_operations(KafkaOperation.DEPROVISION, affected)

    def deprovision_kafka_for_users(self, users: Sequence[str]) -> int:
        """Deprovision every live Kafka owned by *users*; returns the row count."""
        with _wrap_errors("Unable to deprovision kafka requests for users"):
            affected = self._store.bulk_update_status(
                KafkaStatus.DEPROVISION,
                skip_statuses=DELETION_STATUSES,
                owners=list(users),
            )
        if affected:
            logger.info("kafka.deprovisioned_for_users", count=affected, users=list(users))
        self._record_bulk_deprovision(affected)
        return affected

    def deprovision_expired_kafkas(self, kafka_age_in_hours: int) -> int:
        """Deprovision Kafkas older than the given age, except long-lived ones."""
        cutoff = utcnow() - timedelta(hours=kafka_age_in_hours)
        with _wrap_errors("unable to deprovision expired kafkas"):
            affected = self._store.bulk_update_status(
                KafkaStatus.DEPROVISION,
                skip_statuses=DELETION_STATUSES,
                created_before=cutoff,
                exclude_ids=self._kafka_config.lifespan.long_lived_kafkas,
            )
        if affected:
            logger.info(
                "kafka.expired_deprovisioned",
                count=affected,
                max_age_hours=kafka_age_in_hours,
            )
        self._record_bulk_deprovision(affected)
        return affected

    def delete(self, request: KafkaRequest) -> None:
        """Release external resources, then soft delete the request.

        Without a cluster id nothing was provisioned outside the store.
        """
        if request.cluster_id:
            if self._auth_enabled:
                client_id = build_keycloak_client_name(request.id)
                try:
                    self._identity_registry.deregister_client(client_id)
                except Exception as exc:
                    logger.error(
                        "kafka.sso_client_delete_failed",
                        kafka_id=request.id,
                        client_id=client_id,
                        error=str(exc),
                    )
                    raise FailedToDeleteSSOClientError(
                        "error deleting sso client", cause=exc
                    ) from exc

            if self._kafka_config.enable_kafka_external_certificate:
                cluster_dns = self._managed_ingress(request.cluster_id)
                self.change_kafka_cname_records(request, cluster_dns, RecordAction.DELETE)

        with _wrap_errors(
            f"unable to delete kafka request with id {request.id}", kafka_id=request.id
        ):
            deleted = self._store.soft_delete(request.id)
        if not deleted:
            logger.info("kafka.already_deleted", kafka_id=request.id)

        metrics.increase_total_operations(KafkaOperation.DELETE)
        metrics.increase_success_operations(KafkaOperation.DELETE)
        logger.info("kafka.deleted", kafka_id=request.id)
