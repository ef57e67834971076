"""SQLAlchemy model for Kafka requests and the status state machine."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp, stored identically on PostgreSQL and SQLite."""
    return datetime.now(UTC).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex[:20]


class KafkaStatus(StrEnum):
    """Lifecycle states of a Kafka request."""

    ACCEPTED = "accepted"
    PREPARING = "preparing"
    PROVISIONING = "provisioning"
    READY = "ready"
    FAILED = "failed"
    DEPROVISION = "deprovision"
    DELETING = "deleting"


# Statuses of a Kafka that is on its way out; such rows ignore field updates
# and are skipped by the bulk deprovision paths.
DELETION_STATUSES: tuple[KafkaStatus, ...] = (
    KafkaStatus.DELETING,
    KafkaStatus.DEPROVISION,
)

# Statuses from which preparation may move a Kafka to provisioning.
PREPARABLE_STATUSES: tuple[KafkaStatus, ...] = (
    KafkaStatus.ACCEPTED,
    KafkaStatus.PREPARING,
)

# Statuses for which a ManagedKafka resource exists on the data plane cluster.
MANAGED_CR_STATUSES: tuple[KafkaStatus, ...] = (
    KafkaStatus.PROVISIONING,
    KafkaStatus.DEPROVISION,
    KafkaStatus.READY,
    KafkaStatus.FAILED,
)

ALLOWED_TRANSITIONS: dict[KafkaStatus, frozenset[KafkaStatus]] = {
    KafkaStatus.ACCEPTED: frozenset(
        {
            KafkaStatus.PREPARING,
            KafkaStatus.PROVISIONING,
            KafkaStatus.FAILED,
            KafkaStatus.DEPROVISION,
        }
    ),
    KafkaStatus.PREPARING: frozenset(
        {KafkaStatus.PROVISIONING, KafkaStatus.FAILED, KafkaStatus.DEPROVISION}
    ),
    KafkaStatus.PROVISIONING: frozenset(
        {KafkaStatus.READY, KafkaStatus.FAILED, KafkaStatus.DEPROVISION}
    ),
    KafkaStatus.READY: frozenset({KafkaStatus.FAILED, KafkaStatus.DEPROVISION}),
    KafkaStatus.FAILED: frozenset({KafkaStatus.DEPROVISION}),
    KafkaStatus.DEPROVISION: frozenset({KafkaStatus.DELETING}),
    KafkaStatus.DELETING: frozenset(),
}


def is_transition_allowed(current: KafkaStatus, new: KafkaStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


class Base(DeclarativeBase):
    pass


class KafkaRequest(Base):
    __tablename__ = "kafka_requests"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    name: Mapped[str] = mapped_column(String(64), nullable=False)
    owner: Mapped[str] = mapped_column(String(256), nullable=False)
    organisation_id: Mapped[str] = mapped_column(String(64), default="")
    placement_id: Mapped[str] = mapped_column(String(64), default="")

    region: Mapped[str] = mapped_column(String(64), default="")
    cloud_provider: Mapped[str] = mapped_column(String(64), default="")
    multi_az: Mapped[bool] = mapped_column(Boolean, default=False)
    version: Mapped[str] = mapped_column(String(32), default="")
    kafka_storage_size: Mapped[str] = mapped_column(String(32), default="")
    ingress_throughput_per_sec: Mapped[str] = mapped_column(String(32), default="")
    egress_throughput_per_sec: Mapped[str] = mapped_column(String(32), default="")
    total_max_connections: Mapped[int] = mapped_column(Integer, default=0)
    max_partitions: Mapped[int] = mapped_column(Integer, default=0)
    max_data_retention_period: Mapped[str] = mapped_column(String(32), default="")

    bootstrap_server_host: Mapped[str] = mapped_column(String(256), default="")
    admin_api_server_url: Mapped[str] = mapped_column(String(256), default="")
    cluster_id: Mapped[str] = mapped_column(String(64), default="")
    sso_client_id: Mapped[str] = mapped_column(String(128), default="")
    sso_client_secret: Mapped[str] = mapped_column(Text, default="")

    status: Mapped[str] = mapped_column(
        String(32), default=KafkaStatus.ACCEPTED.value, nullable=False
    )
    failed_reason: Mapped[str] = mapped_column(Text, default="")

    __table_args__ = (
        Index("ix_kafka_requests_owner", "owner"),
        Index("ix_kafka_requests_organisation_id", "organisation_id"),
        Index("ix_kafka_requests_cluster_id", "cluster_id"),
        Index("ix_kafka_requests_status", "status"),
        Index("ix_kafka_requests_deleted_at", "deleted_at"),
    )

    def __repr__(self) -> str:
        return f"KafkaRequest(id={self.id!r}, name={self.name!r}, status={self.status!r})"
