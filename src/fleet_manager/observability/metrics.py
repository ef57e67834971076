"""Prometheus metrics for Kafka request operations."""

from __future__ import annotations

from datetime import timedelta
from enum import StrEnum

from prometheus_client import Counter, Gauge

from fleet_manager.db.models import KafkaStatus


class KafkaOperation(StrEnum):
    CREATE = "create"
    DELETE = "delete"
    DEPROVISION = "deprovision"


KAFKA_OPERATIONS_TOTAL = Counter(
    "kas_fleet_manager_kafka_operations_total_count",
    "Number of total operations performed on kafka requests",
    ["operation"],
)

KAFKA_OPERATIONS_SUCCESS = Counter(
    "kas_fleet_manager_kafka_operations_success_count",
    "Number of successful operations performed on kafka requests",
    ["operation"],
)

KAFKA_STATUS_SINCE_CREATED = Gauge(
    "kas_fleet_manager_kafka_requests_status_since_created_in_seconds",
    "Seconds between a kafka request's creation and it entering a status",
    ["status", "id", "cluster_id"],
)


def increase_total_operations(operation: KafkaOperation, count: int = 1) -> None:
    KAFKA_OPERATIONS_TOTAL.labels(operation=operation.value).inc(count)


def increase_success_operations(operation: KafkaOperation, count: int = 1) -> None:
    KAFKA_OPERATIONS_SUCCESS.labels(operation=operation.value).inc(count)


def update_status_since_created(
    status: KafkaStatus, kafka_id: str, cluster_id: str, elapsed: timedelta
) -> None:
    KAFKA_STATUS_SINCE_CREATED.labels(
        status=status.value, id=kafka_id, cluster_id=cluster_id
    ).set(elapsed.total_seconds())
