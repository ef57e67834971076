"""CNAME record batches for externally addressable Kafka instances."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger()

RECORD_TTL_SECONDS = 300


class RecordAction(StrEnum):
    CREATE = "CREATE"
    DELETE = "DELETE"


@runtime_checkable
class DNSAuthority(Protocol):
    """Applies a batch of record changes to the hosted zone of *domain*."""

    def change_resource_record_sets(
        self, domain: str, batch: dict[str, Any]
    ) -> dict[str, Any]: ...


def build_record_change(
    record_name: str, target: str, action: RecordAction
) -> dict[str, Any]:
    return {
        "Action": action.value,
        "ResourceRecordSet": {
            "Name": record_name,
            "Type": "CNAME",
            "TTL": RECORD_TTL_SECONDS,
            "ResourceRecords": [{"Value": target}],
        },
    }


def build_cname_record_batch(
    record_name: str,
    cluster_ingress: str,
    action: RecordAction,
    num_of_brokers: int,
) -> dict[str, Any]:
    """Build the bootstrap, admin server and per-broker CNAME changes.

    Every record points at the load balancer of the cluster ingress,
    ``elb.<cluster_ingress>``.
    """
    target = f"elb.{cluster_ingress}"
    names = [record_name, f"admin-server-{record_name}"]
    names.extend(f"broker-{i}-{record_name}" for i in range(num_of_brokers))
    return {"Changes": [build_record_change(name, target, action) for name in names]}


class DNSRecordManager:
    """Submits Kafka CNAME batches to the fleet's DNS zone.

    Existing and missing records are left to the authority's own semantics;
    no retry or drift reconciliation happens here.
    """

    def __init__(
        self, authority: DNSAuthority, domain_name: str, num_of_brokers: int
    ) -> None:
        self._authority = authority
        self._domain_name = domain_name
        self._num_of_brokers = num_of_brokers

    def change_records(
        self, bootstrap_host: str, cluster_ingress: str, action: RecordAction
    ) -> dict[str, Any]:
        batch = build_cname_record_batch(
            bootstrap_host, cluster_ingress, action, self._num_of_brokers
        )
        result = self._authority.change_resource_record_sets(self._domain_name, batch)
        logger.info(
            "dns.records_changed",
            action=action.value,
            record=bootstrap_host,
            changes=len(batch["Changes"]),
        )
        return result
