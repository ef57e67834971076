"""Resolves the ingress DNS name of a data plane cluster."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import httpx
import structlog

from fleet_manager.config.models import PlacementConfig

logger = structlog.get_logger()


@runtime_checkable
class ClusterPlacement(Protocol):
    """Reports the DNS suffix of the default ingress of an assigned cluster."""

    def get_cluster_dns(self, cluster_id: str) -> str:
        """Return e.g. ``apps.mycluster.abcd.s1.devshift.org``."""
        ...


class PlacementError(Exception):
    """Raised when the cluster ingress cannot be resolved."""


class OCMClusterPlacement:
    """Cluster management API client (``/api/clusters_mgmt/v1``)."""

    def __init__(
        self, config: PlacementConfig, client: httpx.Client | None = None
    ) -> None:
        self._config = config
        headers: dict[str, str] = {}
        if config.token is not None:
            headers["Authorization"] = f"Bearer {config.token.get_secret_value()}"
        self._client = client or httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            headers=headers,
        )

    def close(self) -> None:
        self._client.close()

    def get_cluster_dns(self, cluster_id: str) -> str:
        if not cluster_id:
            msg = "cluster id is undefined"
            raise PlacementError(msg)
        resp = self._client.get(f"/api/clusters_mgmt/v1/clusters/{cluster_id}/ingresses")
        resp.raise_for_status()
        items: list[dict[str, Any]] = resp.json().get("items", [])
        for ingress in items:
            if ingress.get("default"):
                dns_name = ingress.get("dns_name", "")
                logger.debug(
                    "placement.cluster_dns", cluster_id=cluster_id, dns_name=dns_name
                )
                return str(dns_name)
        msg = f"no default ingress found for cluster {cluster_id}"
        raise PlacementError(msg)
