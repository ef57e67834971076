"""Quota authority client for product quota checks."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import httpx
import structlog

from fleet_manager.config.models import QuotaConfig

logger = structlog.get_logger()


@runtime_checkable
class QuotaService(Protocol):
    """Reserves (or only checks) one unit of a product quota."""

    def reserve_quota(
        self,
        product_id: str,
        cluster_id: str,
        reservation_id: str,
        owner: str,
        reserve: bool,
        availability_zone: str,
    ) -> tuple[bool, str]:
        """Return ``(allowed, subscription_id)``."""
        ...


class QuotaError(Exception):
    """Raised when the quota authority cannot be reached or answers badly."""


class AMSQuotaService:
    """Account management service client using cluster authorizations."""

    def __init__(self, config: QuotaConfig, client: httpx.Client | None = None) -> None:
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

    def reserve_quota(
        self,
        product_id: str,
        cluster_id: str,
        reservation_id: str,
        owner: str,
        reserve: bool,
        availability_zone: str,
    ) -> tuple[bool, str]:
        body: dict[str, Any] = {
            "account_username": owner,
            "cluster_id": cluster_id or reservation_id,
            "external_cluster_id": reservation_id,
            "product_id": product_id,
            "managed": True,
            "byoc": False,
            "availability_zone": availability_zone,
            "reserve": reserve,
            "resources": [
                {
                    "resource_type": "cluster.aws",
                    "resource_name": product_id,
                    "billing_model": "standard",
                    "count": 1,
                }
            ],
        }
        try:
            resp = self._client.post(
                "/api/accounts_mgmt/v1/cluster_authorizations", json=body
            )
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise QuotaError(f"cluster authorization failed for {owner}") from exc

        allowed = bool(payload.get("allowed", False))
        subscription_id = str((payload.get("subscription") or {}).get("id", ""))
        logger.info(
            "quota.checked",
            owner=owner,
            product_id=product_id,
            allowed=allowed,
            reserve=reserve,
        )
        return allowed, subscription_id
