"""Route53 implementation of the DNS authority."""

from __future__ import annotations

from typing import Any

import structlog

from fleet_manager.config.models import AWSConfig

logger = structlog.get_logger()


class Route53Error(Exception):
    """Raised when the hosted zone is missing or a change batch is rejected."""


class Route53DNSAuthority:
    """Applies change batches to the public hosted zone of a domain."""

    def __init__(self, config: AWSConfig) -> None:
        self._config = config
        self._client = None
        self._zone_ids: dict[str, str] = {}

    def _get_client(self):  # noqa: ANN202
        if self._client is None:
            import boto3

            access_key = self._config.route53_access_key
            secret_key = self._config.route53_secret_access_key
            self._client = boto3.client(
                "route53",
                region_name=self._config.region,
                aws_access_key_id=access_key.get_secret_value() if access_key else None,
                aws_secret_access_key=(
                    secret_key.get_secret_value() if secret_key else None
                ),
            )
        return self._client

    def hosted_zone_id(self, domain: str) -> str:
        """Look up (and cache) the hosted zone id serving *domain*."""
        if domain in self._zone_ids:
            return self._zone_ids[domain]
        client = self._get_client()
        resp = client.list_hosted_zones_by_name(DNSName=domain, MaxItems="1")
        wanted = domain.rstrip(".") + "."
        for zone in resp.get("HostedZones", []):
            if zone.get("Name") == wanted:
                zone_id = str(zone["Id"]).rsplit("/", 1)[-1]
                self._zone_ids[domain] = zone_id
                return zone_id
        msg = f"hosted zone for {domain} not found"
        raise Route53Error(msg)

    def change_resource_record_sets(
        self, domain: str, batch: dict[str, Any]
    ) -> dict[str, Any]:
        client = self._get_client()
        zone_id = self.hosted_zone_id(domain)
        try:
            resp = client.change_resource_record_sets(
                HostedZoneId=zone_id, ChangeBatch=batch
            )
        except Exception as exc:
            logger.error(
                "route53.change_failed",
                zone_id=zone_id,
                changes=len(batch.get("Changes", [])),
                error=str(exc),
            )
            raise Route53Error(f"change batch rejected for zone {zone_id}") from exc
        info = resp.get("ChangeInfo", {})
        logger.info(
            "route53.change_submitted",
            zone_id=zone_id,
            change_id=info.get("Id"),
            status=info.get("Status"),
        )
        return dict(resp)
