"""Health probes for the fleet manager's dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

import httpx
import structlog
from sqlalchemy import text
from sqlalchemy.engine import Engine

from fleet_manager.config.models import FleetConfig

logger = structlog.get_logger()


class Status(StrEnum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class ComponentHealth:
    name: str
    status: Status = Status.UNKNOWN
    detail: str = ""


@dataclass
class FleetHealth:
    components: list[ComponentHealth] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(c.status == Status.HEALTHY for c in self.components)

    @property
    def summary(self) -> dict[str, str]:
        return {c.name: c.status.value for c in self.components}


def check_database(engine: Engine) -> ComponentHealth:
    """Probe the request store with a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return ComponentHealth(
            name="database", status=Status.HEALTHY, detail=engine.dialect.name
        )
    except Exception as exc:
        logger.warning("health.database_unreachable", error=str(exc))
        return ComponentHealth(name="database", status=Status.UNHEALTHY, detail=str(exc))


def check_identity_provider(issuer_url: str) -> ComponentHealth:
    """Probe the realm's OpenID configuration document."""
    try:
        resp = httpx.get(f"{issuer_url}/.well-known/openid-configuration", timeout=5)
        resp.raise_for_status()
        return ComponentHealth(
            name="identity-provider",
            status=Status.HEALTHY,
            detail=str(resp.json().get("issuer", issuer_url)),
        )
    except Exception as exc:
        logger.warning("health.identity_provider_unreachable", error=str(exc))
        return ComponentHealth(
            name="identity-provider", status=Status.UNHEALTHY, detail=str(exc)
        )


def check_fleet_health(config: FleetConfig, engine: Engine) -> FleetHealth:
    """Run all applicable health checks and return the aggregated result."""
    components = [check_database(engine)]
    if config.keycloak.enable_authentication_on_kafka:
        components.append(
            check_identity_provider(config.keycloak.kafka_realm.valid_issuer_uri)
        )
    return FleetHealth(components=components)
