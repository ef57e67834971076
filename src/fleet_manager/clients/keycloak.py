"""Per-Kafka OAuth clients in Keycloak."""

from __future__ import annotations

import threading
import time
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fleet_manager.config.models import KeycloakConfig

logger = structlog.get_logger()

# Refresh the admin token this many seconds before it expires.
_TOKEN_EXPIRY_MARGIN = 30.0


@runtime_checkable
class IdentityRegistry(Protocol):
    """Creates and removes the OAuth client a Kafka instance authenticates with."""

    def register_kafka_client(self, client_id: str, org_id: str) -> str:
        """Ensure the client exists and return its secret."""
        ...

    def deregister_client(self, client_id: str) -> None:
        """Remove the client; absent clients are ignored."""
        ...

    def get_config(self) -> KeycloakConfig: ...


class KeycloakError(Exception):
    """Raised when a Keycloak admin API call fails."""


class KeycloakIdentityRegistry:
    """Thin wrapper around the Keycloak admin REST API for one realm."""

    def __init__(
        self, config: KeycloakConfig, client: httpx.Client | None = None
    ) -> None:
        self._config = config
        self._realm = config.kafka_realm
        self._client = client or httpx.Client(timeout=config.timeout_seconds)
        self._admin_url = (
            f"{self._realm.base_url.rstrip('/')}/auth/admin/realms/{self._realm.realm}"
        )
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def get_config(self) -> KeycloakConfig:
        return self._config

    # -- token -----------------------------------------------------------------

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=5),
        reraise=True,
    )
    def _fetch_token(self) -> dict[str, Any]:
        secret = self._realm.client_secret
        resp = self._client.post(
            self._realm.token_endpoint_uri,
            data={
                "grant_type": self._realm.grant_type,
                "client_id": self._realm.client_id,
                "client_secret": secret.get_secret_value() if secret else "",
            },
        )
        resp.raise_for_status()
        return resp.json()  # type: ignore[no-any-return]

    def _get_token(self) -> str:
        with self._token_lock:
            now = time.monotonic()
            if self._token is not None and now < self._token_expires_at:
                return self._token
            payload = self._fetch_token()
            self._token = str(payload["access_token"])
            expires_in = float(payload.get("expires_in", 60))
            self._token_expires_at = now + max(expires_in - _TOKEN_EXPIRY_MARGIN, 0.0)
            return self._token

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._get_token()}"}

    # -- clients ---------------------------------------------------------------

    def _find_client(self, client_id: str) -> str | None:
        """Return Keycloak's internal id for *client_id*, if the client exists."""
        resp = self._client.get(
            f"{self._admin_url}/clients",
            params={"clientId": client_id},
            headers=self._headers(),
        )
        resp.raise_for_status()
        clients = resp.json()
        if not clients:
            return None
        return str(clients[0]["id"])

    def _client_secret(self, internal_id: str) -> str:
        resp = self._client.get(
            f"{self._admin_url}/clients/{internal_id}/client-secret",
            headers=self._headers(),
        )
        resp.raise_for_status()
        return str(resp.json()["value"])

    def register_kafka_client(self, client_id: str, org_id: str) -> str:
        try:
            internal_id = self._find_client(client_id)
            if internal_id is None:
                resp = self._client.post(
                    f"{self._admin_url}/clients",
                    json={
                        "clientId": client_id,
                        "name": client_id,
                        "enabled": True,
                        "publicClient": False,
                        "serviceAccountsEnabled": True,
                        "standardFlowEnabled": False,
                        "attributes": {"rh-org-id": org_id},
                    },
                    headers=self._headers(),
                )
                resp.raise_for_status()
                internal_id = self._find_client(client_id)
                if internal_id is None:
                    msg = f"client {client_id} not found after creation"
                    raise KeycloakError(msg)
                logger.info("keycloak.client_created", client_id=client_id)
            else:
                logger.info("keycloak.client_exists", client_id=client_id)
            return self._client_secret(internal_id)
        except httpx.HTTPError as exc:
            raise KeycloakError(f"failed to register client {client_id}") from exc

    def deregister_client(self, client_id: str) -> None:
        try:
            internal_id = self._find_client(client_id)
            if internal_id is None:
                logger.info("keycloak.client_already_deleted", client_id=client_id)
                return
            resp = self._client.delete(
                f"{self._admin_url}/clients/{internal_id}", headers=self._headers()
            )
            if resp.status_code == 404:
                logger.info("keycloak.client_already_deleted", client_id=client_id)
                return
            resp.raise_for_status()
            logger.info("keycloak.client_deleted", client_id=client_id)
        except httpx.HTTPError as exc:
            raise KeycloakError(f"failed to delete client {client_id}") from exc
