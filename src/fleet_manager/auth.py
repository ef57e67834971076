"""Caller identity resolved from token claims."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from fleet_manager.errors import UnauthenticatedError

# Claims consulted, in order, for the caller's username.
_USERNAME_CLAIMS = ("username", "preferred_username")
_ORG_ID_CLAIMS = ("org_id", "rh-org-id")


@dataclass(frozen=True)
class Identity:
    """Authenticated caller of a scoped operation.

    When ``filter_by_organisation`` is set, records are visible to every member
    of ``org_id``; otherwise only records whose owner equals ``username`` are.
    Service-account callers usually have no organisation and use owner scoping.
    """

    username: str
    org_id: str = ""
    filter_by_organisation: bool = False


def _first_claim(claims: Mapping[str, Any], names: tuple[str, ...]) -> str:
    for name in names:
        value = claims.get(name)
        if isinstance(value, str) and value:
            return value
    return ""


def identity_from_claims(
    claims: Mapping[str, Any] | None, *, filter_by_organisation: bool = False
) -> Identity:
    """Build an :class:`Identity` from verified JWT claims."""
    if claims is None:
        raise UnauthenticatedError("user not authenticated")
    username = _first_claim(claims, _USERNAME_CLAIMS)
    if not username:
        raise UnauthenticatedError("user not authenticated")
    return Identity(
        username=username,
        org_id=_first_claim(claims, _ORG_ID_CLAIMS),
        filter_by_organisation=filter_by_organisation,
    )


def require_identity(identity: Identity | None) -> Identity:
    """Reject a missing identity or one without a username."""
    if identity is None or not identity.username:
        raise UnauthenticatedError("user not authenticated")
    return identity
