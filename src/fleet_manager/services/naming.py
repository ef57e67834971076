"""Host, namespace and client naming for Kafka instances."""

from __future__ import annotations

import re

TRUNCATED_NAME_LENGTH = 10
DEFAULT_INGRESS_DNS_NAME_PREFIX = "apps"
MANAGED_KAFKA_INGRESS_DNS_NAME_PREFIX = "kas"

_INVALID_HOST_CHARS = re.compile(r"[^a-z0-9-]")
_DNS_1035_LABEL = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])?$")


class InvalidHostName(ValueError):
    """Raised when a normalized name is still not a valid DNS label."""


def build_truncated_kafka_identifier(name: str, kafka_id: str) -> str:
    return f"{name[:TRUNCATED_NAME_LENGTH]}-{kafka_id.lower()}"


def replace_host_special_chars(name: str) -> str:
    """Normalize *name* into a DNS-1035 label.

    Characters outside ``[a-z0-9-]`` become ``-``; a leading ``-`` becomes
    ``a`` and a trailing one ``z``. The result must still be a valid label.
    """
    replaced = _INVALID_HOST_CHARS.sub("-", name.lower())
    if replaced.startswith("-"):
        replaced = "a" + replaced[1:]
    if replaced.endswith("-"):
        replaced = replaced[:-1] + "z"
    if not _DNS_1035_LABEL.match(replaced):
        msg = f"host name is not valid: {replaced!r}"
        raise InvalidHostName(msg)
    return replaced


def build_kafka_host_label(name: str, kafka_id: str) -> str:
    return replace_host_special_chars(build_truncated_kafka_identifier(name, kafka_id))


def to_managed_ingress(cluster_dns: str) -> str:
    """Swap the default ingress prefix for the managed Kafka ingress prefix."""
    return cluster_dns.replace(
        DEFAULT_INGRESS_DNS_NAME_PREFIX, MANAGED_KAFKA_INGRESS_DNS_NAME_PREFIX, 1
    )


def build_keycloak_client_name(kafka_id: str) -> str:
    return f"kafka-{kafka_id.lower()}"


def build_namespace_name(kafka_id: str) -> str:
    return replace_host_special_chars(f"kafka-{kafka_id.lower()}")


def build_custom_claim_check(organisation_id: str) -> str:
    return f"@.rh-org-id == '{organisation_id}'|| @.org_id == '{organisation_id}'"
