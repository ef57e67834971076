"""Unit tests for Kafka host, namespace and client naming."""

import pytest

from fleet_manager.services.naming import (
    InvalidHostName,
    build_custom_claim_check,
    build_kafka_host_label,
    build_keycloak_client_name,
    build_namespace_name,
    build_truncated_kafka_identifier,
    replace_host_special_chars,
    to_managed_ingress,
)


class TestHostLabel:
    def test_truncates_name(self):
        assert build_truncated_kafka_identifier("averyveryverylongname", "ID1") == (
            "averyveryv-id1"
        )

    def test_short_name_kept(self):
        assert build_kafka_host_label("orders", "abc123") == "orders-abc123"

    def test_special_chars_replaced(self):
        assert replace_host_special_chars("my_kafka.prod") == "my-kafka-prod"

    def test_leading_and_trailing_dash(self):
        assert replace_host_special_chars("-kafka-") == "akafkaz"

    def test_leading_digit_invalid(self):
        with pytest.raises(InvalidHostName):
            build_kafka_host_label("1kafka", "abc")

    def test_uppercase_lowered(self):
        assert build_kafka_host_label("Orders", "ABC") == "orders-abc"


class TestIngress:
    def test_apps_prefix_swapped(self):
        assert to_managed_ingress("apps.cluster.example.com") == "kas.cluster.example.com"

    def test_only_first_occurrence(self):
        assert to_managed_ingress("apps.apps.example.com") == "kas.apps.example.com"

    def test_other_prefix_untouched(self):
        assert to_managed_ingress("ingress.example.com") == "ingress.example.com"


class TestIdentifiers:
    def test_keycloak_client_name(self):
        assert build_keycloak_client_name("ABC123") == "kafka-abc123"

    def test_namespace(self):
        assert build_namespace_name("ABC123") == "kafka-abc123"

    def test_custom_claim_check(self):
        assert build_custom_claim_check("13640203") == (
            "@.rh-org-id == '13640203'|| @.org_id == '13640203'"
        )
