"""Unit tests for ManagedKafka descriptor construction."""

from pydantic import SecretStr

from fakes import auth_keycloak_config, make_request
from fleet_manager.config.models import KafkaConfig, KeycloakConfig
from fleet_manager.db.models import KafkaStatus
from fleet_manager.services.managed_kafka import build_managed_kafka_cr


def _request(**fields):
    request = make_request(
        name="orders",
        organisation_id="13640203",
        bootstrap_server_host="orders-abc.kafka.example.com",
        sso_client_id="kafka-abc",
        sso_client_secret="sekret",
        version="2.7.0",
        placement_id="placement-1",
        **fields,
    )
    request.id = "abc"
    return request


class TestBuildManagedKafka:
    def test_resource_uses_kubernetes_field_names(self):
        cr = build_managed_kafka_cr(_request(), KafkaConfig(), KeycloakConfig(), "kafka-abc")
        resource = cr.to_resource()

        assert resource["apiVersion"] == "managedkafka.bf2.org/v1alpha1"
        assert resource["kind"] == "ManagedKafka"
        assert resource["metadata"] == {
            "name": "orders",
            "namespace": "kafka-abc",
            "annotations": {"bf2.org/id": "abc", "bf2.org/placementId": "placement-1"},
        }
        spec = resource["spec"]
        assert spec["endpoint"] == {"bootstrapServerHost": "orders-abc.kafka.example.com"}
        assert spec["versions"] == {"kafka": "2.7.0", "strimzi": "0.22.1"}
        assert spec["capacity"]["maxDataRetentionPeriod"] == "P14D"
        assert spec["capacity"]["ingressEgressThroughputPerSec"] == "30Mi"
        assert "oauth" not in spec
        assert spec["deleted"] is False

    def test_oauth_when_authentication_enabled(self):
        cr = build_managed_kafka_cr(
            _request(), KafkaConfig(), auth_keycloak_config(), "kafka-abc"
        )
        oauth = cr.to_resource()["spec"]["oauth"]
        assert oauth["clientId"] == "kafka-abc"
        assert oauth["clientSecret"] == "sekret"
        assert oauth["validIssuerEndpointURI"] == "https://sso.example.com/auth/realms/rhoas"
        assert oauth["userNameClaim"] == "clientId"
        assert oauth["customClaimCheck"] == (
            "@.rh-org-id == '13640203'|| @.org_id == '13640203'"
        )

    def test_tls_from_external_certificate(self):
        config = KafkaConfig(kafka_tls_cert=SecretStr("CERT"), kafka_tls_key=SecretStr("KEY"))
        cr = build_managed_kafka_cr(_request(), config, KeycloakConfig(), "kafka-abc")
        assert cr.to_resource()["spec"]["endpoint"]["tls"] == {"cert": "CERT", "key": "KEY"}

    def test_deprovisioned_marked_deleted(self):
        cr = build_managed_kafka_cr(
            _request(status=KafkaStatus.DEPROVISION),
            KafkaConfig(),
            KeycloakConfig(),
            "kafka-abc",
        )
        assert cr.spec.deleted is True
