"""ManagedKafka descriptors consumed by the data plane reconciler."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from fleet_manager.config.models import KafkaConfig, KeycloakConfig
from fleet_manager.db.models import KafkaRequest, KafkaStatus
from fleet_manager.services.naming import build_custom_claim_check


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ObjectMeta(_CamelModel):
    name: str
    namespace: str
    annotations: dict[str, str] = Field(default_factory=dict)


class Capacity(_CamelModel):
    ingress_egress_throughput_per_sec: str = Field(alias="ingressEgressThroughputPerSec")
    total_max_connections: int = Field(alias="totalMaxConnections")
    max_data_retention_size: str = Field(alias="maxDataRetentionSize")
    max_partitions: int = Field(alias="maxPartitions")
    max_data_retention_period: str = Field(alias="maxDataRetentionPeriod")
    max_connection_attempts_per_sec: int = Field(alias="maxConnectionAttemptsPerSec")


class TlsSpec(_CamelModel):
    cert: str = ""
    key: str = ""


class EndpointSpec(_CamelModel):
    bootstrap_server_host: str = Field(alias="bootstrapServerHost")
    tls: TlsSpec | None = None


class OAuthSpec(_CamelModel):
    client_id: str = Field(alias="clientId")
    client_secret: str = Field(alias="clientSecret")
    token_endpoint_uri: str = Field(alias="tokenEndpointURI")
    jwks_endpoint_uri: str = Field(alias="jwksEndpointURI")
    valid_issuer_endpoint_uri: str = Field(alias="validIssuerEndpointURI")
    user_name_claim: str = Field(alias="userNameClaim")
    custom_claim_check: str = Field(alias="customClaimCheck")
    tls_trusted_certificate: str = Field(default="", alias="tlsTrustedCertificate")


class VersionsSpec(_CamelModel):
    kafka: str
    strimzi: str


class ManagedKafkaSpec(_CamelModel):
    capacity: Capacity
    endpoint: EndpointSpec
    versions: VersionsSpec
    oauth: OAuthSpec | None = None
    deleted: bool = False


class ManagedKafka(_CamelModel):
    id: str
    api_version: str = Field(default="managedkafka.bf2.org/v1alpha1", alias="apiVersion")
    kind: str = "ManagedKafka"
    metadata: ObjectMeta
    spec: ManagedKafkaSpec

    def to_resource(self) -> dict[str, object]:
        """Serialize with Kubernetes field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


def build_managed_kafka_cr(
    request: KafkaRequest,
    kafka_config: KafkaConfig,
    keycloak_config: KeycloakConfig,
    namespace: str,
) -> ManagedKafka:
    capacity = kafka_config.capacity
    tls: TlsSpec | None = None
    if kafka_config.kafka_tls_cert is not None and kafka_config.kafka_tls_key is not None:
        tls = TlsSpec(
            cert=kafka_config.kafka_tls_cert.get_secret_value(),
            key=kafka_config.kafka_tls_key.get_secret_value(),
        )

    oauth: OAuthSpec | None = None
    if keycloak_config.enable_authentication_on_kafka:
        realm = keycloak_config.kafka_realm
        oauth = OAuthSpec(
            client_id=request.sso_client_id,
            client_secret=request.sso_client_secret,
            token_endpoint_uri=realm.token_endpoint_uri,
            jwks_endpoint_uri=realm.jwks_endpoint_uri,
            valid_issuer_endpoint_uri=realm.valid_issuer_uri,
            user_name_claim=keycloak_config.user_name_claim,
            custom_claim_check=build_custom_claim_check(request.organisation_id),
            tls_trusted_certificate=keycloak_config.tls_trusted_certificate,
        )

    return ManagedKafka(
        id=request.id,
        metadata=ObjectMeta(
            name=request.name,
            namespace=namespace,
            annotations={
                "bf2.org/id": request.id,
                "bf2.org/placementId": request.placement_id,
            },
        ),
        spec=ManagedKafkaSpec(
            capacity=Capacity(
                ingress_egress_throughput_per_sec=capacity.ingress_egress_throughput_per_sec,
                total_max_connections=capacity.total_max_connections,
                max_data_retention_size=capacity.max_data_retention_size,
                max_partitions=capacity.max_partitions,
                max_data_retention_period=capacity.max_data_retention_period,
                max_connection_attempts_per_sec=capacity.max_connection_attempts_per_sec,
            ),
            endpoint=EndpointSpec(
                bootstrap_server_host=request.bootstrap_server_host, tls=tls
            ),
            versions=VersionsSpec(
                kafka=request.version, strimzi=kafka_config.strimzi_version
            ),
            oauth=oauth,
            deleted=request.status == KafkaStatus.DEPROVISION.value,
        ),
    )
