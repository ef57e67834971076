"""Build a wired KafkaService from configuration."""

from __future__ import annotations

from sqlalchemy.engine import Engine

from fleet_manager.clients.keycloak import KeycloakIdentityRegistry
from fleet_manager.clients.placement import OCMClusterPlacement
from fleet_manager.clients.quota import AMSQuotaService
from fleet_manager.config.models import FleetConfig
from fleet_manager.db.session import create_schema, make_engine, make_session_factory
from fleet_manager.db.store import KafkaRequestStore
from fleet_manager.dns.records import DNSRecordManager
from fleet_manager.dns.route53 import Route53DNSAuthority
from fleet_manager.services.kafka import KafkaService


def create_kafka_service(
    config: FleetConfig, engine: Engine | None = None, *, init_schema: bool = False
) -> KafkaService:
    engine = engine or make_engine(config.database)
    if init_schema:
        create_schema(engine)
    store = KafkaRequestStore(make_session_factory(engine))
    dns_manager = DNSRecordManager(
        Route53DNSAuthority(config.aws),
        config.kafka.kafka_domain_name,
        config.kafka.num_of_brokers,
    )
    return KafkaService(
        store=store,
        placement=OCMClusterPlacement(config.placement),
        identity_registry=KeycloakIdentityRegistry(config.keycloak),
        quota_service=AMSQuotaService(config.quota),
        dns_manager=dns_manager,
        kafka_config=config.kafka,
    )
