"""Shared fixtures: a SQLite-backed store and in-memory external collaborators."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import SecretStr
from sqlalchemy.engine import Engine

from fakes import (
    FakeDNSAuthority,
    FakeIdentityRegistry,
    FakePlacement,
    FakeQuota,
    ServiceFactory,
)
from fleet_manager.config.models import (
    DatabaseConfig,
    KafkaCapacityConfig,
    KafkaConfig,
    KeycloakConfig,
)
from fleet_manager.db.session import create_schema, make_engine, make_session_factory
from fleet_manager.db.store import KafkaRequestStore
from fleet_manager.dns.records import DNSRecordManager
from fleet_manager.services.kafka import KafkaService


@pytest.fixture
def engine(tmp_path: Path) -> Engine:
    db = make_engine(DatabaseConfig(url=SecretStr(f"sqlite:///{tmp_path / 'fleet.db'}")))
    create_schema(db)
    return db


@pytest.fixture
def store(engine: Engine) -> KafkaRequestStore:
    return KafkaRequestStore(make_session_factory(engine))


@pytest.fixture
def placement() -> FakePlacement:
    return FakePlacement()


@pytest.fixture
def quota() -> FakeQuota:
    return FakeQuota()


@pytest.fixture
def dns_authority() -> FakeDNSAuthority:
    return FakeDNSAuthority()



@pytest.fixture
def make_service(
    store: KafkaRequestStore,
    placement: FakePlacement,
    quota: FakeQuota,
    dns_authority: FakeDNSAuthority,
) -> ServiceFactory:
    def _make(
        kafka_config: KafkaConfig | None = None,
        keycloak_config: KeycloakConfig | None = None,
        identity_registry: FakeIdentityRegistry | None = None,
    ) -> KafkaService:
        kafka_config = kafka_config or KafkaConfig(
            capacity=KafkaCapacityConfig(max_capacity=10)
        )
        registry = identity_registry or FakeIdentityRegistry(
            keycloak_config or KeycloakConfig()
        )
        return KafkaService(
            store=store,
            placement=placement,
            identity_registry=registry,
            quota_service=quota,
            dns_manager=DNSRecordManager(
                dns_authority, kafka_config.kafka_domain_name, kafka_config.num_of_brokers
            ),
            kafka_config=kafka_config,
        )

    return _make


@pytest.fixture
def service(make_service: ServiceFactory) -> KafkaService:
    return make_service()
