"""Unit tests for the fleet CLI."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import SecretStr
from typer.testing import CliRunner

from fakes import make_request
from fleet_manager.cli import app
from fleet_manager.config.models import DatabaseConfig
from fleet_manager.db.models import KafkaStatus, utcnow
from fleet_manager.db.session import create_schema, make_engine, make_session_factory
from fleet_manager.db.store import KafkaRequestStore

runner = CliRunner()


@pytest.fixture
def cli_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> KafkaRequestStore:
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    engine = make_engine(DatabaseConfig(url=SecretStr(url)))
    create_schema(engine)
    return KafkaRequestStore(make_session_factory(engine))


def _write_config(tmp_path: Path, body: str) -> str:
    path = tmp_path / "fleet.yaml"
    path.write_text(body)
    return str(path)


class TestValidate:
    def test_defaults_valid(self):
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 0
        assert "Valid" in result.output
        assert "2.7.0" in result.output

    def test_missing_file(self):
        result = runner.invoke(app, ["validate", "--config", "/nonexistent/fleet.yaml"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_config(self, tmp_path: Path):
        path = _write_config(tmp_path, "kafka:\n  num_of_brokers: 0\n")
        result = runner.invoke(app, ["validate", "--config", path])
        assert result.exit_code == 1
        assert "Validation error" in result.output


class TestFleetCommands:
    def test_init_db(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'new.db'}")
        result = runner.invoke(app, ["init-db"])
        assert result.exit_code == 0
        assert (tmp_path / "new.db").exists()

    def test_status_counts(self, cli_store: KafkaRequestStore):
        cli_store.insert(make_request(name="a"))
        cli_store.insert(make_request(name="b", status=KafkaStatus.READY))
        result = runner.invoke(app, ["status-counts"])
        assert result.exit_code == 0
        assert "accepted" in result.output
        assert "deleting" in result.output

    def test_capacity(self, cli_store: KafkaRequestStore, tmp_path: Path):
        cli_store.insert(make_request())
        path = _write_config(tmp_path, "kafka:\n  capacity:\n    max_capacity: 1\n")
        result = runner.invoke(app, ["capacity", "--config", path])
        assert result.exit_code == 0
        assert "Maximum capacity reached" in result.output

    def test_deprovision_users(self, cli_store: KafkaRequestStore):
        request = cli_store.insert(make_request(owner="alice"))
        cli_store.insert(make_request(owner="carol"))
        result = runner.invoke(app, ["deprovision-users", "alice", "bob"])
        assert result.exit_code == 0
        assert "Deprovisioned 1" in result.output
        assert cli_store.get(request.id).status == KafkaStatus.DEPROVISION

    def test_deprovision_expired_disabled_by_default(self, cli_store: KafkaRequestStore):
        cli_store.insert(make_request(created_at=utcnow() - timedelta(hours=100)))
        result = runner.invoke(app, ["deprovision-expired"])
        assert result.exit_code == 0
        assert "disabled" in result.output

    def test_deprovision_expired_with_age(self, cli_store: KafkaRequestStore):
        request = cli_store.insert(make_request(created_at=utcnow() - timedelta(hours=100)))
        result = runner.invoke(app, ["deprovision-expired", "--max-age-hours", "48"])
        assert result.exit_code == 0
        assert "Deprovisioned 1 expired" in result.output
        assert cli_store.get(request.id).status == KafkaStatus.DEPROVISION

    def test_health(self, cli_store: KafkaRequestStore):
        result = runner.invoke(app, ["health"])
        assert result.exit_code == 0
        assert "database" in result.output
