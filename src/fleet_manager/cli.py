"""Typer CLI for the Kafka fleet manager."""

from __future__ import annotations

from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from fleet_manager.config.loader import load_fleet_config
from fleet_manager.config.models import FleetConfig
from fleet_manager.db.models import KafkaStatus
from fleet_manager.db.session import make_engine
from fleet_manager.errors import ServiceError
from fleet_manager.factory import create_kafka_service
from fleet_manager.observability.health import Status, check_fleet_health
from fleet_manager.observability.logging import configure_logging
from fleet_manager.services.kafka import KafkaService

logger = structlog.get_logger()
console = Console()
app = typer.Typer(name="fleet", help="Kafka fleet manager CLI")


@app.callback()
def main(
    json_logs: bool = typer.Option(True, "--json-logs/--console-logs"),
    log_level: str = typer.Option("INFO", "--log-level"),
) -> None:
    configure_logging(json_output=json_logs, level=log_level)


def _load(config_path: str | None) -> FleetConfig:
    if config_path is not None and not Path(config_path).exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)
    return load_fleet_config(Path(config_path) if config_path else None)


def _service(config_path: str | None, init_schema: bool = False) -> KafkaService:
    return create_kafka_service(_load(config_path), init_schema=init_schema)


@app.command()
def validate(
    config_path: str | None = typer.Option(None, "--config", help="Fleet YAML"),
) -> None:
    """Validate a fleet configuration file."""
    try:
        config = _load(config_path)
    except (ValueError, TypeError) as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        raise typer.Exit(1) from exc
    kafka = config.kafka
    console.print("[green]Valid[/green]")
    console.print(f"  config:          {config_path or '(defaults)'}")
    console.print(f"  kafka version:   {kafka.default_kafka_version}")
    console.print(f"  max capacity:    {kafka.capacity.max_capacity}")
    console.print(f"  quota service:   {'enabled' if kafka.enable_quota_service else 'disabled'}")
    console.print(
        f"  external certs:  "
        f"{kafka.kafka_domain_name if kafka.enable_kafka_external_certificate else 'disabled'}"
    )
    auth = config.keycloak.enable_authentication_on_kafka
    console.print(f"  kafka auth:      {'enabled' if auth else 'disabled'}")


@app.command()
def capacity(
    config_path: str | None = typer.Option(None, "--config", help="Fleet YAML"),
) -> None:
    """Report whether the fleet can admit another Kafka."""
    service = _service(config_path)
    try:
        status = service.service_status()
    except ServiceError as exc:
        console.print(f"[red]{exc.error_code}:[/red] {exc.reason}")
        raise typer.Exit(1) from exc
    if status["max_capacity_reached"]:
        console.print("[yellow]Maximum capacity reached[/yellow]")
    else:
        console.print("[green]Capacity available[/green]")


@app.command("status-counts")
def status_counts(
    config_path: str | None = typer.Option(None, "--config", help="Fleet YAML"),
) -> None:
    """Show the number of Kafka requests in each status."""
    service = _service(config_path)
    try:
        counts = service.count_by_status(list(KafkaStatus))
    except ServiceError as exc:
        console.print(f"[red]{exc.error_code}:[/red] {exc.reason}")
        raise typer.Exit(1) from exc

    table = Table(title="Kafka Requests")
    table.add_column("Status", style="cyan")
    table.add_column("Count", justify="right")
    for entry in counts:
        table.add_row(entry.status.value, str(entry.count))
    console.print(table)


@app.command("deprovision-expired")
def deprovision_expired(
    config_path: str | None = typer.Option(None, "--config", help="Fleet YAML"),
    max_age_hours: int | None = typer.Option(
        None, "--max-age-hours", help="Overrides kafka.lifespan.max_age_hours"
    ),
) -> None:
    """Deprovision Kafkas older than the configured lifespan."""
    config = _load(config_path)
    lifespan = config.kafka.lifespan
    if not lifespan.enable_deletion and max_age_hours is None:
        console.print("[yellow]Expiry is disabled (kafka.lifespan.enable_deletion)[/yellow]")
        return
    service = create_kafka_service(config)
    try:
        age = max_age_hours if max_age_hours is not None else lifespan.max_age_hours
        count = service.deprovision_expired_kafkas(age)
    except ServiceError as exc:
        console.print(f"[red]{exc.error_code}:[/red] {exc.reason}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Deprovisioned {count} expired kafka(s)[/green]")


@app.command("deprovision-users")
def deprovision_users(
    users: list[str] = typer.Argument(..., help="Owners whose Kafkas to deprovision"),
    config_path: str | None = typer.Option(None, "--config", help="Fleet YAML"),
) -> None:
    """Deprovision every Kafka owned by the given users."""
    service = _service(config_path)
    try:
        count = service.deprovision_kafka_for_users(users)
    except ServiceError as exc:
        console.print(f"[red]{exc.error_code}:[/red] {exc.reason}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Deprovisioned {count} kafka(s)[/green]")


@app.command("init-db")
def init_db(
    config_path: str | None = typer.Option(None, "--config", help="Fleet YAML"),
) -> None:
    """Create the request store schema."""
    _service(config_path, init_schema=True)
    console.print("[green]Schema ready[/green]")


@app.command()
def health(
    config_path: str | None = typer.Option(None, "--config", help="Fleet YAML"),
) -> None:
    """Check health of the fleet manager's dependencies."""
    config = _load(config_path)
    result = check_fleet_health(config, make_engine(config.database))

    table = Table(title="Fleet Health")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")

    for c in result.components:
        style = "green" if c.status == Status.HEALTHY else "red"
        table.add_row(c.name, f"[{style}]{c.status}[/{style}]", c.detail)

    console.print(table)
    if not result.healthy:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
