"""Engine and session factory for the request store."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from fleet_manager.config.models import DatabaseConfig
from fleet_manager.db.models import Base


def make_engine(config: DatabaseConfig) -> Engine:
    url = config.url.get_secret_value()
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=config.echo,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        url,
        echo=config.echo,
        pool_pre_ping=True,
        pool_size=config.pool_size,
        pool_recycle=3600,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_schema(engine: Engine) -> None:
    """Create the kafka_requests table if it does not exist."""
    Base.metadata.create_all(engine)
