"""Test configuration and fixtures."""

from typing import Generator

import pytest
import structlog
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from pipeline_dashboard.api import create_app
from pipeline_dashboard.config import Settings
from pipeline_dashboard.db.base import Database


@pytest.fixture(autouse=True)
def _reset_structlog() -> Generator[None, None, None]:
    """Drop logging config bound to streams that a test (e.g. CliRunner) closed."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite:///:memory:",
        log_level="WARNING",
        log_format="console",
    )


@pytest.fixture
def database() -> Generator[Database, None, None]:
    """Create a fresh in-memory database for each test."""
    db = Database("sqlite:///:memory:")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database: Database) -> Generator[Session, None, None]:
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def client(settings: Settings, database: Database) -> TestClient:
    """API client bound to the per-test database."""
    return TestClient(create_app(settings=settings, database=database))
