"""Database configuration and base setup for Pipeline Dashboard."""

import json
import os
from typing import Any, Generator, Optional

import structlog
from fastapi import Request
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# Default to a local SQLite database when DATABASE_URL is not provided.
DEFAULT_DATABASE_URL = "sqlite:///./pipeline_dashboard.db"


def _ensure_sync_driver(url: URL) -> URL:
    """Force a synchronous driver for Alembic and the ORM engine."""

    if url.drivername.startswith("postgresql+"):
        if any(token in url.drivername for token in ("async", "aiopg")):
            url = url.set(drivername="postgresql+psycopg")
    elif url.drivername == "postgresql":
        url = url.set(drivername="postgresql+psycopg")
    elif url.drivername.startswith("sqlite+"):
        if "aiosqlite" in url.drivername:
            url = url.set(drivername="sqlite")

    return url


def get_database_url(raw_url: Optional[str] = None) -> str:
    """Return a database URL with a guaranteed synchronous driver."""

    url = make_url(raw_url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL)
    # str(url) masks the password, which breaks authentication
    return _ensure_sync_driver(url).render_as_string(hide_password=False)


# ============================================================================
# SQLite JSON helpers
# ============================================================================


def json_contains(document: Any, fragment: Any) -> bool:
    """Mirror PostgreSQL's ``jsonb @> jsonb`` containment rules.

    Objects contain an object when every key of the fragment is present and
    its value is contained. Arrays contain an array when every element of the
    fragment is contained by some element. An array also contains a bare
    scalar it holds directly. Scalars only contain equal scalars of the same
    JSON type.
    """
    if isinstance(fragment, dict):
        if not isinstance(document, dict):
            return False
        return all(
            key in document and json_contains(document[key], value)
            for key, value in fragment.items()
        )

    if isinstance(fragment, list):
        if not isinstance(document, list):
            return False
        return all(
            any(json_contains(candidate, item) for candidate in document)
            for item in fragment
        )

    if isinstance(document, list):
        return any(
            not isinstance(candidate, (dict, list)) and json_contains(candidate, fragment)
            for candidate in document
        )

    # bool is a subclass of int; JSON keeps them apart
    if isinstance(document, bool) or isinstance(fragment, bool):
        return isinstance(document, bool) and isinstance(fragment, bool) and document == fragment

    return document == fragment


def _sqlite_json_contains(document: Optional[str], fragment: Optional[str]) -> int:
    if document is None or fragment is None:
        return 0
    try:
        return int(json_contains(json.loads(document), json.loads(fragment)))
    except ValueError:
        return 0


def _sqlite_json_has_key(document: Optional[str], key: Optional[str]) -> int:
    if document is None or key is None:
        return 0
    try:
        value = json.loads(document)
    except ValueError:
        return 0
    return int(isinstance(value, dict) and key in value)


def _register_sqlite_functions(dbapi_connection: Any, connection_record: Any) -> None:
    dbapi_connection.create_function("json_contains", 2, _sqlite_json_contains, deterministic=True)
    dbapi_connection.create_function("json_has_key", 2, _sqlite_json_has_key, deterministic=True)


# ============================================================================
# Database handle
# ============================================================================


class Database:
    """Engine and session factory for one database.

    Built once per process (API lifespan, CLI command or test fixture) and
    shared by reference; every unit of work opens its own session.
    """

    def __init__(self, url: Optional[str] = None, statement_timeout_ms: int = 0):
        self.url = get_database_url(url)

        if self.url.startswith("sqlite"):
            # SQLite configuration for development/testing
            self.engine: Engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            event.listen(self.engine, "connect", _register_sqlite_functions)
        else:
            # PostgreSQL configuration for production
            connect_args = {"connect_timeout": 10}
            if statement_timeout_ms > 0:
                connect_args["options"] = f"-c statement_timeout={statement_timeout_ms}"
            self.engine = create_engine(
                self.url,
                pool_size=20,
                max_overflow=30,
                pool_pre_ping=True,
                pool_recycle=3600,
                connect_args=connect_args,
            )

        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def session(self) -> Session:
        return self.session_factory()

    def create_all(self) -> None:
        """Create every table known to the models module."""
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("database_initialized", dialect=self.dialect_name)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.error("database_ping_failed", error=str(exc))
            return False

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency to get a database session for the current request."""
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
