from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Set

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chirp.lib.config import DatabaseConfig

from .tables import metadata


MigrationFn = Callable[[Connection], None]


@dataclass(frozen=True)
class Migration:
    version: str
    upgrade: MigrationFn


_MIGRATIONS: List[Migration] = []


def register_migration(version: str, upgrade: MigrationFn) -> None:
    """Register a migration step; versions must be unique."""
    if any(m.version == version for m in _MIGRATIONS):
        raise ValueError(f"Migration '{version}' already registered")
    _MIGRATIONS.append(Migration(version, upgrade))
    _MIGRATIONS.sort(key=lambda m: m.version)


def _database_url(config: DatabaseConfig) -> str:
    if config.name == ":memory:":
        return "sqlite://"
    database_dir = Path(config.path)
    database_dir.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{database_dir / config.name}"


def _sqlite_connect_pragmas(dbapi_connection, _connection_record) -> None:  # type: ignore[override]
    """Apply pragmas that keep SQLite sturdy and fast."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def _ensure_schema_table(connection: Connection) -> None:
    connection.execute(
        text(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version TEXT PRIMARY KEY,
                applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
    )


def _applied_versions(connection: Connection) -> Set[str]:
    result = connection.execute(text("SELECT version FROM schema_migrations"))
    return {row[0] for row in result}


def _record_version(connection: Connection, version: str) -> None:
    connection.execute(
        text("INSERT INTO schema_migrations(version) VALUES (:version)"),
        {"version": version},
    )


def run_migrations(engine: Engine) -> None:
    """Apply any outstanding migrations."""
    migrations = list(_MIGRATIONS)
    if not migrations:
        return

    with engine.begin() as connection:
        _ensure_schema_table(connection)
        applied = _applied_versions(connection)
        for migration in migrations:
            if migration.version in applied:
                continue
            migration.upgrade(connection)
            _record_version(connection, migration.version)


class Database:
    """
    Engine and session factory for one configured database.

    Owned by the surrounding service (API startup or CLI), which passes it to
    the repositories that need it and disposes it on shutdown.
    """

    def __init__(self, config: DatabaseConfig, *, echo: bool = False) -> None:
        engine_name = (config.engine or "sqlite").lower()
        if engine_name != "sqlite":
            raise ValueError(f"Unsupported database engine '{config.engine}'")

        url = _database_url(config)
        connect_args = {"check_same_thread": False}
        if url == "sqlite://":
            self._engine = create_engine(url, echo=echo, connect_args=connect_args, poolclass=StaticPool)
        else:
            self._engine = create_engine(url, echo=echo, connect_args=connect_args)
        event.listen(self._engine, "connect", _sqlite_connect_pragmas)
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        return self._engine

    def initialize(self) -> "Database":
        run_migrations(self._engine)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )
        return self

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database is not initialized")
        return self._session_factory()

    def dispose(self) -> None:
        self._engine.dispose()


def _initial_schema(connection: Connection) -> None:
    metadata.create_all(connection)


def _column_exists(connection: Connection, table: str, column: str) -> bool:
    result = connection.execute(text(f'PRAGMA table_info("{table}")'))
    return any(row[1] == column for row in result)


def _upgrade_0002_subscription_updated_at(connection: Connection) -> None:
    if not _column_exists(connection, "email_subscriptions", "updated_at"):
        connection.execute(text("ALTER TABLE email_subscriptions ADD COLUMN updated_at TIMESTAMP"))
        connection.execute(text("UPDATE email_subscriptions SET updated_at = created_at"))


# Register migrations at import time.
register_migration("0001_initial", _initial_schema)
register_migration("0002_subscription_updated_at", _upgrade_0002_subscription_updated_at)
