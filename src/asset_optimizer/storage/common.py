"""SQLite engine policy for the result cache."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import create_engine

DEFAULT_BUSY_TIMEOUT_MS = 5_000
# Cache entries are recomputable; WAL commits are not fsynced.
CACHE_SYNCHRONOUS_MODE = "NORMAL"


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def build_cache_engine(
    db_path: Path,
    *,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> Engine:
    """Engine for a cache database shared by concurrent builds of one project."""

    if busy_timeout_ms <= 0:
        raise ValueError(f"busy_timeout_ms must be > 0, got {busy_timeout_ms}")
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={
            # Cache lookups and writes run on asyncio.to_thread workers.
            "check_same_thread": False,
            "timeout": busy_timeout_ms / 1000.0,
        },
        poolclass=NullPool,
    )
    event.listen(
        engine,
        "connect",
        lambda dbapi_connection, _: _configure_cache_connection(
            dbapi_connection,
            busy_timeout_ms=busy_timeout_ms,
        ),
    )
    return engine


def _configure_cache_connection(
    dbapi_connection: sqlite3.Connection,
    *,
    busy_timeout_ms: int,
) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute(f"PRAGMA synchronous = {CACHE_SYNCHRONOUS_MODE}")
    cursor.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
    cursor.close()
