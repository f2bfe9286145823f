"""SQLite-backed cache store that persists optimization results across builds."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from sqlalchemy import func
from sqlmodel import Session, SQLModel, col, delete, select

from asset_optimizer.optimizer.cache import (
    BaseCacheStore,
    CacheValue,
    decode_cache_value,
    encode_cache_value,
)
from asset_optimizer.storage.common import DEFAULT_BUSY_TIMEOUT_MS, build_cache_engine, utc_now
from asset_optimizer.storage.sqlmodel_models import CacheEntry

logger = logging.getLogger(__name__)


class SqliteCacheStore(BaseCacheStore):
    """Cache store persisted in a SQLite database via SQLModel."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self.db_path = db_path
        self.engine = build_cache_engine(db_path, busy_timeout_ms=busy_timeout_ms)
        SQLModel.metadata.create_all(self.engine, tables=[CacheEntry.__table__])

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> SqliteCacheStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def lookup(self, name: str, etag: str) -> CacheValue | None:
        with Session(self.engine) as session:
            entry = session.exec(
                select(CacheEntry).where(
                    CacheEntry.name == name,
                    CacheEntry.etag == etag,
                ),
            ).one_or_none()
            if entry is None:
                return None
            kind = entry.kind
            payload_json = entry.payload_json
        try:
            payload = json.loads(payload_json)
            return decode_cache_value(kind, payload)
        except (TypeError, ValueError, KeyError) as error:
            logger.warning("Discarding unreadable cache entry %s (%s): %s", name, etag, error)
            return None

    def store(self, name: str, etag: str, value: CacheValue) -> None:
        kind, payload = encode_cache_value(value)
        payload_json = json.dumps(payload, ensure_ascii=False, sort_keys=True)
        with Session(self.engine) as session:
            entry = session.exec(
                select(CacheEntry).where(
                    CacheEntry.name == name,
                    CacheEntry.etag == etag,
                ),
            ).one_or_none()
            if entry is None:
                entry = CacheEntry(
                    name=name,
                    etag=etag,
                    kind=kind,
                    payload_json=payload_json,
                    created_at=utc_now(),
                )
            else:
                entry.kind = kind
                entry.payload_json = payload_json
            session.add(entry)
            session.commit()

    def count(self) -> int:
        with Session(self.engine) as session:
            return int(session.exec(select(func.count()).select_from(CacheEntry)).one())

    def clear(self, *, name_prefix: str | None = None) -> int:
        """Delete entries (optionally only those whose name starts with ``name_prefix``)."""

        with Session(self.engine) as session:
            statement = select(func.count()).select_from(CacheEntry)
            if name_prefix:
                statement = statement.where(col(CacheEntry.name).startswith(name_prefix))
            deleted = int(session.exec(statement).one())
            if deleted:
                removal = delete(CacheEntry)
                if name_prefix:
                    removal = removal.where(col(CacheEntry.name).startswith(name_prefix))
                session.exec(removal)
                session.commit()
        return deleted
