"""SQLModel ORM tables for the optimizer cache."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel


class CacheEntry(SQLModel, table=True):
    __tablename__ = "cache_entries"  # type: ignore[bad-override]

    name: str = Field(primary_key=True)
    etag: str = Field(primary_key=True)
    kind: str = Field(index=True)
    payload_json: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
