"""Fold per-asset extracted comments into shared comments files."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from asset_optimizer.optimizer.assets import AssetStore
from asset_optimizer.optimizer.cache import CacheStore
from asset_optimizer.optimizer.sources import RawSource, Source

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n\n"


@dataclass(slots=True, frozen=True)
class CommentEntry:
    """Extracted comments of one optimized asset."""

    name: str
    comments_filename: str
    source: Source


@dataclass(slots=True, frozen=True)
class CommentAccumulator:
    """State carried between fold steps.

    ``label`` names the contributors merged so far, joined with ``|``.
    """

    comments_filename: str | None = None
    label: str = ""
    source: Source | None = None


def merge_comment_sources(previous: str, current: str) -> str:
    """Union of blank-line separated blocks, first occurrence order kept."""

    blocks: list[str] = []
    seen: set[str] = set()
    for text in (previous, current):
        for block in text.rstrip("\n").split(BLOCK_SEPARATOR):
            if not block or block in seen:
                continue
            seen.add(block)
            blocks.append(block)
    return BLOCK_SEPARATOR.join(blocks) + "\n"


class CommentMerger:
    """Writes each comments file once per destination, independent of completion order."""

    def __init__(self, store: AssetStore, cache: CacheStore) -> None:
        self.store = store
        self.cache = cache

    def merge(self, entries: Iterable[CommentEntry]) -> list[str]:
        """Fold ``entries`` in asset-name order; returns the comments files touched."""

        touched: list[str] = []
        accumulator = CommentAccumulator()
        for entry in sorted(entries, key=lambda item: item.name):
            accumulator = self.step(accumulator, entry)
            if accumulator.comments_filename not in touched:
                touched.append(accumulator.comments_filename)
        return touched

    def step(self, accumulator: CommentAccumulator, entry: CommentEntry) -> CommentAccumulator:
        if accumulator.source is not None and (
            accumulator.comments_filename == entry.comments_filename
        ):
            return self._merge_into(accumulator.source, accumulator.label, entry)

        existing = self.store.get(entry.comments_filename)
        if existing is not None:
            logger.debug(
                "Comments file %s already exists; adopting it for %s",
                entry.comments_filename,
                entry.name,
            )
            return CommentAccumulator(
                comments_filename=entry.comments_filename,
                label=entry.comments_filename,
                source=existing.source,
            )

        self.store.emit(entry.comments_filename, entry.source)
        return CommentAccumulator(
            comments_filename=entry.comments_filename,
            label=entry.name,
            source=entry.source,
        )

    def _merge_into(
        self,
        previous: Source,
        previous_label: str,
        entry: CommentEntry,
    ) -> CommentAccumulator:
        label = f"{previous_label}|{entry.name}"
        cache_name = f"{entry.comments_filename}|{label}"
        # Combination order is always (accumulator, entry).
        etag = self.cache.combine_etags(
            self.cache.etag_of(previous),
            self.cache.etag_of(entry.source),
        )
        merged = self.cache.lookup(cache_name, etag)
        if not isinstance(merged, Source):
            merged = RawSource(merge_comment_sources(previous.source(), entry.source.source()))
            self.cache.store(cache_name, etag, merged)
        self.store.update(entry.comments_filename, merged)
        return CommentAccumulator(
            comments_filename=entry.comments_filename,
            label=label,
            source=merged,
        )
