"""Coordinates one optimization run over an asset store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial

from asset_optimizer.optimizer.assets import AssetStore
from asset_optimizer.optimizer.cache import CacheStore, MemoryCacheStore, NullCacheStore
from asset_optimizer.optimizer.comments import CommentEntry, CommentMerger
from asset_optimizer.optimizer.errors import OptimizationError, RequestShortener, build_error
from asset_optimizer.optimizer.fingerprint import Fingerprinter
from asset_optimizer.optimizer.models import OptimizationResult, OptimizationTask
from asset_optimizer.optimizer.options import EffectiveConfig
from asset_optimizer.optimizer.pool import PoolFactory, WorkerPool, open_worker_pool
from asset_optimizer.optimizer.result_processor import ResultProcessor
from asset_optimizer.optimizer.sourcemap import (
    SourceMapConsumer,
    SourceMapError,
    is_decodable_source_map,
    is_source_map,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunReport:
    """Outcome of one run; per-asset failures are collected, never raised."""

    optimized: list[str] = field(default_factory=list)
    cached: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[OptimizationError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    comment_files: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class AssetOptimizer:
    """Minify every matching asset, reusing cached results, then merge comments files."""

    def __init__(
        self,
        config: EffectiveConfig,
        cache: CacheStore | None = None,
        *,
        pool_factory: PoolFactory = open_worker_pool,
        shortener: RequestShortener | None = None,
    ) -> None:
        self.config = config
        if not config.cache:
            self.cache: CacheStore = NullCacheStore()
        else:
            self.cache = cache if cache is not None else MemoryCacheStore()
        self.pool_factory = pool_factory
        self.shortener = shortener or RequestShortener()
        self.processor = ResultProcessor(config)
        self.fingerprinter = Fingerprinter(
            config,
            etag_fn=self.cache.etag_of,
            combine_fn=self.cache.combine_etags,
        )

    def run(self, store: AssetStore) -> RunReport:
        return asyncio.run(self.optimize(store))

    async def optimize(self, store: AssetStore) -> RunReport:
        report = RunReport()
        pending: list[str] = []
        for name in store.list(self.config.matcher):
            asset = store.get(name)
            if asset is None:
                continue
            # Assets minimized by an earlier pass are left untouched.
            if asset.info.get("minimized"):
                report.skipped.append(name)
                continue
            pending.append(name)

        if not pending:
            logger.info("Nothing to optimize (%d skipped)", len(report.skipped))
            return report

        logger.info("Optimizing %d asset(s), %d skipped", len(pending), len(report.skipped))
        comments: dict[str, CommentEntry] = {}
        async with self.pool_factory(self.config.parallel, len(pending)) as (pool, limiter):
            outcomes = await asyncio.gather(
                *(
                    limiter.run(partial(self._optimize_asset, store, name, pool, report, comments))
                    for name in pending
                ),
                return_exceptions=True,
            )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        if comments:
            merger = CommentMerger(store, self.cache)
            report.comment_files = merger.merge(comments.values())

        logger.info(
            "Optimization finished: optimized=%d cached=%d skipped=%d failed=%d",
            len(report.optimized),
            len(report.cached),
            len(report.skipped),
            len(report.errors),
        )
        return report

    async def _optimize_asset(  # noqa: PLR0913
        self,
        store: AssetStore,
        name: str,
        pool: WorkerPool,
        report: RunReport,
        comments: dict[str, CommentEntry],
    ) -> None:
        asset = store.get(name)
        if asset is None:
            return
        text, input_map = asset.source.source_and_map()
        if input_map is not None and not is_decodable_source_map(input_map):
            message = f"{name} contains invalid source map"
            logger.warning("%s", message)
            report.warnings.append(message)

        task = OptimizationTask(
            name=name,
            input=text,
            config=self.config,
            input_source_map=input_map,
            minifier_options=self.config.options_for(name),
        )
        etag = self.fingerprinter.etag(name, asset.source)

        cached = await asyncio.to_thread(self.cache.lookup, name, etag)
        if isinstance(cached, OptimizationResult):
            logger.debug("Cache hit for %s", name)
            result = cached
            report.cached.append(name)
        else:
            logger.debug("Cache miss for %s", name)
            try:
                output = await pool.transform(task)
            except Exception as error:  # noqa: BLE001
                failure = build_error(error, name, _consumer_for(input_map), self.shortener)
                logger.warning("Failed to minify %s: %s", name, failure.message)
                report.errors.append(failure)
                return
            result = self.processor.process(task, output)
            await asyncio.to_thread(self.cache.store, name, etag, result)
            report.optimized.append(name)

        info: dict[str, object] = {"minimized": True}
        if result.extracted_comments_source is not None and result.comments_filename:
            info["related"] = {"license": result.comments_filename}
            comments[name] = CommentEntry(
                name=name,
                comments_filename=result.comments_filename,
                source=result.extracted_comments_source,
            )
        store.update(name, result.source, info)


def _consumer_for(input_map: object) -> SourceMapConsumer | None:
    if not is_source_map(input_map):
        return None
    try:
        return SourceMapConsumer(input_map)  # type: ignore[arg-type]
    except SourceMapError:
        return None
