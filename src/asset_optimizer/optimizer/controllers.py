"""Controllers for optimizer CLI commands."""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from asset_optimizer.config import Settings
from asset_optimizer.optimizer.assets import DirectoryAssetStore
from asset_optimizer.optimizer.options import derive_effective_config
from asset_optimizer.optimizer.runner import AssetOptimizer, RunReport
from asset_optimizer.storage.repository import SqliteCacheStore


@dataclass(slots=True)
class MinifyCommand:
    """CLI input for one optimization run over a build directory."""

    build_dir: Path
    output_dir: Path | None = None
    cache_path: Path | None = None
    cache: bool | None = None
    parallel: int | None = None
    no_parallel: bool = False
    test: tuple[str, ...] = ()
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    extract_comments: bool | None = None
    comments_filename: str | None = None
    banner: str | None = None
    no_banner: bool = False
    minifier_options: tuple[str, ...] = ()


@dataclass(slots=True)
class MinifyResult:
    """Run report rendered for the CLI."""

    lines: list[str]
    success: bool


@dataclass(slots=True)
class CacheCommand:
    """CLI input for cache maintenance."""

    cache_path: Path | None
    name_prefix: str | None = None


class OptimizerCliController:
    """Coordinates optimization runs and cache maintenance for the CLI."""

    def minify(self, command: MinifyCommand) -> MinifyResult:
        settings = _apply_overrides(Settings.from_env(cache_path=command.cache_path), command)
        settings.validate()

        options = settings.to_options()
        if command.test:
            options.test = [re.compile(pattern, re.IGNORECASE) for pattern in command.test]
        options.include = list(command.include) or None
        options.exclude = list(command.exclude) or None
        config = derive_effective_config(options)

        store = DirectoryAssetStore(command.build_dir, output_dir=command.output_dir)
        with _cache_store(settings) as cache:
            report = AssetOptimizer(config, cache).run(store)
        written = store.flush()
        return MinifyResult(
            lines=render_report_lines(report, written_files=len(written)),
            success=report.success,
        )

    def cache_info(self, command: CacheCommand) -> list[str]:
        settings = Settings.from_env(cache_path=command.cache_path)
        with SqliteCacheStore(settings.cache.path) as cache:
            entries = cache.count()
        return [f"Cache: path={settings.cache.path} entries={entries}"]

    def cache_clear(self, command: CacheCommand) -> list[str]:
        settings = Settings.from_env(cache_path=command.cache_path)
        with SqliteCacheStore(settings.cache.path) as cache:
            deleted = cache.clear(name_prefix=command.name_prefix)
        return [f"Cache cleared: path={settings.cache.path} deleted={deleted}"]


def render_report_lines(report: RunReport, *, written_files: int) -> list[str]:
    lines = [
        "Optimization summary: "
        f"optimized={len(report.optimized)} cached={len(report.cached)} "
        f"skipped={len(report.skipped)} failed={len(report.errors)} "
        f"comment_files={len(report.comment_files)} written={written_files}",
    ]
    lines.extend(f"Warning: {warning}" for warning in report.warnings)
    for error in report.errors:
        lines.append(f"Error: {error.message}")
    return lines


def parse_minifier_options(values: tuple[str, ...]) -> dict[str, Any]:
    """Parse ``KEY=VALUE`` pairs; values are JSON when they parse, strings otherwise."""

    options: dict[str, Any] = {}
    for raw in values:
        key, separator, value = raw.partition("=")
        key = key.strip()
        if not separator or not key:
            raise ValueError(f"Invalid minifier option {raw!r}. Expected format 'key=value'.")
        try:
            options[key] = json.loads(value)
        except json.JSONDecodeError:
            options[key] = value
    return options


def _apply_overrides(settings: Settings, command: MinifyCommand) -> Settings:
    if command.cache is not None:
        settings.cache.enabled = command.cache
    if command.no_parallel:
        settings.parallel.parallel = False
    elif command.parallel is not None:
        settings.parallel.parallel = command.parallel
    if command.extract_comments is not None:
        settings.comments.extract = command.extract_comments
    if command.comments_filename:
        settings.comments.filename = command.comments_filename
    if command.no_banner:
        settings.comments.banner = False
    elif command.banner:
        settings.comments.banner = command.banner
    if command.minifier_options:
        settings.minifier_options.update(parse_minifier_options(command.minifier_options))
    return settings


@contextmanager
def _cache_store(settings: Settings) -> Iterator[SqliteCacheStore | None]:
    if not settings.cache.enabled:
        yield None
        return
    cache = SqliteCacheStore(settings.cache.path, busy_timeout_ms=settings.cache.busy_timeout_ms)
    try:
        yield cache
    finally:
        cache.close()
