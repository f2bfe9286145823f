"""Runtime configuration for the asset optimizer CLI."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from asset_optimizer.optimizer.options import DEFAULT_COMMENTS_FILENAME, OptimizerOptions
from asset_optimizer.storage.common import DEFAULT_BUSY_TIMEOUT_MS


@dataclass(slots=True)
class CacheSettings:
    """Persistent result cache settings."""

    enabled: bool = True
    path: Path = Path(".asset_optimizer_cache.db")
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS


@dataclass(slots=True)
class ParallelSettings:
    """Worker pool sizing."""

    # True uses all cores but one, False or 0 runs in-process.
    parallel: bool | int = True


@dataclass(slots=True)
class CommentSettings:
    """License comment extraction settings."""

    extract: bool = True
    condition: str = "some"
    filename: str = DEFAULT_COMMENTS_FILENAME
    # None keeps the default banner, False disables it.
    banner: str | bool | None = None


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    cache: CacheSettings = field(default_factory=CacheSettings)
    parallel: ParallelSettings = field(default_factory=ParallelSettings)
    comments: CommentSettings = field(default_factory=CommentSettings)
    minifier_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls, cache_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults suitable for local builds."""

        return cls(
            cache=CacheSettings(
                enabled=_env_bool("ASSET_OPTIMIZER_CACHE", default=True),
                path=cache_path
                or Path(os.getenv("ASSET_OPTIMIZER_CACHE_PATH", ".asset_optimizer_cache.db")),
                busy_timeout_ms=int(
                    os.getenv("ASSET_OPTIMIZER_CACHE_BUSY_TIMEOUT_MS", str(DEFAULT_BUSY_TIMEOUT_MS)),
                ),
            ),
            parallel=ParallelSettings(
                parallel=_env_parallel("ASSET_OPTIMIZER_PARALLEL", default=True),
            ),
            comments=CommentSettings(
                extract=_env_bool("ASSET_OPTIMIZER_EXTRACT_COMMENTS", default=True),
                condition=os.getenv("ASSET_OPTIMIZER_COMMENTS_CONDITION", "some"),
                filename=os.getenv("ASSET_OPTIMIZER_COMMENTS_FILENAME", DEFAULT_COMMENTS_FILENAME),
                banner=_env_banner("ASSET_OPTIMIZER_BANNER"),
            ),
            minifier_options=_env_json_object("ASSET_OPTIMIZER_MINIFIER_OPTIONS"),
        )

    def validate(self) -> None:
        """Raise configuration error if settings are inconsistent."""

        if self.cache.busy_timeout_ms <= 0:
            raise ValueError("ASSET_OPTIMIZER_CACHE_BUSY_TIMEOUT_MS must be > 0.")
        parallel = self.parallel.parallel
        if not isinstance(parallel, bool) and parallel < 0:
            raise ValueError("ASSET_OPTIMIZER_PARALLEL must be a boolean or an integer >= 0.")
        if not self.comments.condition.strip():
            raise ValueError("ASSET_OPTIMIZER_COMMENTS_CONDITION must not be empty.")
        if not self.comments.filename.strip():
            raise ValueError("ASSET_OPTIMIZER_COMMENTS_FILENAME must not be empty.")

    def to_options(self) -> OptimizerOptions:
        """Build optimizer options from settings."""

        extract_comments: bool | dict[str, Any] = False
        if self.comments.extract:
            extract_comments = {
                "condition": self.comments.condition,
                "filename": self.comments.filename,
                "banner": self.comments.banner,
            }
        return OptimizerOptions(
            extract_comments=extract_comments,
            cache=self.cache.enabled,
            parallel=self.parallel.parallel,
            minifier_options=dict(self.minifier_options),
        )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return _parse_bool(name, value)


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")


def _env_parallel(name: str, default: bool | int) -> bool | int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    stripped = value.strip()
    if stripped.lstrip("-").isdigit():
        count = int(stripped)
        if count < 0:
            raise ValueError(f"{name} must be >= 0, got {count}")
        return count
    return _parse_bool(name, stripped)


def _env_banner(name: str) -> str | bool | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    normalized = value.strip().lower()
    if normalized in {"0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return None
    return value


def _env_json_object(name: str) -> dict[str, Any]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as error:
        raise ValueError(f"Invalid JSON in {name}: {error}") from error
    if not isinstance(payload, dict):
        raise ValueError(f"{name} must be a JSON object")
    return payload
