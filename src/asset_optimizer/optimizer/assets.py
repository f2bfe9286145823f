"""Asset store contract, asset selection and the bundled store implementations."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from asset_optimizer.optimizer.sources import RawSource, Source, SourceMapSource

logger = logging.getLogger(__name__)

DEFAULT_TEST_PATTERN = re.compile(r"\.[cm]?js(\?.*)?$", re.IGNORECASE)

MatchPart = str | re.Pattern[str]
MatchCondition = MatchPart | Sequence[MatchPart] | None


@dataclass(slots=True, frozen=True)
class AssetMatcher:
    """Select asset names by ``test``/``include``/``exclude`` conditions.

    A string condition matches names starting with it, a regex is searched in
    the name, and a sequence matches when any element does.
    """

    test: tuple[MatchPart, ...] = (DEFAULT_TEST_PATTERN,)
    include: tuple[MatchPart, ...] = ()
    exclude: tuple[MatchPart, ...] = ()

    @classmethod
    def build(
        cls,
        *,
        test: MatchCondition = None,
        include: MatchCondition = None,
        exclude: MatchCondition = None,
    ) -> AssetMatcher:
        return cls(
            test=_normalize_condition(test) or (DEFAULT_TEST_PATTERN,),
            include=_normalize_condition(include),
            exclude=_normalize_condition(exclude),
        )

    def matches(self, name: str) -> bool:
        if self.test and not _match_any(name, self.test):
            return False
        if self.include and not _match_any(name, self.include):
            return False
        return not (self.exclude and _match_any(name, self.exclude))

    def __call__(self, name: str) -> bool:
        return self.matches(name)


def _normalize_condition(condition: MatchCondition) -> tuple[MatchPart, ...]:
    if condition is None:
        return ()
    if isinstance(condition, (str, re.Pattern)):
        return (condition,)
    parts: list[MatchPart] = []
    for part in condition:
        if not isinstance(part, (str, re.Pattern)):
            raise TypeError(f"Unsupported match condition: {part!r}")
        parts.append(part)
    return tuple(parts)


def _match_any(name: str, parts: Iterable[MatchPart]) -> bool:
    for part in parts:
        if isinstance(part, str):
            if name.startswith(part):
                return True
        elif part.search(name):
            return True
    return False


@dataclass(slots=True)
class Asset:
    """Named build output with metadata."""

    name: str
    source: Source
    info: dict[str, Any] = field(default_factory=dict)


class AssetStore(Protocol):
    """Collaborator that owns build assets."""

    def list(self, matcher: AssetMatcher) -> list[str]:
        """Return names of assets selected by ``matcher``."""

    def get(self, name: str) -> Asset | None:
        """Return the asset or ``None`` if it does not exist."""

    def update(self, name: str, source: Source, info: dict[str, Any] | None = None) -> None:
        """Replace asset content and merge ``info`` into its metadata."""

    def emit(self, name: str, source: Source) -> None:
        """Create a new asset."""


class MemoryAssetStore:
    """Dict-backed asset store."""

    def __init__(self, assets: dict[str, str | Source] | None = None) -> None:
        self._assets: dict[str, Asset] = {}
        for name, content in (assets or {}).items():
            self.add(name, content)

    def add(self, name: str, content: str | Source, info: dict[str, Any] | None = None) -> None:
        source = RawSource(content) if isinstance(content, str) else content
        self._assets[name] = Asset(name=name, source=source, info=dict(info or {}))

    def list(self, matcher: AssetMatcher) -> list[str]:
        return [name for name in self._assets if matcher.matches(name)]

    def get(self, name: str) -> Asset | None:
        return self._assets.get(name)

    def update(self, name: str, source: Source, info: dict[str, Any] | None = None) -> None:
        asset = self._assets.get(name)
        if asset is None:
            raise KeyError(f"Asset not found: {name}")
        asset.source = source
        if info:
            asset.info.update(info)

    def emit(self, name: str, source: Source) -> None:
        if name in self._assets:
            raise ValueError(f"Asset already exists: {name}")
        self._assets[name] = Asset(name=name, source=source)

    def names(self) -> list[str]:
        return list(self._assets)

    def __iter__(self) -> Iterator[Asset]:
        return iter(list(self._assets.values()))


class DirectoryAssetStore:
    """Assets read from a build directory; changes are written by ``flush``.

    An adjacent ``<asset>.map`` file is picked up as the input source map.
    """

    def __init__(
        self,
        root_dir: Path,
        *,
        output_dir: Path | None = None,
        encoding: str = "utf-8",
    ) -> None:
        self.root_dir = root_dir
        self.output_dir = output_dir or root_dir
        self.encoding = encoding
        self._loaded: dict[str, Asset] = {}
        self._dirty: set[str] = set()

    def list(self, matcher: AssetMatcher) -> list[str]:
        names = [
            path.relative_to(self.root_dir).as_posix()
            for path in sorted(self.root_dir.rglob("*"))
            if path.is_file()
        ]
        names.extend(name for name in self._loaded if name not in names)
        return [name for name in names if matcher.matches(name)]

    def get(self, name: str) -> Asset | None:
        asset = self._loaded.get(name)
        if asset is not None:
            return asset
        path = self.root_dir / name
        if not path.is_file():
            return None
        code = path.read_text(self.encoding)
        source_map = self._read_map(path)
        source: Source = (
            SourceMapSource(code, name, source_map) if source_map is not None else RawSource(code)
        )
        asset = Asset(name=name, source=source)
        self._loaded[name] = asset
        return asset

    def update(self, name: str, source: Source, info: dict[str, Any] | None = None) -> None:
        asset = self.get(name)
        if asset is None:
            raise KeyError(f"Asset not found: {name}")
        asset.source = source
        if info:
            asset.info.update(info)
        self._dirty.add(name)

    def emit(self, name: str, source: Source) -> None:
        if self.get(name) is not None:
            raise ValueError(f"Asset already exists: {name}")
        self._loaded[name] = Asset(name=name, source=source)
        self._dirty.add(name)

    def flush(self) -> list[Path]:
        """Write changed assets (and their maps) under ``output_dir``."""

        written: list[Path] = []
        for name in sorted(self._dirty):
            asset = self._loaded[name]
            target = self.output_dir / name
            target.parent.mkdir(parents=True, exist_ok=True)
            code, source_map = asset.source.source_and_map()
            target.write_text(code, self.encoding)
            written.append(target)
            if source_map is not None:
                map_path = target.with_name(f"{target.name}.map")
                map_path.write_text(json.dumps(source_map, ensure_ascii=False), "utf-8")
                written.append(map_path)
        self._dirty.clear()
        logger.info("Wrote %d file(s) to %s", len(written), self.output_dir)
        return written

    def _read_map(self, path: Path) -> dict[str, Any] | None:
        map_path = path.with_name(f"{path.name}.map")
        if not map_path.is_file():
            return None
        try:
            payload = json.loads(map_path.read_text("utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            logger.warning("Ignoring unreadable source map %s: %s", map_path, error)
            return None
        return payload if isinstance(payload, dict) else None
