"""Immutable asset content wrappers with optional source maps."""

from __future__ import annotations

import logging
from typing import Any

from asset_optimizer.optimizer.sourcemap import (
    SourceMapError,
    compose_source_maps,
    concat_source_maps,
    is_source_map,
)

logger = logging.getLogger(__name__)


class Source:
    """Base class for asset content."""

    def source(self) -> str:
        raise NotImplementedError

    def map(self) -> dict[str, Any] | None:
        return None

    def source_and_map(self) -> tuple[str, dict[str, Any] | None]:
        return self.source(), self.map()

    def size(self) -> int:
        return len(self.source().encode("utf-8"))

    def to_dict(self) -> dict[str, Any]:
        """Flatten into a JSON-safe payload restorable via ``source_from_dict``."""

        code, source_map = self.source_and_map()
        payload: dict[str, Any] = {"code": code}
        if source_map is not None:
            payload["map"] = source_map
        return payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Source):
            return NotImplemented
        return self.source_and_map() == other.source_and_map()

    def __hash__(self) -> int:
        return hash(self.source())

    def __repr__(self) -> str:
        preview = self.source()[:40]
        return f"{type(self).__name__}({preview!r})"


class RawSource(Source):
    """Plain text without a source map."""

    def __init__(self, text: str) -> None:
        self._text = text

    def source(self) -> str:
        return self._text


class SourceMapSource(Source):
    """Minified code with the minifier's map, chained through the input map if given."""

    def __init__(  # noqa: PLR0913
        self,
        code: str,
        name: str,
        source_map: dict[str, Any] | None,
        original_source: str | None = None,
        original_map: dict[str, Any] | None = None,
    ) -> None:
        self._code = code
        self.name = name
        self._map = source_map
        self.original_source = original_source
        self.original_map = original_map
        self._resolved: dict[str, Any] | None = None

    def source(self) -> str:
        return self._code

    def map(self) -> dict[str, Any] | None:
        if self._map is None or not is_source_map(self._map):
            return self._map
        if self._resolved is None:
            self._resolved = dict(self._map)
            if self.original_map is not None and is_source_map(self.original_map):
                try:
                    self._resolved = compose_source_maps(self._map, self.original_map)
                except SourceMapError as error:
                    logger.warning("Keeping uncomposed source map for %s: %s", self.name, error)
            if self.name:
                self._resolved.setdefault("file", self.name)
        return self._resolved


class ConcatSource(Source):
    """Concatenation of strings and sources; the parts are never mutated."""

    def __init__(self, *parts: str | Source) -> None:
        self.parts: tuple[str | Source, ...] = tuple(part for part in parts if part != "")

    def source(self) -> str:
        return "".join(part if isinstance(part, str) else part.source() for part in self.parts)

    def map(self) -> dict[str, Any] | None:
        chunks: list[tuple[str, dict[str, Any] | None]] = []
        for part in self.parts:
            if isinstance(part, str):
                chunks.append((part, None))
            else:
                chunks.append(part.source_and_map())
        return concat_source_maps(chunks)


def source_from_dict(payload: dict[str, Any]) -> Source:
    """Restore a flattened source produced by ``Source.to_dict``."""

    code = payload.get("code")
    if not isinstance(code, str):
        raise TypeError("cached source payload must contain string 'code'")
    source_map = payload.get("map")
    if source_map is None:
        return RawSource(code)
    return SourceMapSource(code, str(source_map.get("file") or ""), source_map)
