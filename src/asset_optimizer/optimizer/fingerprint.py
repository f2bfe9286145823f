"""Content fingerprints used as cache keys."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from asset_optimizer.optimizer.sources import Source

if TYPE_CHECKING:
    from asset_optimizer.optimizer.options import EffectiveConfig

FINGERPRINT_VERSION = 1


def etag_of(content: str | bytes | Source) -> str:
    """Stable sha256 digest of content; a ``Source`` also folds in its map."""

    digest = hashlib.sha256()
    if isinstance(content, Source):
        code, source_map = content.source_and_map()
        digest.update(code.encode("utf-8"))
        if source_map is not None:
            digest.update(b"\0")
            digest.update(_canonical_json(source_map).encode("utf-8"))
    elif isinstance(content, bytes):
        digest.update(content)
    else:
        digest.update(content.encode("utf-8"))
    return digest.hexdigest()


def combine_etags(first: str, second: str) -> str:
    """Combine two etags; ``combine(a, b)`` and ``combine(b, a)`` differ."""

    return hashlib.sha256(f"{first}|{second}".encode()).hexdigest()


def config_digest(cache_keys: dict[str, Any]) -> str:
    """Digest of the configuration that influences minification output."""

    payload = {"fingerprint_version": FINGERPRINT_VERSION, "keys": cache_keys}
    return hashlib.sha256(_canonical_json(payload).encode("utf-8")).hexdigest()


def _canonical_json(value: Any) -> str:
    return json.dumps(
        value,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        default=_stable_default,
    )


def _stable_default(value: Any) -> str:
    if callable(value):
        module = getattr(value, "__module__", None) or ""
        qualname = getattr(value, "__qualname__", None) or type(value).__qualname__
        return f"{module}:{qualname}"
    if isinstance(value, (set, frozenset)):
        return repr(sorted(value, key=repr))
    return repr(value)


class Fingerprinter:
    """Derive per-asset etags from content and the configuration digest."""

    def __init__(
        self,
        config: EffectiveConfig,
        *,
        etag_fn: Callable[[str | bytes | Source], str] = etag_of,
        combine_fn: Callable[[str, str], str] = combine_etags,
    ) -> None:
        self.config = config
        self._etag_fn = etag_fn
        self._combine_fn = combine_fn

    def etag(self, name: str, source: Source) -> str:
        content = self._etag_fn(source)
        return self._combine_fn(content, config_digest(self.config.cache_keys_for(name)))
