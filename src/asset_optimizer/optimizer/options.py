"""Option normalization and the immutable per-run configuration."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

import rjsmin

from asset_optimizer import __version__
from asset_optimizer.optimizer.assets import AssetMatcher, MatchCondition
from asset_optimizer.optimizer.minify import minify as default_minify

DEFAULT_COMMENTS_FILENAME = "[file].LICENSE.txt[query]"
COMMENT_CONDITIONS = ("some", "all")
_MJS_PATTERN = re.compile(r"\.mjs(\?.*)?$", re.IGNORECASE)
_EXTRACT_COMMENTS_KEYS = frozenset({"condition", "filename", "banner"})

CacheKeysHook = Callable[[dict[str, Any], str], dict[str, Any]]
CommentsFilenameTemplate = str | Callable[[dict[str, str]], str]


class ConfigurationError(ValueError):
    """Invalid optimizer options; raised before any asset is processed."""


class BannerKind(str, Enum):
    """How the license banner is produced."""

    DEFAULT = "default"
    DISABLED = "disabled"
    TEXT = "text"
    CALLABLE = "callable"


def default_banner(asset_name: str, comments_filename: str) -> str:
    """Banner pointing from the asset to its comments file, relative to the asset's directory."""

    base_dir = posixpath.dirname(asset_name.split("?", 1)[0]) or "."
    relative = posixpath.relpath(comments_filename.replace("\\", "/"), base_dir)
    return f"For license information please see {relative}"


@dataclass(slots=True, frozen=True)
class BannerSpec:
    kind: BannerKind = BannerKind.DEFAULT
    text: str = ""
    factory: Callable[[str], str | None] | None = None

    @classmethod
    def from_option(cls, value: object) -> BannerSpec:
        if value is None or value is True:
            return cls()
        if value is False:
            return cls(kind=BannerKind.DISABLED)
        if isinstance(value, str):
            # An empty string falls back to the default banner.
            return cls(kind=BannerKind.TEXT, text=value) if value else cls()
        if callable(value):
            return cls(kind=BannerKind.CALLABLE, factory=value)
        raise ConfigurationError(
            f"extract_comments.banner must be bool, string or callable, got {type(value).__name__}",
        )

    @property
    def enabled(self) -> bool:
        return self.kind is not BannerKind.DISABLED

    def render(self, comments_filename: str, asset_name: str) -> str | None:
        if self.kind is BannerKind.DISABLED:
            return None
        if self.kind is BannerKind.TEXT:
            return self.text
        if self.kind is BannerKind.CALLABLE and self.factory is not None:
            return self.factory(comments_filename) or None
        return default_banner(asset_name, comments_filename)

    def cache_key(self) -> object:
        if self.kind is BannerKind.CALLABLE:
            return {"kind": self.kind.value, "factory": self.factory}
        return {"kind": self.kind.value, "text": self.text}


@dataclass(slots=True, frozen=True)
class ExtractCommentsConfig:
    """Normalized ``extract_comments`` option."""

    enabled: bool = True
    condition: str = "some"
    filename: CommentsFilenameTemplate = DEFAULT_COMMENTS_FILENAME
    banner: BannerSpec = field(default_factory=BannerSpec)

    @classmethod
    def from_option(cls, value: object) -> ExtractCommentsConfig:
        if value is True or value is None:
            return cls()
        if value is False:
            return cls(enabled=False, banner=BannerSpec(kind=BannerKind.DISABLED))
        if isinstance(value, (str, re.Pattern)):
            return cls(condition=_normalize_condition(value))
        if isinstance(value, Mapping):
            unknown = set(value) - _EXTRACT_COMMENTS_KEYS
            if unknown:
                raise ConfigurationError(
                    f"Unknown extract_comments keys: {', '.join(sorted(unknown))}",
                )
            raw_condition = value.get("condition", True)
            if raw_condition is False:
                return cls(enabled=False, banner=BannerSpec(kind=BannerKind.DISABLED))
            filename = value.get("filename") or DEFAULT_COMMENTS_FILENAME
            if not isinstance(filename, str) and not callable(filename):
                raise ConfigurationError("extract_comments.filename must be a string or callable")
            return cls(
                condition="some" if raw_condition is True else _normalize_condition(raw_condition),
                filename=filename,
                banner=BannerSpec.from_option(value.get("banner")),
            )
        raise ConfigurationError(
            f"extract_comments must be bool, string or mapping, got {type(value).__name__}",
        )

    def primitive_condition(self) -> bool | str:
        """Condition handed to the minification primitive (``False`` keeps comments inline)."""

        return self.condition if self.enabled else False

    def cache_key(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "condition": self.condition,
            "filename": self.filename,
            "banner": self.banner.cache_key(),
        }


def _normalize_condition(value: object) -> str:
    if isinstance(value, re.Pattern):
        return value.pattern
    if not isinstance(value, str) or not value:
        raise ConfigurationError("extract_comments.condition must be a non-empty string or regex")
    if value not in COMMENT_CONDITIONS:
        try:
            re.compile(value)
        except re.error as error:
            raise ConfigurationError(
                f"Invalid extract_comments.condition regex {value!r}: {error}",
            ) from error
    return value


@dataclass(slots=True, frozen=True)
class BuildEnvironment:
    """Language features the build output is declared to support."""

    arrow_function: bool = False
    const: bool = False
    destructuring: bool = False
    for_of: bool = False
    module: bool = False
    big_int_literal: bool = False
    dynamic_import: bool = False


def get_ecma_version(environment: BuildEnvironment) -> int:
    """Infer the ECMAScript target; each check may only raise the version."""

    version = 5
    if (
        environment.arrow_function
        or environment.const
        or environment.destructuring
        or environment.for_of
        or environment.module
    ):
        version = max(version, 2015)
    if environment.big_int_literal or environment.dynamic_import:
        version = max(version, 2020)
    return version


@dataclass(slots=True)
class OptimizerOptions:
    """User-facing options as accepted from callers and the CLI."""

    test: MatchCondition = None
    include: MatchCondition = None
    exclude: MatchCondition = None
    extract_comments: object = True
    cache: bool = True
    cache_keys: CacheKeysHook | None = None
    parallel: bool | int = True
    minify: Callable[..., Any] | None = None
    minifier_options: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class EffectiveConfig:
    """Read-only configuration shared by every task of a run."""

    matcher: AssetMatcher
    extract_comments: ExtractCommentsConfig
    minifier_options: Mapping[str, Any]
    minify_fn: Callable[..., Any] = default_minify
    cache: bool = True
    parallel: bool | int = True
    cache_keys_hook: CacheKeysHook | None = None

    def options_for(self, name: str) -> dict[str, Any]:
        options = dict(self.minifier_options)
        if _MJS_PATTERN.search(name):
            options["module"] = True
        return options

    def cache_keys_for(self, name: str) -> dict[str, Any]:
        defaults: dict[str, Any] = {
            "asset-optimizer": __version__,
            "rjsmin": rjsmin.__version__,
            "minify": self.minify_fn,
            "minifier_options": self.options_for(name),
            "extract_comments": self.extract_comments.cache_key(),
        }
        if self.cache_keys_hook is None:
            return defaults
        keys = self.cache_keys_hook(dict(defaults), name)
        if not isinstance(keys, dict):
            raise ConfigurationError("cache_keys hook must return a dict")
        return keys


def derive_effective_config(
    options: OptimizerOptions,
    *,
    environment: BuildEnvironment | None = None,
    output_module: bool | None = None,
) -> EffectiveConfig:
    """Validate options and resolve environment-dependent minifier defaults once."""

    parallel = options.parallel
    if not isinstance(parallel, bool) and (not isinstance(parallel, int) or parallel < 0):
        raise ConfigurationError("parallel must be a boolean or a non-negative integer")
    if options.minify is not None and not callable(options.minify):
        raise ConfigurationError("minify must be callable")
    if options.cache_keys is not None and not callable(options.cache_keys):
        raise ConfigurationError("cache_keys must be callable")
    if not isinstance(options.minifier_options, Mapping):
        raise ConfigurationError("minifier_options must be a mapping")

    minifier_options = dict(options.minifier_options)
    if "module" not in minifier_options and output_module is not None:
        minifier_options["module"] = output_module
    if "ecma" not in minifier_options:
        minifier_options["ecma"] = get_ecma_version(environment or BuildEnvironment())

    try:
        matcher = AssetMatcher.build(
            test=options.test,
            include=options.include,
            exclude=options.exclude,
        )
    except (TypeError, re.error) as error:
        raise ConfigurationError(f"Invalid asset matcher: {error}") from error

    return EffectiveConfig(
        matcher=matcher,
        extract_comments=ExtractCommentsConfig.from_option(options.extract_comments),
        minifier_options=MappingProxyType(minifier_options),
        minify_fn=options.minify or default_minify,
        cache=bool(options.cache),
        parallel=parallel,
        cache_keys_hook=options.cache_keys,
    )
