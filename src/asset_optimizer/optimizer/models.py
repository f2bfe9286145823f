"""Domain models shared by the optimizer pipeline."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from asset_optimizer.optimizer.sources import Source, source_from_dict

if TYPE_CHECKING:
    from asset_optimizer.optimizer.options import EffectiveConfig


class MinifyError(Exception):
    """Failure reported by a minification primitive.

    ``line`` is 1-based and ``col`` 0-based, both relative to the input that was
    handed to the primitive.
    """

    def __init__(
        self,
        message: str,
        *,
        line: int | None = None,
        col: int | None = None,
        stack: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.col = col
        self.stack = stack

    def __reduce__(self):
        # Keyword-only fields must survive the trip back from pool processes.
        return (_rebuild_minify_error, (self.message, self.line, self.col, self.stack))


def _rebuild_minify_error(
    message: str,
    line: int | None,
    col: int | None,
    stack: str | None,
) -> MinifyError:
    return MinifyError(message, line=line, col=col, stack=stack)


@dataclass(slots=True)
class MinifyRequest:
    """Payload handed to the minification primitive."""

    name: str
    input: str
    input_source_map: dict[str, Any] | None = None
    minifier_options: dict[str, Any] = field(default_factory=dict)
    # False, "some", "all" or a regex applied to comment bodies.
    extract_comments: bool | str = "some"

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, sort_keys=True)

    @classmethod
    def from_json(cls, payload: str) -> MinifyRequest:
        raw = json.loads(payload)
        if not isinstance(raw, dict):
            raise TypeError("minify request payload must be a JSON object")
        name = raw.get("name")
        text = raw.get("input")
        if not isinstance(name, str) or not isinstance(text, str):
            raise TypeError("minify request requires string 'name' and 'input'")
        return cls(
            name=name,
            input=text,
            input_source_map=raw.get("input_source_map"),
            minifier_options=dict(raw.get("minifier_options") or {}),
            extract_comments=raw.get("extract_comments", "some"),
        )


@dataclass(slots=True)
class MinifyOutput:
    """Raw result of the minification primitive."""

    code: str
    map: dict[str, Any] | None = None
    extracted_comments: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def normalize_output(value: MinifyOutput | Mapping[str, Any]) -> MinifyOutput:
    """Accept a ``MinifyOutput`` or a plain mapping returned by a custom minifier."""

    if isinstance(value, MinifyOutput):
        return value
    if not isinstance(value, Mapping):
        raise TypeError(f"Minifier returned unsupported result type: {type(value).__name__}")
    code = value.get("code")
    if not isinstance(code, str):
        raise TypeError("Minifier result must contain string 'code'")
    comments = value.get("extracted_comments")
    if comments is None:
        comments = value.get("extractedComments")
    return MinifyOutput(
        code=code,
        map=value.get("map"),
        extracted_comments=[str(comment) for comment in comments or []],
    )


@dataclass(slots=True, frozen=True)
class OptimizationTask:
    """One asset scheduled for minification in the current run."""

    name: str
    input: str
    config: EffectiveConfig
    input_source_map: dict[str, Any] | None = None
    minifier_options: Mapping[str, Any] = field(default_factory=dict)

    def to_request(self) -> MinifyRequest:
        return MinifyRequest(
            name=self.name,
            input=self.input,
            input_source_map=self.input_source_map,
            minifier_options=dict(self.minifier_options),
            extract_comments=self.config.extract_comments.primitive_condition(),
        )


@dataclass(slots=True, frozen=True)
class OptimizationResult:
    """Finalized, cacheable outcome for one asset."""

    code: str
    source: Source
    source_map: dict[str, Any] | None = None
    extracted_comments: tuple[str, ...] = ()
    comments_filename: str | None = None
    extracted_comments_source: Source | None = None

    def to_cache_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "source": self.source.to_dict(),
            "source_map": self.source_map,
            "extracted_comments": list(self.extracted_comments),
            "comments_filename": self.comments_filename,
        }
        if self.extracted_comments_source is not None:
            payload["extracted_comments_source"] = self.extracted_comments_source.to_dict()
        return payload

    @classmethod
    def from_cache_payload(cls, payload: Mapping[str, Any]) -> OptimizationResult:
        comments_source = payload.get("extracted_comments_source")
        return cls(
            code=str(payload.get("code", "")),
            source=source_from_dict(payload["source"]),
            source_map=payload.get("source_map"),
            extracted_comments=tuple(payload.get("extracted_comments") or ()),
            comments_filename=payload.get("comments_filename"),
            extracted_comments_source=(
                source_from_dict(comments_source) if comments_source is not None else None
            ),
        )
