"""Translate minifier failures into per-asset diagnostics."""

from __future__ import annotations

import os
import posixpath
import re
import traceback
from pathlib import Path

from asset_optimizer.optimizer.models import MinifyError
from asset_optimizer.optimizer.sourcemap import OriginalPosition, SourceMapConsumer, SourceMapError

ERROR_MARKER = "from AssetOptimizer"
_SCHEME_PATTERN = re.compile(r"^(?:webpack|file)://")


class OptimizationError(Exception):
    """Per-asset failure recorded in the run report."""

    def __init__(
        self,
        message: str,
        *,
        asset_name: str,
        original: OriginalPosition | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.asset_name = asset_name
        self.original = original


class RequestShortener:
    """Shorten source paths for display, relative to ``context`` when possible."""

    def __init__(self, context: Path | str | None = None) -> None:
        self.context = str(context) if context is not None else os.getcwd()

    def shorten(self, request: str) -> str:
        value = _SCHEME_PATTERN.sub("", request)
        if value.startswith("/") and request.startswith("webpack://"):
            value = value.lstrip("/")
        if os.path.isabs(value):
            try:
                relative = os.path.relpath(value, self.context)
            except ValueError:
                relative = value
            if not relative.startswith(".."):
                value = relative
        value = value.replace("\\", "/")
        return posixpath.normpath(value) if value else value


def build_error(
    error: BaseException,
    name: str,
    source_map: SourceMapConsumer | None = None,
    shortener: RequestShortener | None = None,
) -> OptimizationError:
    """Describe ``error`` for asset ``name``, resolving original coordinates when possible."""

    head = f"{name} {ERROR_MARKER}"
    message = _message_of(error)
    stack = _stack_of(error)
    line = getattr(error, "line", None)
    col = getattr(error, "col", None)
    if col is None:
        col = getattr(error, "column", None)
    if col is None:
        # Primitives that only know the line report column 0.
        col = 0

    if line:
        original = _resolve(source_map, line, col)
        location = f"[{name}:{line},{col}]"
        if original is not None and original.source:
            display = shortener.shorten(original.source) if shortener else original.source
            location = f"[{display}:{original.line},{original.column}]{location}"
        else:
            original = None
        text = f"{head}\n{message} {location}"
        tail = _stack_tail(stack, message)
        if tail:
            text = f"{text}\n{tail}"
        return OptimizationError(text, asset_name=name, original=original)

    if stack:
        return OptimizationError(f"{head}\n{stack}", asset_name=name)
    return OptimizationError(f"{head}\n{message}", asset_name=name)


def _resolve(
    source_map: SourceMapConsumer | None,
    line: object,
    col: object,
) -> OriginalPosition | None:
    if source_map is None:
        return None
    try:
        return source_map.original_position_for(int(line), int(col))
    except (SourceMapError, TypeError, ValueError, IndexError):
        return None


def _message_of(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error) or type(error).__name__


def _stack_of(error: BaseException) -> str | None:
    if isinstance(error, MinifyError):
        return error.stack
    stack = getattr(error, "stack", None)
    if isinstance(stack, str) and stack:
        return stack
    if error.__traceback__ is None and error.__cause__ is None:
        return None
    return "".join(traceback.format_exception(error)).rstrip()


def _stack_tail(stack: str | None, message: str) -> str:
    if not stack:
        return ""
    lines = stack.split("\n")
    if message in lines[0]:
        lines = lines[1:]
    return "\n".join(lines).rstrip()
