"""Default minification primitive built on rjsmin, plus the pool worker entrypoint."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

import rjsmin

from asset_optimizer.optimizer.models import (
    MinifyError,
    MinifyOutput,
    MinifyRequest,
    normalize_output,
)

SOME_COMMENTS_PATTERN = re.compile(r"^\**!|@preserve|@license|@lic", re.IGNORECASE)

_STRING_PATTERN = re.compile(
    r"""'(?:\\.|[^'\\\n])*'|"(?:\\.|[^"\\\n])*"|`(?:\\.|[^`\\])*`""",
    re.DOTALL,
)
_BLOCK_COMMENT_PATTERN = re.compile(r"/\*(.*?)\*/", re.DOTALL)
_LINE_COMMENT_PATTERN = re.compile(r"//([^\n]*)")
_REGEX_LITERAL_PATTERN = re.compile(r"/(?:\\.|\[(?:\\.|[^\]\\\n])*\]|[^/\\\n\[])+/[A-Za-z]*")
_WORD_PATTERN = re.compile(r"[A-Za-z_$][\w$]*")

# A "/" after one of these starts a regex literal rather than a division.
_REGEX_PRECEDING_CHARS = frozenset("(,=:[!&|?{};+-*%<>~^")
_REGEX_PRECEDING_WORDS = frozenset(
    {
        "await",
        "case",
        "delete",
        "do",
        "else",
        "in",
        "instanceof",
        "new",
        "return",
        "throw",
        "typeof",
        "void",
        "yield",
    },
)


def minify(request: MinifyRequest) -> MinifyOutput:
    """Minify ``request.input`` and collect comments selected for extraction.

    Comments that are not extracted but match the ``comments`` minifier option
    (``"some"`` by default, also ``"all"``, ``False`` or a regex) are kept in
    front of the minified body.
    """

    shebang = ""
    body = request.input
    if body.startswith("#!"):
        newline = body.find("\n")
        if newline == -1:
            shebang, body = body, ""
        else:
            shebang, body = body[:newline], body[newline + 1 :]

    comments = _scan_comments(body, request.name, offset_lines=1 if shebang else 0)
    condition = request.extract_comments
    extract = _comment_predicate(condition) if condition is not False else None
    preserve = _preserve_predicate(request.minifier_options.get("comments", "some"))

    extracted: list[str] = []
    preserved: list[str] = []
    for text, value in comments:
        if extract is not None and extract(value):
            if text not in extracted:
                extracted.append(text)
        elif preserve(value) and text not in preserved:
            preserved.append(text)

    code = rjsmin.jsmin(body, keep_bang_comments=False)
    if preserved:
        code = "\n".join(preserved) + "\n" + code
    if shebang:
        code = f"{shebang}\n{code}"
    return MinifyOutput(code=code, map=None, extracted_comments=extracted)


def run_serialized(payload: str, minify_fn: Callable[..., Any] = minify) -> dict[str, Any]:
    """Pool entrypoint: decode the request, run the primitive, return a plain dict."""

    request = MinifyRequest.from_json(payload)
    return normalize_output(minify_fn(request)).to_dict()


def _comment_predicate(condition: bool | str) -> Callable[[str], bool]:
    if condition is True or condition == "some":
        return lambda value: bool(SOME_COMMENTS_PATTERN.search(value))
    if condition == "all":
        return lambda value: True
    pattern = re.compile(str(condition))
    return lambda value: bool(pattern.search(value))


def _preserve_predicate(option: object) -> Callable[[str], bool]:
    if option is False or option is None or option == "none":
        return lambda value: False
    return _comment_predicate(True if option is True else str(option))


def _scan_comments(source: str, name: str, *, offset_lines: int = 0) -> list[tuple[str, str]]:
    """Return ``(comment_text, comment_body)`` pairs, skipping strings and regex literals.

    Whether a ``/`` opens a regex literal is decided by the preceding token.
    """

    comments: list[tuple[str, str]] = []
    position = 0
    regex_allowed = True
    while position < len(source):
        char = source[position]
        if char in "'\"`":
            match = _STRING_PATTERN.match(source, position)
            if match is not None:
                position = match.end()
                regex_allowed = False
                continue
        elif source.startswith("/*", position):
            match = _BLOCK_COMMENT_PATTERN.match(source, position)
            if match is None:
                line, col = _position(source, position)
                line += offset_lines
                raise MinifyError(
                    "Unterminated comment",
                    line=line,
                    col=col,
                    stack=f"MinifyError: Unterminated comment\n    at {name}:{line}:{col}",
                )
            comments.append((match.group(0), match.group(1)))
            position = match.end()
            continue
        elif source.startswith("//", position):
            match = _LINE_COMMENT_PATTERN.match(source, position)
            comments.append((match.group(0).rstrip(), match.group(1)))
            position = match.end()
            continue
        elif char == "/" and regex_allowed:
            match = _REGEX_LITERAL_PATTERN.match(source, position)
            if match is not None:
                position = match.end()
                regex_allowed = False
                continue
        elif char.isspace():
            position += 1
            continue
        else:
            match = _WORD_PATTERN.match(source, position)
            if match is not None:
                regex_allowed = match.group(0) in _REGEX_PRECEDING_WORDS
                position = match.end()
                continue
        regex_allowed = char in _REGEX_PRECEDING_CHARS
        position += 1
    return comments


def _position(source: str, index: int) -> tuple[int, int]:
    line = source.count("\n", 0, index) + 1
    column = index - (source.rfind("\n", 0, index) + 1)
    return line, column
