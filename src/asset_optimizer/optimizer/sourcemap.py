"""Source map v3 decoding, lookup and composition helpers."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

_BASE64_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_BASE64_INDEX = {char: index for index, char in enumerate(_BASE64_ALPHABET)}
_VLQ_SHIFT = 5
_VLQ_CONTINUATION = 1 << _VLQ_SHIFT
_VLQ_MASK = _VLQ_CONTINUATION - 1

# (generated_column,) or (generated_column, source, line, column[, name]), all absolute, 0-based.
Segment = tuple[int, ...]


class SourceMapError(ValueError):
    """Raised when a source map cannot be decoded."""


@dataclass(slots=True, frozen=True)
class OriginalPosition:
    """Resolved position in an original source (1-based line, 0-based column)."""

    source: str
    line: int
    column: int
    name: str | None = None


def is_source_map(value: object) -> bool:
    """Check the minimal shape required to consume a source map."""

    if not isinstance(value, Mapping):
        return False
    return bool(
        value.get("version")
        and isinstance(value.get("sources"), list)
        and isinstance(value.get("mappings"), str),
    )


def is_decodable_source_map(value: object) -> bool:
    """``is_source_map`` plus a successful decode of ``mappings``."""

    if not is_source_map(value):
        return False
    try:
        decode_mappings(value["mappings"])  # type: ignore[index]
    except SourceMapError:
        return False
    return True


def decode_vlq(segment: str) -> list[int]:
    """Decode one comma-free mappings segment into its signed values."""

    values: list[int] = []
    shift = 0
    accumulator = 0
    for char in segment:
        try:
            digit = _BASE64_INDEX[char]
        except KeyError as error:
            raise SourceMapError(f"Invalid base64 character in mappings: {char!r}") from error
        accumulator += (digit & _VLQ_MASK) << shift
        if digit & _VLQ_CONTINUATION:
            shift += _VLQ_SHIFT
            continue
        negative = accumulator & 1
        accumulator >>= 1
        values.append(-accumulator if negative else accumulator)
        shift = 0
        accumulator = 0
    if shift:
        raise SourceMapError(f"Truncated VLQ sequence in segment {segment!r}")
    return values


def encode_vlq(values: Iterable[int]) -> str:
    """Encode signed integers as a base64 VLQ segment."""

    encoded: list[str] = []
    for value in values:
        vlq = ((-value) << 1) | 1 if value < 0 else value << 1
        while True:
            digit = vlq & _VLQ_MASK
            vlq >>= _VLQ_SHIFT
            if vlq:
                digit |= _VLQ_CONTINUATION
            encoded.append(_BASE64_ALPHABET[digit])
            if not vlq:
                break
    return "".join(encoded)


def decode_mappings(mappings: str) -> list[list[Segment]]:
    """Decode a ``mappings`` string into per-line lists of absolute segments."""

    lines: list[list[Segment]] = []
    source = 0
    source_line = 0
    source_column = 0
    name = 0
    for raw_line in mappings.split(";"):
        generated_column = 0
        segments: list[Segment] = []
        for raw_segment in raw_line.split(","):
            if not raw_segment:
                continue
            fields = decode_vlq(raw_segment)
            if len(fields) not in (1, 4, 5):
                raise SourceMapError(f"Unexpected segment length {len(fields)} in {raw_segment!r}")
            generated_column += fields[0]
            if len(fields) == 1:
                segments.append((generated_column,))
                continue
            source += fields[1]
            source_line += fields[2]
            source_column += fields[3]
            if len(fields) == 5:
                name += fields[4]
                segments.append((generated_column, source, source_line, source_column, name))
            else:
                segments.append((generated_column, source, source_line, source_column))
        segments.sort(key=lambda segment: segment[0])
        lines.append(segments)
    return lines


def encode_mappings(lines: Iterable[Iterable[Segment]]) -> str:
    """Encode per-line absolute segments back into a ``mappings`` string."""

    previous_source = 0
    previous_line = 0
    previous_column = 0
    previous_name = 0
    encoded_lines: list[str] = []
    for line in lines:
        previous_generated = 0
        encoded_segments: list[str] = []
        for segment in sorted(line, key=lambda item: item[0]):
            fields = [segment[0] - previous_generated]
            previous_generated = segment[0]
            if len(segment) >= 4:
                fields.extend(
                    (
                        segment[1] - previous_source,
                        segment[2] - previous_line,
                        segment[3] - previous_column,
                    ),
                )
                previous_source, previous_line, previous_column = segment[1:4]
            if len(segment) == 5:
                fields.append(segment[4] - previous_name)
                previous_name = segment[4]
            encoded_segments.append(encode_vlq(fields))
        encoded_lines.append(",".join(encoded_segments))
    return ";".join(encoded_lines)


def resolved_sources(raw: Mapping[str, Any]) -> list[str]:
    """Return ``sources`` with ``sourceRoot`` applied."""

    root = raw.get("sourceRoot") or ""
    resolved: list[str] = []
    for source in raw.get("sources") or []:
        value = source or ""
        if root and "://" not in value and not value.startswith("/"):
            value = f"{root.rstrip('/')}/{value}"
        resolved.append(value)
    return resolved


class SourceMapConsumer:
    """Reverse lookup from generated positions to original positions."""

    def __init__(self, raw: Mapping[str, Any]) -> None:
        if not is_source_map(raw):
            raise SourceMapError("Object is not a valid source map")
        self.raw = raw
        self.sources = resolved_sources(raw)
        self.names = list(raw.get("names") or [])
        self._lines = decode_mappings(raw["mappings"])
        self._columns = [[segment[0] for segment in line] for line in self._lines]

    def original_position_for(self, line: int, column: int) -> OriginalPosition | None:
        """Resolve a generated position, picking the closest segment at or before ``column``."""

        if line < 1 or line > len(self._lines):
            return None
        index = bisect_right(self._columns[line - 1], max(column, 0)) - 1
        if index < 0:
            return None
        segment = self._lines[line - 1][index]
        if len(segment) < 4 or segment[1] >= len(self.sources):
            return None
        name = None
        if len(segment) == 5 and segment[4] < len(self.names):
            name = self.names[segment[4]]
        return OriginalPosition(
            source=self.sources[segment[1]],
            line=segment[2] + 1,
            column=segment[3],
            name=name,
        )

    def source_content_for(self, source: str) -> str | None:
        contents = self.raw.get("sourcesContent") or []
        try:
            index = self.sources.index(source)
        except ValueError:
            return None
        return contents[index] if index < len(contents) else None


class _MapBuilder:
    """Accumulates segments while interning sources and names."""

    def __init__(self) -> None:
        self.lines: list[list[Segment]] = []
        self.sources: list[str] = []
        self.contents: list[str | None] = []
        self.names: list[str] = []
        self._source_index: dict[str, int] = {}
        self._name_index: dict[str, int] = {}

    def source_id(self, source: str, content: str | None) -> int:
        index = self._source_index.get(source)
        if index is None:
            index = len(self.sources)
            self._source_index[source] = index
            self.sources.append(source)
            self.contents.append(content)
        elif content is not None and self.contents[index] is None:
            self.contents[index] = content
        return index

    def name_id(self, name: str) -> int:
        index = self._name_index.get(name)
        if index is None:
            index = len(self.names)
            self._name_index[name] = index
            self.names.append(name)
        return index

    def line(self, number: int) -> list[Segment]:
        while len(self.lines) <= number:
            self.lines.append([])
        return self.lines[number]

    def build(self, file: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "version": 3,
            "sources": list(self.sources),
            "names": list(self.names),
            "mappings": encode_mappings(self.lines),
        }
        if file:
            payload["file"] = file
        if any(content is not None for content in self.contents):
            payload["sourcesContent"] = list(self.contents)
        return payload


def compose_source_maps(outer: Mapping[str, Any], inner: Mapping[str, Any]) -> dict[str, Any]:
    """Chain ``outer`` (output -> input) through ``inner`` (input -> original).

    Outer segments that do not resolve through the inner map are dropped.
    """

    if not is_source_map(outer):
        raise SourceMapError("Outer map is not a valid source map")
    consumer = SourceMapConsumer(inner)
    outer_names = list(outer.get("names") or [])
    builder = _MapBuilder()
    for line_number, segments in enumerate(decode_mappings(outer["mappings"])):
        target = builder.line(line_number)
        for segment in segments:
            if len(segment) < 4:
                continue
            position = consumer.original_position_for(segment[2] + 1, segment[3])
            if position is None:
                continue
            source_id = builder.source_id(
                position.source,
                consumer.source_content_for(position.source),
            )
            name = position.name
            if name is None and len(segment) == 5 and segment[4] < len(outer_names):
                name = outer_names[segment[4]]
            composed: Segment = (segment[0], source_id, position.line - 1, position.column)
            if name is not None:
                composed = (*composed, builder.name_id(name))
            target.append(composed)
    return builder.build(file=outer.get("file"))


def concat_source_maps(
    chunks: Iterable[tuple[str, Mapping[str, Any] | None]],
) -> dict[str, Any] | None:
    """Merge maps of concatenated chunks, shifting each by its generated offset.

    Chunks whose map cannot be decoded are treated as unmapped. Returns
    ``None`` when no chunk carries a usable map.
    """

    builder = _MapBuilder()
    line_offset = 0
    column_offset = 0
    has_map = False
    for text, raw in chunks:
        lines: list[list[Segment]] | None = None
        if raw is not None and is_source_map(raw):
            try:
                lines = decode_mappings(raw["mappings"])
            except SourceMapError:
                lines = None
        if raw is not None and lines is not None:
            has_map = True
            sources = resolved_sources(raw)
            contents = list(raw.get("sourcesContent") or [])
            names = list(raw.get("names") or [])
            for relative_line, segments in enumerate(lines):
                target = builder.line(line_offset + relative_line)
                shift = column_offset if relative_line == 0 else 0
                for segment in segments:
                    if len(segment) < 4 or segment[1] >= len(sources):
                        target.append((segment[0] + shift,))
                        continue
                    content = contents[segment[1]] if segment[1] < len(contents) else None
                    shifted: Segment = (
                        segment[0] + shift,
                        builder.source_id(sources[segment[1]], content),
                        segment[2],
                        segment[3],
                    )
                    if len(segment) == 5 and segment[4] < len(names):
                        shifted = (*shifted, builder.name_id(names[segment[4]]))
                    target.append(shifted)
        newlines = text.count("\n")
        if newlines:
            line_offset += newlines
            column_offset = len(text) - text.rfind("\n") - 1
        else:
            column_offset += len(text)
    if not has_map:
        return None
    return builder.build()
