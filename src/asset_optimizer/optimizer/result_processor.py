"""Turn raw minifier output into the finalized asset and its comments file."""

from __future__ import annotations

import posixpath
import re

from asset_optimizer.optimizer.models import MinifyOutput, OptimizationResult, OptimizationTask
from asset_optimizer.optimizer.options import CommentsFilenameTemplate, EffectiveConfig
from asset_optimizer.optimizer.sources import ConcatSource, RawSource, Source, SourceMapSource

_PLACEHOLDER_PATTERN = re.compile(r"\[(file|query|base|name|ext|path)\]")


def split_asset_name(name: str) -> dict[str, str]:
    """Decompose ``dir/base.ext?query`` into the path data used by filename templates."""

    filename, separator, query = name.partition("?")
    query = f"{separator}{query}" if separator else ""
    basename = filename.rsplit("/", 1)[-1]
    stem, ext = posixpath.splitext(basename)
    dirname = posixpath.dirname(filename)
    return {
        "filename": filename,
        "basename": basename,
        "query": query,
        "name": stem,
        "ext": ext,
        "path": f"{dirname}/" if dirname else "",
    }


def render_comments_filename(template: CommentsFilenameTemplate, name: str) -> str:
    data = split_asset_name(name)
    if callable(template):
        return template(data)
    values = {
        "file": data["filename"],
        "query": data["query"],
        "base": data["basename"],
        "name": data["name"],
        "ext": data["ext"],
        "path": data["path"],
    }
    return _PLACEHOLDER_PATTERN.sub(lambda match: values[match.group(1)], template)


def build_comments_source(comments: list[str] | tuple[str, ...]) -> Source:
    return RawSource("\n\n".join(sorted(comments)) + "\n")


class ResultProcessor:
    """Shebang preservation, source attachment and license banner injection."""

    def __init__(self, config: EffectiveConfig) -> None:
        self.config = config

    def process(self, task: OptimizationTask, output: MinifyOutput) -> OptimizationResult:
        extract = self.config.extract_comments
        comments = list(output.extracted_comments)
        code = output.code

        shebang: str | None = None
        if comments and extract.banner.enabled and code.startswith("#!"):
            newline = code.find("\n")
            if newline == -1:
                shebang, code = code, ""
            else:
                shebang, code = code[:newline], code[newline + 1 :]

        source: Source
        if output.map:
            source = SourceMapSource(
                code,
                task.name,
                output.map,
                task.input,
                task.input_source_map,
            )
        else:
            source = RawSource(code)

        if not comments:
            return OptimizationResult(code=output.code, source=source, source_map=output.map)

        comments_filename = render_comments_filename(extract.filename, task.name)
        banner = extract.banner.render(comments_filename, task.name)
        prefix = f"{shebang}\n" if shebang is not None else ""
        finalized: Source = source
        if banner:
            finalized = ConcatSource(prefix, f"/*! {banner} */\n", source)
        elif prefix:
            finalized = ConcatSource(prefix, source)

        return OptimizationResult(
            code=output.code,
            source=finalized,
            source_map=output.map,
            extracted_comments=tuple(comments),
            comments_filename=comments_filename,
            extracted_comments_source=build_comments_source(comments),
        )
