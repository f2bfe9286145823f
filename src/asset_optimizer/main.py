"""CLI entrypoint for asset-optimizer."""

import logging
from pathlib import Path

import rich_click as click

from asset_optimizer import __version__
from asset_optimizer.optimizer.controllers import (
    CacheCommand,
    MinifyCommand,
    OptimizerCliController,
)

click.rich_click.USE_MARKDOWN = True
OPTIMIZER_CONTROLLER = OptimizerCliController()


@click.group()
@click.version_option(version=__version__, prog_name="asset-optimizer")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def asset_optimizer(verbose: bool) -> None:
    """Build asset optimizer CLI."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@asset_optimizer.command("minify")
@click.argument(
    "build_dir",
    type=click.Path(path_type=Path, exists=True, file_okay=False, dir_okay=True),
)
@click.option(
    "--output-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Write results here instead of rewriting BUILD_DIR in place.",
)
@click.option(
    "--cache-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite cache path. Defaults to ASSET_OPTIMIZER_CACHE_PATH.",
)
@click.option(
    "--cache/--no-cache",
    default=None,
    help="Reuse results of previous runs. Defaults to ASSET_OPTIMIZER_CACHE.",
)
@click.option(
    "--parallel",
    type=click.IntRange(min=0),
    default=None,
    help="Max worker processes (capped at cores - 1). Defaults to ASSET_OPTIMIZER_PARALLEL.",
)
@click.option(
    "--no-parallel",
    is_flag=True,
    default=False,
    help="Minify in-process without worker processes.",
)
@click.option(
    "--test",
    "test_patterns",
    multiple=True,
    help="Regex selecting assets (default `\\.[cm]?js(\\?.*)?$`). Can be repeated.",
)
@click.option("--include", multiple=True, help="Only process names starting with this prefix.")
@click.option("--exclude", multiple=True, help="Skip names starting with this prefix.")
@click.option(
    "--extract-comments/--no-extract-comments",
    default=None,
    help="Move license comments into a separate file.",
)
@click.option(
    "--comments-filename",
    default=None,
    help="Comments file template, for example `[file].LICENSE.txt[query]`.",
)
@click.option("--banner", default=None, help="Fixed banner text for minified assets.")
@click.option("--no-banner", is_flag=True, default=False, help="Do not inject a banner.")
@click.option(
    "--minifier-option",
    "minifier_options",
    multiple=True,
    help=(
        "Minifier option as `key=value` (value parsed as JSON when possible). Can be repeated. "
        "The built-in minifier reads `comments` (`some`, `all`, `false` or a regex) to choose "
        "which non-extracted comments stay in the output; other keys reach custom minifiers only."
    ),
)
def minify(  # noqa: PLR0913
    build_dir: Path,
    output_dir: Path | None,
    cache_path: Path | None,
    cache: bool | None,
    parallel: int | None,
    no_parallel: bool,
    test_patterns: tuple[str, ...],
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    extract_comments: bool | None,
    comments_filename: str | None,
    banner: str | None,
    no_banner: bool,
    minifier_options: tuple[str, ...],
) -> None:
    """Minify build assets, cache results and write extracted license files."""

    try:
        result = OPTIMIZER_CONTROLLER.minify(
            MinifyCommand(
                build_dir=build_dir,
                output_dir=output_dir,
                cache_path=cache_path,
                cache=cache,
                parallel=parallel,
                no_parallel=no_parallel,
                test=test_patterns,
                include=include,
                exclude=exclude,
                extract_comments=extract_comments,
                comments_filename=comments_filename,
                banner=banner,
                no_banner=no_banner,
                minifier_options=minifier_options,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Some assets failed to minify.")


@asset_optimizer.group()
def cache() -> None:
    """Result cache commands."""


@cache.command("info")
@click.option("--cache-path", type=click.Path(path_type=Path), default=None, help="SQLite cache path.")
def cache_info(cache_path: Path | None) -> None:
    """Show cache location and entry count."""

    _emit_lines(OPTIMIZER_CONTROLLER.cache_info(CacheCommand(cache_path=cache_path)))


@cache.command("clear")
@click.option("--cache-path", type=click.Path(path_type=Path), default=None, help="SQLite cache path.")
@click.option("--prefix", default=None, help="Only delete entries for asset names with this prefix.")
def cache_clear(cache_path: Path | None, prefix: str | None) -> None:
    """Delete cached results."""

    _emit_lines(
        OPTIMIZER_CONTROLLER.cache_clear(CacheCommand(cache_path=cache_path, name_prefix=prefix)),
    )


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    asset_optimizer()
