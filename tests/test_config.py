from __future__ import annotations

from pathlib import Path

import allure
import pytest

from asset_optimizer.config import CommentSettings, ParallelSettings, Settings
from asset_optimizer.optimizer.options import BannerKind, derive_effective_config

pytestmark = [
    allure.epic("Asset Optimization"),
    allure.feature("Configuration"),
]


def test_defaults_without_environment() -> None:
    settings = Settings.from_env()

    assert settings.cache.enabled
    assert settings.cache.path == Path(".asset_optimizer_cache.db")
    assert settings.parallel.parallel is True
    assert settings.comments.extract
    assert settings.comments.banner is None
    assert settings.minifier_options == {}


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ASSET_OPTIMIZER_CACHE", "off")
    monkeypatch.setenv("ASSET_OPTIMIZER_CACHE_PATH", str(tmp_path / "c.db"))
    monkeypatch.setenv("ASSET_OPTIMIZER_PARALLEL", "3")
    monkeypatch.setenv("ASSET_OPTIMIZER_COMMENTS_CONDITION", "all")
    monkeypatch.setenv("ASSET_OPTIMIZER_COMMENTS_FILENAME", "[name].licenses")
    monkeypatch.setenv("ASSET_OPTIMIZER_BANNER", "no")
    monkeypatch.setenv("ASSET_OPTIMIZER_MINIFIER_OPTIONS", '{"ecma": 2020}')

    settings = Settings.from_env()

    assert not settings.cache.enabled
    assert settings.cache.path == tmp_path / "c.db"
    assert settings.parallel.parallel == 3
    assert settings.comments.condition == "all"
    assert settings.comments.filename == "[name].licenses"
    assert settings.comments.banner is False
    assert settings.minifier_options == {"ecma": 2020}


def test_explicit_cache_path_wins_over_environment(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("ASSET_OPTIMIZER_CACHE_PATH", str(tmp_path / "env.db"))

    assert Settings.from_env(cache_path=tmp_path / "cli.db").cache.path == tmp_path / "cli.db"


@pytest.mark.parametrize(
    ("name", "value", "match"),
    [
        ("ASSET_OPTIMIZER_CACHE", "maybe", "Invalid boolean"),
        ("ASSET_OPTIMIZER_PARALLEL", "-2", "must be >= 0"),
        ("ASSET_OPTIMIZER_MINIFIER_OPTIONS", "[1]", "must be a JSON object"),
        ("ASSET_OPTIMIZER_MINIFIER_OPTIONS", "{oops", "Invalid JSON"),
    ],
)
def test_from_env_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch,
    name: str,
    value: str,
    match: str,
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError, match=match):
        Settings.from_env()


def test_validate_rejects_inconsistent_settings() -> None:
    with pytest.raises(ValueError, match="PARALLEL"):
        Settings(parallel=ParallelSettings(parallel=-1)).validate()
    with pytest.raises(ValueError, match="COMMENTS_FILENAME"):
        Settings(comments=CommentSettings(filename=" ")).validate()


def test_to_options_builds_effective_config() -> None:
    settings = Settings(
        comments=CommentSettings(condition="all", filename="[file].txt", banner=False),
        minifier_options={"ecma": 2015},
    )

    config = derive_effective_config(settings.to_options())

    assert config.extract_comments.condition == "all"
    assert config.extract_comments.filename == "[file].txt"
    assert config.extract_comments.banner.kind is BannerKind.DISABLED
    assert config.minifier_options["ecma"] == 2015


def test_to_options_disables_extraction() -> None:
    settings = Settings(comments=CommentSettings(extract=False))

    assert settings.to_options().extract_comments is False
