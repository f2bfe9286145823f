from __future__ import annotations

import json
import re
from pathlib import Path

import allure
import pytest

from asset_optimizer.optimizer.assets import (
    AssetMatcher,
    DirectoryAssetStore,
    MemoryAssetStore,
)
from asset_optimizer.optimizer.sources import RawSource, SourceMapSource

pytestmark = [
    allure.epic("Asset Optimization"),
    allure.feature("Asset Stores"),
]


def test_default_matcher_selects_javascript_assets() -> None:
    matcher = AssetMatcher.build()

    assert matcher.matches("app.js")
    assert matcher.matches("vendor.mjs")
    assert matcher.matches("legacy.CJS")
    assert matcher.matches("app.js?v=3")
    assert not matcher.matches("app.js.map")
    assert not matcher.matches("style.css")


def test_matcher_applies_include_and_exclude() -> None:
    matcher = AssetMatcher.build(
        test=re.compile(r"\.js$"),
        include=["dist/", re.compile(r"^lib/")],
        exclude="dist/vendor",
    )

    assert matcher.matches("dist/app.js")
    assert matcher.matches("lib/util.js")
    assert not matcher.matches("src/app.js")
    assert not matcher.matches("dist/vendor/react.js")


def test_memory_store_update_merges_info() -> None:
    store = MemoryAssetStore({"app.js": "var a = 1;"})
    store.update("app.js", RawSource("var a=1;"), {"minimized": True})
    store.update("app.js", RawSource("var a=1;"), {"related": {"license": "x"}})

    asset = store.get("app.js")
    assert asset is not None
    assert asset.source.source() == "var a=1;"
    assert asset.info == {"minimized": True, "related": {"license": "x"}}


def test_memory_store_rejects_unknown_update_and_duplicate_emit() -> None:
    store = MemoryAssetStore({"app.js": "x"})

    with pytest.raises(KeyError):
        store.update("missing.js", RawSource(""))
    with pytest.raises(ValueError, match="already exists"):
        store.emit("app.js", RawSource(""))


def test_directory_store_reads_adjacent_map_and_flushes(tmp_path: Path) -> None:
    build = tmp_path / "build"
    (build / "js").mkdir(parents=True)
    (build / "js" / "app.js").write_text("var a = 1;", "utf-8")
    source_map = {"version": 3, "sources": ["src/app.ts"], "names": [], "mappings": "AAAA"}
    (build / "js" / "app.js.map").write_text(json.dumps(source_map), "utf-8")
    (build / "style.css").write_text("body {}", "utf-8")
    out = tmp_path / "out"
    store = DirectoryAssetStore(build, output_dir=out)

    assert store.list(AssetMatcher.build()) == ["js/app.js"]
    asset = store.get("js/app.js")
    assert asset is not None
    assert isinstance(asset.source, SourceMapSource)
    assert asset.source.map()["sources"] == ["src/app.ts"]

    store.update("js/app.js", RawSource("var a=1;"), {"minimized": True})
    store.emit("js/app.js.LICENSE.txt", RawSource("/*! MIT */\n"))
    written = store.flush()

    assert written == [out / "js" / "app.js", out / "js" / "app.js.LICENSE.txt"]
    assert (out / "js" / "app.js").read_text("utf-8") == "var a=1;"
    assert (out / "js" / "app.js.LICENSE.txt").read_text("utf-8") == "/*! MIT */\n"
    assert (build / "js" / "app.js").read_text("utf-8") == "var a = 1;"
    assert store.flush() == []


def test_directory_store_ignores_unreadable_map(tmp_path: Path) -> None:
    (tmp_path / "app.js").write_text("x", "utf-8")
    (tmp_path / "app.js.map").write_text("{not json", "utf-8")

    asset = DirectoryAssetStore(tmp_path).get("app.js")

    assert asset is not None
    assert isinstance(asset.source, RawSource)
