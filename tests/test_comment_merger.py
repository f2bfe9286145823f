from __future__ import annotations

import allure

from asset_optimizer.optimizer.assets import MemoryAssetStore
from asset_optimizer.optimizer.cache import MemoryCacheStore
from asset_optimizer.optimizer.comments import CommentEntry, CommentMerger, merge_comment_sources
from asset_optimizer.optimizer.sources import RawSource

pytestmark = [
    allure.epic("Asset Optimization"),
    allure.feature("License Files"),
]


def _entry(name: str, filename: str, text: str) -> CommentEntry:
    return CommentEntry(name=name, comments_filename=filename, source=RawSource(text))


def _shared_entries() -> list[CommentEntry]:
    return [
        _entry("b.js", "vendor.LICENSE.txt", "/*! b */\n\n/*! shared */\n"),
        _entry("a.js", "vendor.LICENSE.txt", "/*! a */\n\n/*! shared */\n"),
    ]


def test_merge_comment_sources_keeps_first_occurrence_order() -> None:
    merged = merge_comment_sources("/*! a */\n\n/*! b */\n", "/*! b */\n\n/*! c */\n")

    assert merged == "/*! a */\n\n/*! b */\n\n/*! c */\n"


def test_shared_comments_file_holds_union_of_blocks() -> None:
    store = MemoryAssetStore()

    touched = CommentMerger(store, MemoryCacheStore()).merge(_shared_entries())

    assert touched == ["vendor.LICENSE.txt"]
    asset = store.get("vendor.LICENSE.txt")
    assert asset is not None
    assert asset.source.source() == "/*! a */\n\n/*! shared */\n\n/*! b */\n"


def test_merge_result_does_not_depend_on_completion_order() -> None:
    forward = MemoryAssetStore()
    backward = MemoryAssetStore()

    CommentMerger(forward, MemoryCacheStore()).merge(_shared_entries())
    CommentMerger(backward, MemoryCacheStore()).merge(list(reversed(_shared_entries())))

    assert forward.get("vendor.LICENSE.txt").source.source() == (
        backward.get("vendor.LICENSE.txt").source.source()
    )


def test_distinct_comments_files_are_emitted_separately() -> None:
    store = MemoryAssetStore()

    touched = CommentMerger(store, MemoryCacheStore()).merge(
        [
            _entry("a.js", "a.js.LICENSE.txt", "/*! a */\n"),
            _entry("b.js", "b.js.LICENSE.txt", "/*! b */\n"),
        ],
    )

    assert touched == ["a.js.LICENSE.txt", "b.js.LICENSE.txt"]
    assert store.get("a.js.LICENSE.txt").source.source() == "/*! a */\n"
    assert store.get("b.js.LICENSE.txt").source.source() == "/*! b */\n"


def test_existing_comments_asset_is_adopted_then_extended() -> None:
    store = MemoryAssetStore({"vendor.LICENSE.txt": "/*! existing */\n"})

    CommentMerger(store, MemoryCacheStore()).merge(_shared_entries())

    assert store.get("vendor.LICENSE.txt").source.source() == (
        "/*! existing */\n\n/*! b */\n\n/*! shared */\n"
    )


def test_merged_comments_are_reused_from_cache() -> None:
    cache = MemoryCacheStore()
    CommentMerger(MemoryAssetStore(), cache).merge(_shared_entries())
    assert cache.writes == 1
    assert cache.keys()[0][0] == "vendor.LICENSE.txt|a.js|b.js"

    store = MemoryAssetStore()
    CommentMerger(store, cache).merge(_shared_entries())

    assert cache.writes == 1
    assert cache.hits == 1
    assert store.get("vendor.LICENSE.txt").source.source() == (
        "/*! a */\n\n/*! shared */\n\n/*! b */\n"
    )
