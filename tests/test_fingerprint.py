from __future__ import annotations

import allure

from asset_optimizer.optimizer.fingerprint import (
    Fingerprinter,
    combine_etags,
    config_digest,
    etag_of,
)
from asset_optimizer.optimizer.sources import RawSource, SourceMapSource
from optimizer_fakes import make_config

pytestmark = [
    allure.epic("Asset Optimization"),
    allure.feature("Fingerprints"),
]

_ABC_SHA256 = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_etag_of_text_and_bytes_is_sha256() -> None:
    assert etag_of("abc") == _ABC_SHA256
    assert etag_of(b"abc") == _ABC_SHA256
    assert etag_of(RawSource("abc")) == _ABC_SHA256


def test_etag_of_source_includes_map() -> None:
    source_map = {"version": 3, "sources": ["a.js"], "names": [], "mappings": "AAAA"}

    assert etag_of(SourceMapSource("abc", "a.js", source_map)) != _ABC_SHA256


def test_combine_etags_is_order_dependent() -> None:
    assert combine_etags("a", "b") == combine_etags("a", "b")
    assert combine_etags("a", "b") != combine_etags("b", "a")


def test_config_digest_ignores_key_order() -> None:
    assert config_digest({"a": 1, "b": [1, 2]}) == config_digest({"b": [1, 2], "a": 1})


def test_etag_changes_with_minifier_options_but_not_parallel() -> None:
    source = RawSource("var a = 1;")
    base = Fingerprinter(make_config()).etag("app.js", source)

    assert Fingerprinter(make_config()).etag("app.js", source) == base
    assert Fingerprinter(make_config(parallel=4)).etag("app.js", source) == base
    assert (
        Fingerprinter(make_config(minifier_options={"ecma": 2020})).etag("app.js", source) != base
    )
    assert Fingerprinter(make_config(extract_comments=False)).etag("app.js", source) != base
    assert Fingerprinter(make_config()).etag("app.js", RawSource("var a = 2;")) != base


def test_cache_keys_hook_extends_fingerprint() -> None:
    def cache_keys(defaults, name):
        return {**defaults, "build": "release"}

    source = RawSource("var a = 1;")

    assert Fingerprinter(make_config(cache_keys=cache_keys)).etag(
        "app.js",
        source,
    ) != Fingerprinter(make_config()).etag("app.js", source)
