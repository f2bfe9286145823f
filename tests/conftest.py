"""Shared test fixtures."""

from __future__ import annotations

import pytest

_ENV_VARS = (
    "ASSET_OPTIMIZER_CACHE",
    "ASSET_OPTIMIZER_CACHE_PATH",
    "ASSET_OPTIMIZER_CACHE_BUSY_TIMEOUT_MS",
    "ASSET_OPTIMIZER_PARALLEL",
    "ASSET_OPTIMIZER_EXTRACT_COMMENTS",
    "ASSET_OPTIMIZER_COMMENTS_CONDITION",
    "ASSET_OPTIMIZER_COMMENTS_FILENAME",
    "ASSET_OPTIMIZER_BANNER",
    "ASSET_OPTIMIZER_MINIFIER_OPTIONS",
)


@pytest.fixture(autouse=True)
def _clean_optimizer_env(monkeypatch):
    """Keep developer environment overrides out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
