"""Asset optimization pipeline.

An asset store supplies named text assets. Each matching asset is
fingerprinted, looked up in the cache and, on a miss, minified by the
worker pool under a concurrency limiter. Results are finalized (shebang,
source map, license banner), stored back in the cache and written to the
asset store. Extracted comments are folded into shared comments files in
a deterministic, name-sorted pass once every asset has settled.
"""

from asset_optimizer.optimizer.assets import (
    Asset,
    AssetMatcher,
    AssetStore,
    DirectoryAssetStore,
    MemoryAssetStore,
)
from asset_optimizer.optimizer.cache import CacheStore, MemoryCacheStore, NullCacheStore
from asset_optimizer.optimizer.errors import OptimizationError
from asset_optimizer.optimizer.models import MinifyError, MinifyOutput, MinifyRequest
from asset_optimizer.optimizer.options import (
    BuildEnvironment,
    ConfigurationError,
    EffectiveConfig,
    OptimizerOptions,
    derive_effective_config,
)
from asset_optimizer.optimizer.runner import AssetOptimizer, RunReport

__all__ = [
    "Asset",
    "AssetMatcher",
    "AssetOptimizer",
    "AssetStore",
    "BuildEnvironment",
    "CacheStore",
    "ConfigurationError",
    "DirectoryAssetStore",
    "EffectiveConfig",
    "MemoryAssetStore",
    "MemoryCacheStore",
    "MinifyError",
    "MinifyOutput",
    "MinifyRequest",
    "NullCacheStore",
    "OptimizationError",
    "OptimizerOptions",
    "RunReport",
    "derive_effective_config",
]
