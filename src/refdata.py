"""Public SDK surface for Refdata.

This module provides a stable import path for application code.
It re-exports the registry, cache, and typed models used by extensions.
"""

from __future__ import annotations

from core.config import RefdataConfig
from core.errors import (
    CorruptError,
    DefinitionError,
    DuplicateKeyError,
    FetchError,
    LoadHookError,
    NotFoundError,
    RefdataError,
    WriteError,
)
from core.manifest import DatasetManifest, ManifestEntry, load_dataset_manifest
from core.types import DatasetDefinition, DatasetState, DatasetStatus
from store.dataset_cache import DatasetCache
from store.dataset_registry import DatasetRegistry
from store.durable_store import DurableStore
from store.remote_fetch import build_url_fetch, register_manifest


def build_cache(
    registry: DatasetRegistry,
    config: RefdataConfig | None = None,
) -> DatasetCache:
    """Create a cache over a populated registry using environment config.

    Args:
        registry: Registry populated by extensions at startup.
        config: Optional runtime configuration.

    Returns:
        Cache storing files under the configured data root.
    """
    return DatasetCache.from_config(config or RefdataConfig.from_env(), registry)


__all__ = [
    "CorruptError",
    "DatasetCache",
    "DatasetDefinition",
    "DatasetManifest",
    "DatasetRegistry",
    "DatasetState",
    "DatasetStatus",
    "DefinitionError",
    "DuplicateKeyError",
    "DurableStore",
    "FetchError",
    "LoadHookError",
    "ManifestEntry",
    "NotFoundError",
    "RefdataConfig",
    "RefdataError",
    "WriteError",
    "build_cache",
    "build_url_fetch",
    "load_dataset_manifest",
    "register_manifest",
]
