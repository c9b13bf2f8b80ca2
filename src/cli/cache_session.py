"""Shared cache wiring and status rendering for CLI commands."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping

from core.config import RefdataConfig
from core.errors import RefdataConfigError
from core.manifest import DatasetManifest, load_dataset_manifest
from core.payload import format_timestamp
from core.types import DatasetStatus
from store.dataset_cache import DatasetCache
from store.dataset_registry import DatasetRegistry
from store.remote_fetch import build_http_client, register_manifest


def load_configured_manifest(config: RefdataConfig) -> DatasetManifest:
    """Load the manifest named by configuration.

    Raises:
        RefdataConfigError: If no manifest path is configured.
        ManifestError: If the manifest is invalid.
    """
    if config.manifest_path is None:
        raise RefdataConfigError(
            "No dataset manifest configured. Pass --manifest or set REFDATA_MANIFEST."
        )
    return load_dataset_manifest(config.manifest_path)


@asynccontextmanager
async def open_cache(
    config: RefdataConfig,
    manifest: DatasetManifest,
) -> AsyncIterator[DatasetCache]:
    """Yield a cache over the manifest datasets with a shared HTTP client.

    Stored files are recovered before the first load and every background
    refresh is awaited before the client closes.
    """
    registry = DatasetRegistry()
    async with build_http_client(config.http_timeout_seconds) as client:
        register_manifest(registry, manifest, config, client=client)
        cache = DatasetCache.from_config(config, registry)
        cache.store.recover_all()
        try:
            yield cache
        finally:
            await cache.drain()


def render_statuses(statuses: Mapping[str, DatasetStatus]) -> str:
    """Render one tab-separated line per dataset."""
    lines = []
    for key, status in statuses.items():
        date = format_timestamp(status.date) if status.date else "-"
        error = str(status.error) if status.error else "-"
        lines.append(f"{key}\t{status.state}\t{date}\t{error}")
    return "\n".join(lines)


def statuses_exit_code(statuses: Mapping[str, DatasetStatus]) -> int:
    """Return 0 when every dataset has a payload to serve, else 1."""
    return 0 if all(status.available for status in statuses.values()) else 1
