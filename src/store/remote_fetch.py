"""Remote fetch capabilities for URL-backed datasets.

Datasets declared in a manifest are downloaded as JSON documents with a
shared ``httpx.AsyncClient``. Transport, status and decoding failures all
surface as ``FetchError`` so the cache records them like any other fetch
failure.
"""

from __future__ import annotations

from typing import Any

import httpx

from core.config import RefdataConfig
from core.constants import DEFAULT_HTTP_CONNECT_TIMEOUT_SECONDS
from core.errors import FetchError
from core.logging_config import get_logger
from core.manifest import DatasetManifest
from core.types import DatasetDefinition, FetchFunction
from store.dataset_registry import DatasetRegistry

_LOGGER = get_logger(__name__)

_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)


def build_http_client(timeout_seconds: float) -> httpx.AsyncClient:
    """Create the client used for dataset downloads."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            timeout_seconds,
            connect=min(timeout_seconds, DEFAULT_HTTP_CONNECT_TIMEOUT_SECONDS),
        ),
        follow_redirects=True,
        limits=_LIMITS,
        headers={"Accept": "application/json"},
    )


def build_url_fetch(
    url: str,
    timeout_seconds: float,
    client: httpx.AsyncClient | None = None,
) -> FetchFunction:
    """Return a fetch coroutine function downloading one JSON document.

    Args:
        url: Document URL.
        timeout_seconds: Request timeout when no client is supplied.
        client: Optional shared client; a short-lived one is used otherwise.

    Returns:
        Coroutine function producing the decoded JSON object.
    """

    async def fetch() -> dict[str, Any]:
        if client is not None:
            return await _download_json(client, url)
        async with build_http_client(timeout_seconds) as owned_client:
            return await _download_json(owned_client, url)

    return fetch


async def _download_json(client: httpx.AsyncClient, url: str) -> dict[str, Any]:
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as error:
        raise FetchError(
            f"Download of {url} failed with HTTP {error.response.status_code}."
        ) from error
    except httpx.HTTPError as error:
        raise FetchError(f"Download of {url} failed: {error!r}.") from error
    try:
        payload = response.json()
    except ValueError as error:
        raise FetchError(f"Download of {url} did not return valid JSON: {error}.") from error
    if not isinstance(payload, dict):
        raise FetchError(
            f"Download of {url} returned a JSON {type(payload).__name__}; expected an object."
        )
    _LOGGER.debug("dataset_downloaded", url=url, size=len(response.content))
    return payload


def register_manifest(
    registry: DatasetRegistry,
    manifest: DatasetManifest,
    config: RefdataConfig,
    client: httpx.AsyncClient | None = None,
) -> tuple[DatasetDefinition, ...]:
    """Register one URL-backed definition per manifest entry.

    Raises:
        DuplicateKeyError: If an entry reuses a registered key.
        DefinitionError: If an entry key is not a valid dataset key.
    """
    definitions = tuple(
        registry.register(
            DatasetDefinition(
                key=entry.key,
                fetch=build_url_fetch(entry.url, config.http_timeout_seconds, client=client),
                max_age_in_days=entry.max_age_days,
            )
        )
        for entry in manifest.entries
    )
    _LOGGER.info("manifest_registered", count=len(definitions))
    return definitions
