"""Refresh command wiring for Refdata CLI."""

from __future__ import annotations

import argparse
import asyncio
from typing import Any, Sequence

from cli.cache_session import open_cache, render_statuses, statuses_exit_code
from core.config import RefdataConfig
from core.errors import RefdataError
from core.manifest import DatasetManifest
from core.types import DatasetStatus


def add_refresh_command(subparsers: Any) -> None:
    """Register refresh subcommand."""
    parser = subparsers.add_parser(
        "refresh",
        help="Fetch fresh copies of datasets regardless of their age",
    )
    parser.add_argument("keys", nargs="*", help="Dataset keys to refresh")
    parser.add_argument(
        "--all",
        dest="refresh_all",
        action="store_true",
        help="Refresh every dataset in the manifest",
    )


def run_refresh_command(
    config: RefdataConfig,
    manifest: DatasetManifest,
    args: argparse.Namespace,
) -> int:
    """Force-refresh the selected datasets and print their status."""
    if args.refresh_all:
        keys: Sequence[str] = tuple(entry.key for entry in manifest.entries)
    elif args.keys:
        keys = tuple(args.keys)
    else:
        print("refdata_error=Pass one or more dataset keys or --all.")
        return 2
    try:
        statuses = asyncio.run(_refresh(config, manifest, keys))
    except RefdataError as error:
        print(f"refdata_error={error}")
        return 2
    print(render_statuses(statuses))
    return statuses_exit_code(statuses)


async def _refresh(
    config: RefdataConfig,
    manifest: DatasetManifest,
    keys: Sequence[str],
) -> dict[str, DatasetStatus]:
    async with open_cache(config, manifest) as cache:
        for key in keys:
            cache.status(key)
        await asyncio.gather(*(cache.force_refresh(key) for key in keys))
        return {key: cache.status(key) for key in keys}
