"""Refdata CLI entry points.
This module exposes commands for inspecting, loading and refreshing datasets.
It maps argparse commands onto cache operations.
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from cli.cache_session import (
    load_configured_manifest,
    open_cache,
    render_statuses,
    statuses_exit_code,
)
from cli.refresh_command import add_refresh_command, run_refresh_command
from core.config import RefdataConfig
from core.errors import RefdataError
from core.manifest import DatasetManifest
from core.types import DatasetStatus


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="refdata", description="Reference data-file cache CLI")
    parser.add_argument("--data-root", help="Override REFDATA_DATA_ROOT for this command")
    parser.add_argument("--manifest", help="Override REFDATA_MANIFEST for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_list_command(subparsers)
    _add_load_command(subparsers)
    add_refresh_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Refdata CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args.data_root, args.manifest)
        manifest = load_configured_manifest(config)
    except RefdataError as error:
        print(f"refdata_error={error}")
        return 2
    if args.command == "list":
        return _run_list_command(manifest)
    if args.command == "load":
        return _run_load_command(config, manifest)
    if args.command == "refresh":
        return run_refresh_command(config, manifest, args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(data_root: str | None, manifest: str | None) -> RefdataConfig:
    """Build runtime config with optional CLI overrides.

    Args:
        data_root: Optional data root override path.
        manifest: Optional manifest override path.

    Returns:
        Configured runtime config.
    """
    config = RefdataConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    if manifest:
        config = replace(config, manifest_path=Path(manifest).expanduser().resolve())
    return config


def _add_list_command(subparsers: Any) -> None:
    subparsers.add_parser("list", help="List datasets declared in the manifest")


def _add_load_command(subparsers: Any) -> None:
    subparsers.add_parser(
        "load",
        help="Load every dataset, fetching missing ones and refreshing stale ones",
    )


def _run_list_command(manifest: DatasetManifest) -> int:
    """Handle list command.

    Args:
        manifest: Validated dataset manifest.

    Returns:
        Exit code.
    """
    for entry in manifest.entries:
        max_age = f"{entry.max_age_days:g}" if entry.max_age_days is not None else "-"
        print(f"{entry.key}\t{max_age}\t{entry.url}")
    return 0


def _run_load_command(config: RefdataConfig, manifest: DatasetManifest) -> int:
    """Handle load command.

    Args:
        config: Runtime config.
        manifest: Validated dataset manifest.

    Returns:
        Exit code.
    """
    try:
        statuses = asyncio.run(_load_all(config, manifest))
    except RefdataError as error:
        print(f"refdata_error={error}")
        return 2
    print(render_statuses(statuses))
    return statuses_exit_code(statuses)


async def _load_all(config: RefdataConfig, manifest: DatasetManifest) -> dict[str, DatasetStatus]:
    async with open_cache(config, manifest) as cache:
        await cache.load_all()
        await cache.drain()
        return cache.statuses()
