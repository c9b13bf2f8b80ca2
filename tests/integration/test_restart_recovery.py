"""Integration tests for caching datasets across process restarts."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Any

from refdata import DatasetDefinition, DatasetRegistry, RefdataConfig, build_cache


class _CountingFetch:
    def __init__(self, payload: dict[str, Any]) -> None:
        self._payload = payload
        self.calls = 0

    async def __call__(self) -> dict[str, Any]:
        self.calls += 1
        return self._payload


def _start_process(config: RefdataConfig, fetch: _CountingFetch, indexed: list[Any]):
    registry = DatasetRegistry()
    registry.register(
        DatasetDefinition(
            key="prefixes",
            fetch=fetch,
            on_load=lambda payload: indexed.append(payload["table"]),
            max_age_in_days=30,
        )
    )
    return build_cache(registry, config)


def test_second_run_reads_stored_copy_without_fetching(tmp_path: Path) -> None:
    """A restarted process serves the stored dataset instead of downloading it."""
    config = replace(RefdataConfig.from_env(), data_root=tmp_path / "refdata")
    fetch = _CountingFetch({"table": ["K", "W"]})
    indexed: list[Any] = []

    first = asyncio.run(_start_process(config, fetch, indexed).load_all())
    second = asyncio.run(_start_process(config, fetch, indexed).load_all())

    assert fetch.calls == 1 and indexed == [["K", "W"], ["K", "W"]]
    assert first["prefixes"].state == "loaded" and second["prefixes"].state == "loaded"
    assert second["prefixes"].payload == first["prefixes"].payload


def test_restart_after_interrupted_replace_keeps_new_value(tmp_path: Path) -> None:
    """A crash after staging but before promotion is repaired on restart."""
    config = replace(RefdataConfig.from_env(), data_root=tmp_path / "refdata")
    data_dir = config.data_files_dir
    data_dir.mkdir(parents=True)
    (data_dir / "prefixes.json.old").write_text('{"table": ["old"]}', encoding="utf-8")
    (data_dir / "prefixes.json.new").write_text('{"table": ["new"]}', encoding="utf-8")
    fetch = _CountingFetch({"table": ["fetched"]})
    indexed: list[Any] = []
    cache = _start_process(config, fetch, indexed)

    actions = cache.store.recover_all()
    status = asyncio.run(cache.ensure_loaded("prefixes"))

    assert actions == {"prefixes": "promoted_staging"}
    assert status.payload is not None and status.payload["table"] == ["new"]
    assert fetch.calls == 0 and sorted(path.name for path in data_dir.iterdir()) == [
        "prefixes.json"
    ]
