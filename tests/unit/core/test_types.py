"""Unit tests for dataset definition and status models."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.errors import DefinitionError
from core.types import DatasetDefinition, DatasetStatus


async def _fetch_nothing() -> dict[str, object]:
    return {}


def test_definition_accepts_file_safe_key() -> None:
    """Keys made of letters, digits, dashes, dots and underscores are valid."""
    definition = DatasetDefinition(key="pota-parks_v2.us", fetch=_fetch_nothing, max_age_in_days=7)

    assert definition.max_age_in_days == 7 and definition.on_load is None


@pytest.mark.parametrize("key", ["", ".hidden", "../escape", "a/b", "with space"])
def test_definition_rejects_unsafe_keys(key: str) -> None:
    """Keys name files on disk, so path-like keys are rejected."""
    with pytest.raises(DefinitionError):
        DatasetDefinition(key=key, fetch=_fetch_nothing)


@pytest.mark.parametrize("max_age", [0, -1, float("nan"), True])
def test_definition_rejects_invalid_max_age(max_age: object) -> None:
    """Max age must be a positive number when provided."""
    with pytest.raises(DefinitionError, match="max_age_in_days"):
        DatasetDefinition(key="prefixes", fetch=_fetch_nothing, max_age_in_days=max_age)  # type: ignore[arg-type]


def test_definition_rejects_non_callable_hook() -> None:
    """on_load must be callable when set."""
    with pytest.raises(DefinitionError, match="on_load"):
        DatasetDefinition(key="prefixes", fetch=_fetch_nothing, on_load="index")  # type: ignore[arg-type]


def test_status_defaults_to_unloaded_without_payload() -> None:
    """A fresh status has no payload and nothing in flight."""
    status = DatasetStatus(key="prefixes")

    assert status.state == "unloaded" and not status.available and not status.in_flight


def test_status_with_payload_is_available_while_fetching() -> None:
    """A refreshing dataset keeps serving its previous payload."""
    status = DatasetStatus(
        key="prefixes",
        state="fetching",
        payload={"table": []},
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )

    assert status.available and status.in_flight
