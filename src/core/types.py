"""Shared typed models.

This module defines the dataset definition registered by extensions and the
immutable status snapshots published by the dataset cache.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Literal, Mapping

from core.errors import DefinitionError, RefdataError

DatasetPayload = Mapping[str, Any]
FetchFunction = Callable[[], Awaitable[DatasetPayload]]
OnLoadHook = Callable[[DatasetPayload], None]

DatasetState = Literal["unloaded", "loading", "fetching", "loaded", "error"]
IN_FLIGHT_STATES: tuple[DatasetState, ...] = ("loading", "fetching")

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$")


@dataclass(frozen=True)
class DatasetDefinition:
    """Registered description of one external reference dataset.

    Attributes:
        key: Unique identifier, also used as the on-disk file name stem.
        fetch: Coroutine function producing a fresh payload from the remote source.
        on_load: Optional hook run whenever a payload becomes the current value.
        max_age_in_days: Age after which a loaded payload is refreshed in the
            background. None disables age-based refresh.
    """

    key: str
    fetch: FetchFunction
    on_load: OnLoadHook | None = None
    max_age_in_days: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not _KEY_PATTERN.match(self.key):
            raise DefinitionError(
                f"Invalid dataset key {self.key!r}: use letters, digits, '-', '_' or '.', "
                "and do not start with '.'."
            )
        if not callable(self.fetch):
            raise DefinitionError(f"Dataset {self.key!r} fetch must be callable.")
        if self.on_load is not None and not callable(self.on_load):
            raise DefinitionError(f"Dataset {self.key!r} on_load must be callable when set.")
        if self.max_age_in_days is not None and (
            isinstance(self.max_age_in_days, bool)
            or not isinstance(self.max_age_in_days, (int, float))
            or not math.isfinite(self.max_age_in_days)
            or self.max_age_in_days <= 0
        ):
            raise DefinitionError(
                f"Dataset {self.key!r} max_age_in_days must be a positive number, "
                f"got {self.max_age_in_days!r}."
            )


@dataclass(frozen=True)
class DatasetStatus:
    """Point-in-time status of one dataset.

    Snapshots are never mutated; every transition publishes a new instance so
    payload and date always change together.

    Attributes:
        key: Dataset key.
        state: Lifecycle state.
        payload: Last successfully loaded payload, or None.
        date: Timestamp associated with the payload.
        error: Last recorded error, cleared on a successful load.
        failed_at: When the last error was recorded.
    """

    key: str
    state: DatasetState = "unloaded"
    payload: DatasetPayload | None = None
    date: datetime | None = None
    error: RefdataError | None = None
    failed_at: datetime | None = None

    @property
    def available(self) -> bool:
        """Whether consumers have a payload to serve, possibly stale."""
        return self.payload is not None

    @property
    def in_flight(self) -> bool:
        """Whether a disk read or remote fetch is running for this dataset."""
        return self.state in IN_FLIGHT_STATES
