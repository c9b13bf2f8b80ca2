"""Dataset load, fetch and refresh orchestration.

This module decides between reading a dataset from the durable store and
fetching it remotely, tracks staleness, and publishes per-key status
snapshots to subscribers. Work for one key is single-flight: concurrent
callers join the running operation instead of starting another one, while
different keys proceed independently.

A cache instance is bound to the event loop that first drives it.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Coroutine

from core.config import RefdataConfig
from core.constants import DEFAULT_RETRY_INTERVAL_MINUTES
from core.errors import FetchError, LoadHookError, RefdataError
from core.logging_config import get_logger
from core.payload import (
    deserialize_payload,
    embedded_date,
    format_timestamp,
    serialize_payload,
    validate_fetched_payload,
)
from core.types import DatasetDefinition, DatasetPayload, DatasetStatus
from store.dataset_registry import DatasetRegistry
from store.durable_store import DurableStore

_LOGGER = get_logger(__name__)

StatusListener = Callable[[DatasetStatus], None]
Clock = Callable[[], datetime]
# (status, whether a background refresh is due)
_Outcome = tuple[DatasetStatus, bool]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DatasetCache:
    """In-memory status owner for every registered dataset."""

    def __init__(
        self,
        registry: DatasetRegistry,
        store: DurableStore,
        clock: Clock | None = None,
        retry_interval: timedelta = timedelta(minutes=DEFAULT_RETRY_INTERVAL_MINUTES),
    ) -> None:
        """Create a cache over a registry and a durable store.

        Args:
            registry: Registered dataset definitions.
            store: Durable storage for dataset documents.
            clock: Optional source of the current UTC time.
            retry_interval: Minimum wait before a stale dataset whose last
                refresh failed is retried by ``ensure_loaded``.
        """
        self._registry = registry
        self._store = store
        self._clock = clock or utc_now
        self._retry_interval = retry_interval
        self._statuses: dict[str, DatasetStatus] = {}
        self._in_flight: dict[str, asyncio.Task[DatasetStatus]] = {}
        self._fetching_keys: set[str] = set()
        self._listeners: list[StatusListener] = []

    @classmethod
    def from_config(
        cls,
        config: RefdataConfig,
        registry: DatasetRegistry,
        clock: Clock | None = None,
    ) -> "DatasetCache":
        """Build a cache storing files under the configured data root."""
        return cls(
            registry,
            DurableStore(config.data_files_dir),
            clock=clock,
            retry_interval=timedelta(minutes=config.retry_interval_minutes),
        )

    @property
    def store(self) -> DurableStore:
        return self._store

    def status(self, key: str) -> DatasetStatus:
        """Return the current status snapshot for one dataset.

        Raises:
            NotFoundError: If the key is not registered.
        """
        self._registry.get(key)
        status = self._statuses.get(key)
        if status is None:
            status = DatasetStatus(key=key)
            self._statuses[key] = status
        return status

    def statuses(self) -> dict[str, DatasetStatus]:
        """Return status snapshots for every registered dataset."""
        return {definition.key: self.status(definition.key) for definition in self._registry.all()}

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a listener called with every new status snapshot.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def ensure_loaded(self, key: str) -> DatasetStatus:
        """Make a dataset available, reading from disk or fetching as needed.

        Load failures are recorded in the returned status, never raised.
        A stale value read from disk is returned at once while a refresh
        runs in the background.

        Raises:
            NotFoundError: If the key is not registered.
        """
        current = self.status(key)
        if current.state == "loaded":
            return current
        in_flight = self._in_flight.get(key)
        if current.available:
            # refreshing or last refresh failed; keep serving the current payload
            if in_flight is None and current.state == "error":
                self._retry_if_due(key)
            return current
        if in_flight is not None:
            return await asyncio.shield(in_flight)
        return await asyncio.shield(self._start(key, self._load(key)))

    async def fetch_dataset(self, key: str) -> DatasetStatus:
        """Fetch a fresh copy of a dataset and persist it.

        Joins a fetch already running for the key. If a disk read is running,
        waits for it and then fetches.

        Raises:
            NotFoundError: If the key is not registered.
        """
        definition = self._registry.get(key)
        in_flight = self._in_flight.get(key)
        while in_flight is not None:
            if key in self._fetching_keys or self.status(key).state == "fetching":
                return await asyncio.shield(in_flight)
            await asyncio.shield(in_flight)
            in_flight = self._in_flight.get(key)
        return await asyncio.shield(
            self._start(key, self._fetch_outcome(definition), fetching=True)
        )

    async def force_refresh(self, key: str) -> DatasetStatus:
        """Fetch a dataset regardless of its state or age."""
        _LOGGER.info("dataset_refresh_forced", key=key)
        return await self.fetch_dataset(key)

    async def load_all(self) -> dict[str, DatasetStatus]:
        """Ensure every registered dataset is loaded.

        Each key is attempted independently; one failure never stops the rest.

        Returns:
            Status snapshot per key once every load attempt finished.
        """
        keys = [definition.key for definition in self._registry.all()]
        results = await asyncio.gather(
            *(self.ensure_loaded(key) for key in keys),
            return_exceptions=True,
        )
        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                _LOGGER.error("dataset_load_crashed", key=key, error=repr(result))
        return {key: self.status(key) for key in keys}

    async def drain(self) -> None:
        """Wait until no load, fetch or background refresh is running."""
        while self._in_flight:
            await asyncio.gather(*tuple(self._in_flight.values()), return_exceptions=True)

    def _start(
        self,
        key: str,
        operation: Coroutine[Any, Any, _Outcome],
        fetching: bool = False,
    ) -> asyncio.Task[DatasetStatus]:
        task = asyncio.get_running_loop().create_task(
            self._run_tracked(key, operation),
            name=f"refdata:{key}",
        )
        self._in_flight[key] = task
        if fetching:
            self._fetching_keys.add(key)
        return task

    async def _run_tracked(
        self,
        key: str,
        operation: Coroutine[Any, Any, _Outcome],
    ) -> DatasetStatus:
        try:
            status, refresh_due = await operation
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]
                self._fetching_keys.discard(key)
        if refresh_due:
            self._spawn_refresh(key, reason="stale")
        return status

    def _spawn_refresh(self, key: str, reason: str) -> None:
        if key in self._in_flight:
            return
        definition = self._registry.get(key)
        status = self.status(key)
        _LOGGER.info(
            "dataset_refresh_scheduled",
            key=key,
            reason=reason,
            date=format_timestamp(status.date) if status.date else None,
        )
        task = self._start(key, self._fetch_outcome(definition), fetching=True)
        task.add_done_callback(_log_background_failure)

    def _retry_if_due(self, key: str) -> None:
        definition = self._registry.get(key)
        status = self.status(key)
        if not self._is_stale(definition, status.date):
            return
        if status.failed_at is not None and self._clock() - status.failed_at < self._retry_interval:
            return
        self._spawn_refresh(key, reason="retry")

    async def _load(self, key: str) -> _Outcome:
        definition = self._registry.get(key)
        try:
            stored = await asyncio.to_thread(self._store.exists, key)
        except RefdataError as error:
            _LOGGER.warning("dataset_stored_copy_unusable", key=key, error=str(error))
            stored = False
        if not stored:
            _LOGGER.info("dataset_not_stored_fetching", key=key)
            return await self._fetch_outcome(definition)
        self._publish(replace(self.status(key), state="loading"))
        try:
            payload, date = await asyncio.to_thread(self._read_stored, key)
        except RefdataError as error:
            _LOGGER.warning("dataset_read_failed_fetching", key=key, error=str(error))
            return await self._fetch_outcome(definition)
        try:
            _run_on_load(definition, payload)
        except LoadHookError as error:
            return self._fail(key, error), False
        status = self._publish(DatasetStatus(key=key, state="loaded", payload=payload, date=date))
        stale = self._is_stale(definition, date)
        _LOGGER.info("dataset_read", key=key, date=format_timestamp(date), stale=stale)
        return status, stale

    def _read_stored(self, key: str) -> tuple[DatasetPayload, datetime]:
        payload = deserialize_payload(key, self._store.read_current(key))
        date = embedded_date(payload) or self._store.modified_at(key)
        return payload, date

    async def _fetch_outcome(self, definition: DatasetDefinition) -> _Outcome:
        return await self._fetch(definition), False

    async def _fetch(self, definition: DatasetDefinition) -> DatasetStatus:
        key = definition.key
        self._publish(replace(self.status(key), state="fetching"))
        try:
            payload = validate_fetched_payload(key, await _call_fetch(definition))
            body = serialize_payload(key, payload)
            await asyncio.to_thread(self._store.write_current_atomically, key, body)
            _run_on_load(definition, payload)
        except RefdataError as error:
            return self._fail(key, error)
        date = embedded_date(payload) or self._clock()
        _LOGGER.info("dataset_fetched", key=key, date=format_timestamp(date), size=len(body))
        return self._publish(DatasetStatus(key=key, state="loaded", payload=payload, date=date))

    def _fail(self, key: str, error: RefdataError) -> DatasetStatus:
        previous = self.status(key)
        _LOGGER.error(
            "dataset_load_failed",
            key=key,
            error=str(error),
            error_type=type(error).__name__,
            keeps_previous=previous.available,
        )
        return self._publish(
            DatasetStatus(
                key=key,
                state="error",
                payload=previous.payload,
                date=previous.date,
                error=error,
                failed_at=self._clock(),
            )
        )

    def _is_stale(self, definition: DatasetDefinition, date: datetime | None) -> bool:
        if definition.max_age_in_days is None or date is None:
            return False
        return self._clock() - date > timedelta(days=definition.max_age_in_days)

    def _publish(self, status: DatasetStatus) -> DatasetStatus:
        self._statuses[status.key] = status
        for listener in tuple(self._listeners):
            try:
                listener(status)
            except Exception as error:
                _LOGGER.error(
                    "dataset_listener_failed",
                    key=status.key,
                    state=status.state,
                    error=repr(error),
                )
        return status


async def _call_fetch(definition: DatasetDefinition) -> object:
    try:
        return await definition.fetch()
    except FetchError:
        raise
    except Exception as error:
        raise FetchError(f"Fetch for dataset {definition.key!r} failed: {error!r}.") from error


def _run_on_load(definition: DatasetDefinition, payload: DatasetPayload) -> None:
    if definition.on_load is None:
        return
    try:
        definition.on_load(payload)
    except Exception as error:
        raise LoadHookError(
            f"on_load hook for dataset {definition.key!r} failed: {error!r}. "
            "Fix the extension hook; the dataset stays unavailable until it succeeds."
        ) from error


def _log_background_failure(task: asyncio.Task[DatasetStatus]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        _LOGGER.error("dataset_refresh_crashed", task=task.get_name(), error=repr(error))
