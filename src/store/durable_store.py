"""Crash-safe file storage for dataset documents.

Each key owns up to three files inside the store directory:
``<key>.json`` (current), ``<key>.json.new`` (staging) and
``<key>.json.old`` (previous, transient while rotating). A replace writes and
syncs the staging file, moves the current file aside, promotes the staging
file, then drops the previous copy. Recovery runs once per key before first
access and repairs whatever an interrupted rotation left behind, so a key
never loses its readable current value once one was written.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

from core.constants import CURRENT_FILE_SUFFIX, PREVIOUS_FILE_SUFFIX, STAGING_FILE_SUFFIX
from core.errors import CorruptError, DefinitionError, NotFoundError, WriteError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class DurableStore:
    """Directory-backed store with atomic replace semantics per key."""

    def __init__(self, root: Path) -> None:
        """Create a store rooted at a directory.

        The directory is created lazily on the first write.

        Args:
            root: Directory holding the dataset files.
        """
        self._root = root
        self._recovered_keys: set[str] = set()

    @property
    def root(self) -> Path:
        return self._root

    def exists(self, key: str) -> bool:
        """Return whether a current value is stored for the key."""
        self._ensure_recovered(key)
        return self._current_path(key).is_file()

    def read_current(self, key: str) -> bytes:
        """Read the current stored bytes for one key.

        Raises:
            NotFoundError: If no value was ever stored.
            CorruptError: If the file exists but cannot be read.
        """
        self._ensure_recovered(key)
        current_path = self._current_path(key)
        try:
            return current_path.read_bytes()
        except FileNotFoundError as error:
            raise NotFoundError(f"No stored data for dataset {key!r} at {current_path}.") from error
        except OSError as error:
            raise CorruptError(
                f"Failed to read stored data for dataset {key!r} at {current_path}: {error}."
            ) from error

    def modified_at(self, key: str) -> datetime:
        """Return the UTC modification time of the current file.

        Raises:
            NotFoundError: If no value was ever stored.
            CorruptError: If the file cannot be inspected.
        """
        self._ensure_recovered(key)
        current_path = self._current_path(key)
        try:
            stat_result = current_path.stat()
        except FileNotFoundError as error:
            raise NotFoundError(f"No stored data for dataset {key!r} at {current_path}.") from error
        except OSError as error:
            raise CorruptError(
                f"Failed to inspect stored data for dataset {key!r} at {current_path}: {error}."
            ) from error
        return datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)

    def write_current_atomically(self, key: str, data: bytes) -> None:
        """Replace the current value for one key.

        After this returns, successfully or not, ``read_current`` yields
        either the previous bytes unchanged or the new bytes in full.

        Raises:
            WriteError: If the new value could not be persisted.
        """
        self._ensure_recovered(key)
        current_path = self._current_path(key)
        staging_path = self._staging_path(key)
        previous_path = self._previous_path(key)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            _write_synced(staging_path, data)
        except OSError as error:
            _discard(staging_path)
            raise WriteError(
                f"Failed to stage data for dataset {key!r} at {staging_path}: {error}. "
                "Check free space and permissions on the data directory."
            ) from error
        try:
            if current_path.exists():
                os.replace(current_path, previous_path)
            os.replace(staging_path, current_path)
        except OSError as error:
            self._roll_back(key)
            raise WriteError(
                f"Failed to replace data for dataset {key!r} at {current_path}: {error}. "
                "The previous value was kept."
            ) from error
        _sync_directory(self._root)
        _discard(previous_path)
        _LOGGER.debug("durable_store_written", key=key, size=len(data))

    def recover(self, key: str) -> str | None:
        """Repair leftovers of an interrupted rotation for one key.

        Returns:
            The repair action taken, or None when the files were consistent.

        Raises:
            CorruptError: If the files could not be repaired.
        """
        current_path = self._current_path(key)
        staging_path = self._staging_path(key)
        previous_path = self._previous_path(key)
        action: str | None = None
        try:
            if current_path.exists():
                if staging_path.exists() or previous_path.exists():
                    action = "discarded_leftovers"
                    _discard(staging_path)
                    _discard(previous_path)
            elif staging_path.exists():
                action = "promoted_staging"
                os.replace(staging_path, current_path)
                _discard(previous_path)
            elif previous_path.exists():
                action = "restored_previous"
                os.replace(previous_path, current_path)
        except OSError as error:
            raise CorruptError(
                f"Failed to recover stored data for dataset {key!r} in {self._root}: {error}. "
                "Remove the dataset files manually to fetch a fresh copy."
            ) from error
        self._recovered_keys.add(key)
        if action is not None:
            _LOGGER.warning("durable_store_recovered", key=key, action=action)
        return action

    def recover_all(self) -> dict[str, str]:
        """Run recovery for every key with files in the store directory.

        Returns:
            Mapping of key to the repair action for keys that needed one.
        """
        if not self._root.is_dir():
            return {}
        file_keys = (_key_from_file_name(path.name) for path in self._root.iterdir())
        actions: dict[str, str] = {}
        for key in sorted({key for key in file_keys if key is not None}):
            action = self.recover(key)
            if action is not None:
                actions[key] = action
        return actions

    def _ensure_recovered(self, key: str) -> None:
        _validate_key(key)
        if key not in self._recovered_keys:
            self.recover(key)

    def _roll_back(self, key: str) -> None:
        current_path = self._current_path(key)
        previous_path = self._previous_path(key)
        self._recovered_keys.discard(key)
        try:
            if not current_path.exists() and previous_path.exists():
                os.replace(previous_path, current_path)
        except OSError as error:
            _LOGGER.error("durable_store_rollback_failed", key=key, error=str(error))
            return
        _discard(self._staging_path(key))
        self._recovered_keys.add(key)

    def _current_path(self, key: str) -> Path:
        return self._root / f"{key}{CURRENT_FILE_SUFFIX}"

    def _staging_path(self, key: str) -> Path:
        return self._root / f"{key}{STAGING_FILE_SUFFIX}"

    def _previous_path(self, key: str) -> Path:
        return self._root / f"{key}{PREVIOUS_FILE_SUFFIX}"


def _validate_key(key: str) -> None:
    if not key or key.startswith(".") or Path(key).name != key:
        raise DefinitionError(
            f"Invalid dataset key {key!r}: keys must be plain file names without path separators."
        )


def _key_from_file_name(file_name: str) -> str | None:
    for suffix in (STAGING_FILE_SUFFIX, PREVIOUS_FILE_SUFFIX, CURRENT_FILE_SUFFIX):
        if file_name.endswith(suffix) and len(file_name) > len(suffix):
            return file_name[: -len(suffix)]
    return None


def _write_synced(path: Path, data: bytes) -> None:
    with path.open("wb") as handle:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())


def _sync_directory(directory: Path) -> None:
    """Flush directory entries so renames survive power loss on POSIX."""
    if os.name != "posix":
        return
    try:
        descriptor = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(descriptor)
        finally:
            os.close(descriptor)
    except OSError as error:
        _LOGGER.warning("durable_store_directory_sync_failed", path=str(directory), error=str(error))


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as error:
        _LOGGER.warning("durable_store_cleanup_failed", path=str(path), error=str(error))
