"""Catalog of registered reference datasets.

Extensions register their datasets once at startup. The registry is treated
as read-only afterwards, so lookups need no locking.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from core.errors import DuplicateKeyError, NotFoundError
from core.logging_config import get_logger
from core.types import DatasetDefinition

_LOGGER = get_logger(__name__)


class DatasetRegistry:
    """Append-only mapping from dataset key to its definition."""

    def __init__(self) -> None:
        self._definitions: dict[str, DatasetDefinition] = {}

    def register(self, definition: DatasetDefinition) -> DatasetDefinition:
        """Add one dataset definition.

        Raises:
            DuplicateKeyError: If a definition with the same key exists.
        """
        if definition.key in self._definitions:
            raise DuplicateKeyError(
                f"Dataset {definition.key!r} is already registered. "
                "Each extension must use a unique dataset key."
            )
        self._definitions[definition.key] = definition
        _LOGGER.debug(
            "dataset_registered",
            key=definition.key,
            max_age_in_days=definition.max_age_in_days,
        )
        return definition

    def get(self, key: str) -> DatasetDefinition:
        """Return the definition for one key.

        Raises:
            NotFoundError: If the key was never registered.
        """
        try:
            return self._definitions[key]
        except KeyError as error:
            raise NotFoundError(
                f"No dataset definition found for {key!r}. "
                f"Registered keys: {', '.join(self._definitions) or 'none'}."
            ) from error

    def all(self) -> Iterable[DatasetDefinition]:
        """Return a live, restartable view of every definition."""
        return self._definitions.values()

    def keys(self) -> tuple[str, ...]:
        """Return registered keys in registration order."""
        return tuple(self._definitions)

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def __iter__(self) -> Iterator[DatasetDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)
