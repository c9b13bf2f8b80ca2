"""Refdata exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class RefdataError(Exception):
    """Base exception for all Refdata failures."""


class RefdataConfigError(RefdataError):
    """Raised for invalid runtime configuration."""


class ManifestError(RefdataError):
    """Raised for invalid or unreadable dataset manifest files."""


class DefinitionError(RefdataError):
    """Raised when a dataset definition is malformed."""


class DuplicateKeyError(RefdataError):
    """Raised when a dataset key is registered twice."""


class NotFoundError(RefdataError):
    """Raised for unregistered keys or missing durable values."""


class CorruptError(RefdataError):
    """Raised when a durable value cannot be read or parsed."""


class FetchError(RefdataError):
    """Raised when a remote source fails or returns invalid data."""


class WriteError(RefdataError):
    """Raised when durable persistence fails."""


class LoadHookError(RefdataError):
    """Raised when a dataset on-load hook fails."""
