"""Runtime configuration model for Refdata.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import os
from pathlib import Path

from core.constants import (
    DATA_FILES_DIR_NAME,
    DEFAULT_DATA_ROOT,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_RETRY_INTERVAL_MINUTES,
)
from core.errors import RefdataConfigError


@dataclass(frozen=True)
class RefdataConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for cached data files.
        manifest_path: Optional YAML manifest declaring URL-backed datasets.
        http_timeout_seconds: Timeout applied to remote dataset downloads.
        retry_interval_minutes: Minimum wait before retrying a failed refresh
            of a stale dataset.
    """

    data_root: Path
    manifest_path: Path | None
    http_timeout_seconds: float
    retry_interval_minutes: float

    @property
    def data_files_dir(self) -> Path:
        """Directory holding the per-dataset JSON files."""
        return self.data_root / DATA_FILES_DIR_NAME

    @classmethod
    def from_env(cls) -> "RefdataConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            RefdataConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("REFDATA_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        manifest_value = os.getenv("REFDATA_MANIFEST")
        http_timeout = _parse_float(
            "REFDATA_HTTP_TIMEOUT",
            os.getenv("REFDATA_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT_SECONDS)),
            allow_zero=False,
        )
        retry_interval = _parse_float(
            "REFDATA_RETRY_MINUTES",
            os.getenv("REFDATA_RETRY_MINUTES", str(DEFAULT_RETRY_INTERVAL_MINUTES)),
            allow_zero=True,
        )
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            manifest_path=Path(manifest_value).expanduser().resolve()
            if manifest_value
            else None,
            http_timeout_seconds=http_timeout,
            retry_interval_minutes=retry_interval,
        )


def _parse_float(variable_name: str, raw_value: str, allow_zero: bool) -> float:
    """Parse one numeric environment value.

    Args:
        variable_name: Environment variable name, used in error messages.
        raw_value: Raw string from environment.
        allow_zero: Whether zero is an acceptable value.

    Returns:
        Parsed float value.

    Raises:
        RefdataConfigError: If value is not a number or is out of range.
    """
    try:
        value = float(raw_value)
    except ValueError as error:
        raise RefdataConfigError(
            f"Invalid {variable_name} value: "
            f"expected number, got '{raw_value}'. "
            f"Set {variable_name} to a numeric value."
        ) from error
    if not math.isfinite(value) or value < 0 or (value == 0 and not allow_zero):
        bound = "non-negative" if allow_zero else "positive"
        raise RefdataConfigError(
            f"Invalid {variable_name} value: expected {bound} number, got '{raw_value}'."
        )
    return value
