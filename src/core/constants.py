"""Core constants used across Refdata modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".refdata")
DATA_FILES_DIR_NAME = "data"
CURRENT_FILE_SUFFIX = ".json"
STAGING_FILE_SUFFIX = ".json.new"
PREVIOUS_FILE_SUFFIX = ".json.old"
PAYLOAD_DATE_FIELD = "date"
PAYLOAD_ENCODING = "utf-8"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_HTTP_CONNECT_TIMEOUT_SECONDS = 15.0
DEFAULT_RETRY_INTERVAL_MINUTES = 60.0
MANIFEST_VERSION = 1
