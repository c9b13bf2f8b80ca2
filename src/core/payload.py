"""Dataset payload validation and serialization helpers.

Payloads are JSON objects stored as UTF-8 documents. An optional top-level
``date`` field carries an ISO-8601 timestamp for the data it describes.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

from core.constants import PAYLOAD_DATE_FIELD, PAYLOAD_ENCODING
from core.errors import CorruptError, FetchError
from core.types import DatasetPayload


def validate_fetched_payload(key: str, payload: object) -> DatasetPayload:
    """Check a freshly fetched payload and return a read-only view of it.

    Raises:
        FetchError: If the payload is not a JSON object or carries a bad date.
    """
    if not isinstance(payload, Mapping):
        raise FetchError(
            f"Fetch for dataset {key!r} returned {type(payload).__name__}; "
            "expected a JSON object."
        )
    try:
        embedded_date(payload)
    except ValueError as error:
        raise FetchError(f"Fetch for dataset {key!r} returned an invalid date: {error}.") from error
    return MappingProxyType(dict(payload))


def serialize_payload(key: str, payload: DatasetPayload) -> bytes:
    """Encode a payload for durable storage."""
    try:
        document = json.dumps(dict(payload), ensure_ascii=False)
    except (TypeError, ValueError) as error:
        raise FetchError(
            f"Fetch for dataset {key!r} returned data that is not JSON serialisable: {error}."
        ) from error
    return document.encode(PAYLOAD_ENCODING)


def deserialize_payload(key: str, body: bytes) -> DatasetPayload:
    """Decode a durable document back into a read-only payload.

    Raises:
        CorruptError: If the document is not valid UTF-8 JSON object data.
    """
    try:
        payload = json.loads(body.decode(PAYLOAD_ENCODING))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise CorruptError(
            f"Stored data for dataset {key!r} could not be parsed: {error}. "
            "It will be fetched again."
        ) from error
    if not isinstance(payload, dict):
        raise CorruptError(
            f"Stored data for dataset {key!r} is a {type(payload).__name__}, "
            "expected a JSON object. It will be fetched again."
        )
    try:
        embedded_date(payload)
    except ValueError as error:
        raise CorruptError(
            f"Stored data for dataset {key!r} has an invalid date: {error}."
        ) from error
    return MappingProxyType(payload)


def embedded_date(payload: Mapping[str, Any]) -> datetime | None:
    """Return the payload's own timestamp, if it carries one.

    Raises:
        ValueError: If the date field is present but not an ISO-8601 string.
    """
    raw_date = payload.get(PAYLOAD_DATE_FIELD)
    if raw_date is None:
        return None
    if not isinstance(raw_date, str):
        raise ValueError(f"expected ISO-8601 string, got {type(raw_date).__name__}")
    return parse_timestamp(raw_date)


def parse_timestamp(raw_value: str) -> datetime:
    """Parse an ISO-8601 timestamp into UTC; naive values are taken as UTC.

    Raises:
        ValueError: If the value is not ISO-8601 or falls outside the UTC
            range ``datetime`` can represent.
    """
    value = raw_value.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as error:
        raise ValueError(f"{raw_value!r} is out of the supported date range") from error


def format_timestamp(value: datetime) -> str:
    """Render a timestamp the way payloads carry it."""
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
