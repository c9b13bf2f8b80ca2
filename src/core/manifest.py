"""Typed dataset manifest parsing.

This module loads and validates YAML manifests that declare URL-backed
datasets for the command line. It provides one strict schema so every entry
point registers the same definitions.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from pathlib import Path
from typing import Mapping, Sequence, cast

import yaml

from core.constants import MANIFEST_VERSION
from core.errors import ManifestError

_ROOT_KEYS = frozenset({"version", "datasets"})
_ENTRY_KEYS = frozenset({"key", "url", "max_age_days"})


@dataclass(frozen=True)
class ManifestEntry:
    """One URL-backed dataset declared in a manifest."""

    key: str
    url: str
    max_age_days: float | None = None


@dataclass(frozen=True)
class DatasetManifest:
    """Validated manifest root object."""

    version: int
    entries: tuple[ManifestEntry, ...]


def load_dataset_manifest(manifest_path: Path | str) -> DatasetManifest:
    """Load and validate a YAML dataset manifest from disk.

    Args:
        manifest_path: File path to the YAML manifest.

    Returns:
        Fully validated manifest object.

    Raises:
        ManifestError: If the file is missing, unreadable, or fails schema checks.
    """
    payload = _load_yaml_payload(Path(manifest_path))
    root_mapping = _expect_mapping(payload, "manifest root")
    unknown_keys = sorted(set(root_mapping) - _ROOT_KEYS)
    if unknown_keys:
        raise ManifestError(
            f"Unsupported manifest field(s): {', '.join(unknown_keys)}. "
            "Allowed fields are 'version' and 'datasets'."
        )
    version = _parse_version(root_mapping)
    entries = _parse_entries(root_mapping)
    return DatasetManifest(version=version, entries=entries)


def _load_yaml_payload(manifest_file: Path) -> object:
    manifest_file = manifest_file.expanduser().resolve()
    if not manifest_file.exists():
        raise ManifestError(
            f"Dataset manifest does not exist at {manifest_file}. "
            "Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(manifest_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise ManifestError(
            f"Failed to read dataset manifest at {manifest_file}: {error}. "
            "Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise ManifestError(
            f"Failed to parse YAML manifest at {manifest_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        raise ManifestError(
            f"Dataset manifest at {manifest_file} is empty. Define 'version' and 'datasets'."
        )
    return payload


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise ManifestError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise ManifestError(f"Invalid {context}: expected object mapping, got {type(value).__name__}.")


def _expect_sequence(value: object, context: str) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise ManifestError(f"Invalid {context}: expected list, got {type(value).__name__}.")


def _parse_version(root_mapping: Mapping[str, object]) -> int:
    raw_version = root_mapping.get("version")
    if not isinstance(raw_version, int) or isinstance(raw_version, bool):
        raise ManifestError(
            f"Manifest field 'version' must be an integer. Set version: {MANIFEST_VERSION}."
        )
    if raw_version != MANIFEST_VERSION:
        raise ManifestError(
            f"Unsupported manifest version {raw_version}. Use version: {MANIFEST_VERSION}."
        )
    return raw_version


def _parse_entries(root_mapping: Mapping[str, object]) -> tuple[ManifestEntry, ...]:
    raw_entries = _expect_sequence(root_mapping.get("datasets"), "manifest field 'datasets'")
    entries: list[ManifestEntry] = []
    seen_keys: set[str] = set()
    for index, raw_entry in enumerate(raw_entries):
        context = f"datasets[{index}]"
        entry = _parse_entry(_expect_mapping(raw_entry, context), context)
        if entry.key in seen_keys:
            raise ManifestError(f"Duplicate dataset key {entry.key!r} in {context}.")
        seen_keys.add(entry.key)
        entries.append(entry)
    return tuple(entries)


def _parse_entry(entry_mapping: Mapping[str, object], context: str) -> ManifestEntry:
    unknown_keys = sorted(set(entry_mapping) - _ENTRY_KEYS)
    if unknown_keys:
        raise ManifestError(f"Unsupported field(s) in {context}: {', '.join(unknown_keys)}.")
    key = entry_mapping.get("key")
    url = entry_mapping.get("url")
    if not isinstance(key, str) or not key.strip():
        raise ManifestError(f"Invalid {context}: 'key' must be a non-empty string.")
    if not isinstance(url, str) or not url.startswith(("http://", "https://")):
        raise ManifestError(f"Invalid {context}: 'url' must be an http(s) URL.")
    return ManifestEntry(
        key=key.strip(),
        url=url,
        max_age_days=_parse_max_age(entry_mapping.get("max_age_days"), context),
    )


def _parse_max_age(raw_value: object, context: str) -> float | None:
    if raw_value is None:
        return None
    if (
        isinstance(raw_value, bool)
        or not isinstance(raw_value, (int, float))
        or not math.isfinite(raw_value)
        or raw_value <= 0
    ):
        raise ManifestError(f"Invalid {context}: 'max_age_days' must be a positive number.")
    return float(raw_value)
