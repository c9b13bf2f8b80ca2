"""Unit tests for dataset manifest parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import ManifestError
from core.manifest import load_dataset_manifest
from tests.fixture_paths import fixture_path


def _write_manifest(tmp_path: Path, content: str) -> Path:
    manifest_path = tmp_path / "datasets.yaml"
    manifest_path.write_text(content, encoding="utf-8")
    return manifest_path


def test_load_dataset_manifest_reads_fixture() -> None:
    """Fixture manifest should parse into ordered entries."""
    manifest = load_dataset_manifest(fixture_path("manifest.yaml"))

    keys = [entry.key for entry in manifest.entries]
    assert (
        manifest.version == 1
        and keys == ["prefixes", "pota-parks", "wfd-sections"]
        and manifest.entries[0].max_age_days == 30.0
        and manifest.entries[2].max_age_days is None
    )


def test_load_dataset_manifest_requires_existing_file(tmp_path) -> None:
    """Missing manifest files should fail with a clear error."""
    with pytest.raises(ManifestError, match="does not exist"):
        load_dataset_manifest(tmp_path / "missing.yaml")


def test_load_dataset_manifest_rejects_empty_file(tmp_path) -> None:
    """An empty manifest has nothing to register."""
    manifest_path = _write_manifest(tmp_path, "")

    with pytest.raises(ManifestError, match="is empty"):
        load_dataset_manifest(manifest_path)


def test_load_dataset_manifest_rejects_invalid_yaml(tmp_path) -> None:
    """Syntax errors should surface as manifest errors."""
    manifest_path = _write_manifest(tmp_path, "version: [1\n")

    with pytest.raises(ManifestError, match="Fix YAML syntax"):
        load_dataset_manifest(manifest_path)


def test_load_dataset_manifest_rejects_unsupported_version(tmp_path) -> None:
    """Only version 1 manifests are supported."""
    manifest_path = _write_manifest(tmp_path, "version: 2\ndatasets: []\n")

    with pytest.raises(ManifestError, match="Unsupported manifest version"):
        load_dataset_manifest(manifest_path)


def test_load_dataset_manifest_rejects_duplicate_keys(tmp_path) -> None:
    """Each dataset key may only be declared once."""
    manifest_path = _write_manifest(
        tmp_path,
        "version: 1\n"
        "datasets:\n"
        "  - {key: prefixes, url: 'https://a.example/p.json'}\n"
        "  - {key: prefixes, url: 'https://b.example/p.json'}\n",
    )

    with pytest.raises(ManifestError, match="Duplicate dataset key"):
        load_dataset_manifest(manifest_path)


def test_load_dataset_manifest_rejects_unknown_entry_fields(tmp_path) -> None:
    """Typos in entry fields should not be silently ignored."""
    manifest_path = _write_manifest(
        tmp_path,
        "version: 1\n"
        "datasets:\n"
        "  - {key: prefixes, url: 'https://a.example/p.json', max_age: 3}\n",
    )

    with pytest.raises(ManifestError, match="max_age"):
        load_dataset_manifest(manifest_path)


def test_load_dataset_manifest_rejects_non_http_urls(tmp_path) -> None:
    """Only http(s) sources can be fetched."""
    manifest_path = _write_manifest(
        tmp_path,
        "version: 1\ndatasets:\n  - {key: prefixes, url: 'ftp://a.example/p.json'}\n",
    )

    with pytest.raises(ManifestError, match="http"):
        load_dataset_manifest(manifest_path)


def test_load_dataset_manifest_rejects_non_positive_max_age(tmp_path) -> None:
    """Max age must be a positive number of days."""
    manifest_path = _write_manifest(
        tmp_path,
        "version: 1\n"
        "datasets:\n"
        "  - {key: prefixes, url: 'https://a.example/p.json', max_age_days: 0}\n",
    )

    with pytest.raises(ManifestError, match="max_age_days"):
        load_dataset_manifest(manifest_path)
