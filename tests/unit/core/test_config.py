"""Unit tests for core config parsing."""

from __future__ import annotations

import pytest

from core.config import RefdataConfig
from core.errors import RefdataConfigError


def test_from_env_reads_data_root(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should resolve data root from environment."""
    monkeypatch.setenv("REFDATA_DATA_ROOT", "./.tmp-refdata")

    config = RefdataConfig.from_env()

    assert config.data_root.name == ".tmp-refdata" and config.data_root.is_absolute()


def test_from_env_uses_defaults_when_unset() -> None:
    """Config should fall back to default timeout, retry interval and no manifest."""
    config = RefdataConfig.from_env()

    assert (
        config.manifest_path is None
        and config.http_timeout_seconds == 30.0
        and config.retry_interval_minutes == 60.0
        and config.data_files_dir == config.data_root / "data"
    )


def test_from_env_reads_manifest_path(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Config should resolve the manifest path when set."""
    monkeypatch.setenv("REFDATA_MANIFEST", str(tmp_path / "datasets.yaml"))

    config = RefdataConfig.from_env()

    assert config.manifest_path == (tmp_path / "datasets.yaml").resolve()


def test_from_env_raises_for_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for non-numeric HTTP timeout."""
    monkeypatch.setenv("REFDATA_HTTP_TIMEOUT", "soon")

    with pytest.raises(RefdataConfigError, match="REFDATA_HTTP_TIMEOUT"):
        RefdataConfig.from_env()


def test_from_env_rejects_zero_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    """A zero HTTP timeout would fail every download and is rejected."""
    monkeypatch.setenv("REFDATA_HTTP_TIMEOUT", "0")

    with pytest.raises(RefdataConfigError):
        RefdataConfig.from_env()


def test_from_env_allows_zero_retry_interval(monkeypatch: pytest.MonkeyPatch) -> None:
    """A zero retry interval means failed stale refreshes retry on every load."""
    monkeypatch.setenv("REFDATA_RETRY_MINUTES", "0")

    config = RefdataConfig.from_env()

    assert config.retry_interval_minutes == 0.0


def test_from_env_rejects_negative_retry_interval(monkeypatch: pytest.MonkeyPatch) -> None:
    """Negative retry intervals are configuration mistakes."""
    monkeypatch.setenv("REFDATA_RETRY_MINUTES", "-5")

    with pytest.raises(RefdataConfigError, match="non-negative"):
        RefdataConfig.from_env()
