from __future__ import annotations

"""Environment-driven settings."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from wifo_import.config import ImportSettings, load_settings

_VARS = (
    "WIFO_CHUNK_SIZE",
    "WIFO_CONCURRENCY",
    "WIFO_RETRY_COUNT",
    "WIFO_RETRY_DELAY",
    "WIFO_STOP_ON_ERROR",
    "WIFO_FUZZY_MATCH_THRESHOLD",
    "WIFO_SUGGESTION_THRESHOLD",
    "WIFO_DUPLICATE_CHECK",
    "WIFO_LOG_LEVEL",
    "WIFO_EMPLOYEES_PATH",
    "WIFO_LEDGER_PATH",
    "WIFO_BATCH_DIR",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    """Without environment overrides the documented defaults apply."""

    settings = load_settings()
    assert settings.options.chunk_size == 10
    assert settings.options.concurrency == 3
    assert settings.options.retry_count == 1
    assert settings.options.retry_delay == 0.5
    assert settings.options.stop_on_error is False
    assert settings.fuzzy_match_threshold == 0.75
    assert settings.duplicate_check is True
    assert settings.batch_dir == Path("outputs/wifo_batches")


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """WIFO_* variables override every knob."""

    monkeypatch.setenv("WIFO_CONCURRENCY", "5")
    monkeypatch.setenv("WIFO_STOP_ON_ERROR", "yes")
    monkeypatch.setenv("WIFO_DUPLICATE_CHECK", "0")
    monkeypatch.setenv("WIFO_FUZZY_MATCH_THRESHOLD", "0.8")
    monkeypatch.setenv("WIFO_LOG_LEVEL", "debug")
    monkeypatch.setenv("WIFO_EMPLOYEES_PATH", "/data/staff.json")

    settings = load_settings()
    assert settings.options.concurrency == 5
    assert settings.options.stop_on_error is True
    assert settings.duplicate_check is False
    assert settings.fuzzy_match_threshold == 0.8
    assert settings.log_level == "DEBUG"
    assert settings.employees_path == Path("/data/staff.json")


def test_env_file_is_loaded(tmp_path: Path) -> None:
    """An explicit .env file feeds the same variables."""

    env_file = tmp_path / "wifo.env"
    env_file.write_text("WIFO_CHUNK_SIZE=25\n", encoding="utf-8")
    try:
        assert load_settings(env_file=env_file).options.chunk_size == 25
    finally:
        # load_dotenv writes into os.environ directly
        os.environ.pop("WIFO_CHUNK_SIZE", None)


def test_out_of_range_values_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    """Caps are enforced on environment input too."""

    monkeypatch.setenv("WIFO_CONCURRENCY", "100")
    with pytest.raises(ValidationError):
        load_settings()


def test_settings_model_is_strict() -> None:
    """Unknown settings fields are rejected."""

    with pytest.raises(ValidationError):
        ImportSettings(unknown=True)
