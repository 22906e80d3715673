from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field

from wifo_import.models.common import StrictModel
from wifo_import.models.options import ImportOptions


class ImportSettings(StrictModel):
    """Pipeline defaults resolved from WIFO_* environment variables."""

    fuzzy_match_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    suggestion_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    suggestion_limit: int = Field(default=3, ge=0)
    duplicate_check: bool = True
    options: ImportOptions = Field(default_factory=ImportOptions)
    log_level: str = "INFO"
    employees_path: Path = Path("data/employees.json")
    ledger_path: Path = Path("data/revenue_entries.json")
    batch_dir: Path = Path("outputs/wifo_batches")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def load_settings(*, env_file: str | Path | None = None) -> ImportSettings:
    """Read settings from the process environment (and an optional .env file)."""

    load_dotenv(dotenv_path=env_file)
    options = ImportOptions(
        chunk_size=int(os.getenv("WIFO_CHUNK_SIZE", "10")),
        concurrency=int(os.getenv("WIFO_CONCURRENCY", "3")),
        retry_count=int(os.getenv("WIFO_RETRY_COUNT", "1")),
        retry_delay=float(os.getenv("WIFO_RETRY_DELAY", "0.5")),
        stop_on_error=_env_bool("WIFO_STOP_ON_ERROR", "false"),
    )
    return ImportSettings(
        fuzzy_match_threshold=float(os.getenv("WIFO_FUZZY_MATCH_THRESHOLD", "0.75")),
        suggestion_threshold=float(os.getenv("WIFO_SUGGESTION_THRESHOLD", "0.5")),
        duplicate_check=_env_bool("WIFO_DUPLICATE_CHECK", "true"),
        options=options,
        log_level=os.getenv("WIFO_LOG_LEVEL", "INFO").upper(),
        employees_path=Path(os.getenv("WIFO_EMPLOYEES_PATH", "data/employees.json")),
        ledger_path=Path(os.getenv("WIFO_LEDGER_PATH", "data/revenue_entries.json")),
        batch_dir=Path(os.getenv("WIFO_BATCH_DIR", "outputs/wifo_batches")),
    )
