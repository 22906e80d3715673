from __future__ import annotations

from pydantic import Field

from wifo_import.models.common import StrictModel

MAX_CONCURRENCY = 16
MAX_CHUNK_SIZE = 500
MAX_RETRY_COUNT = 5
MAX_RETRY_DELAY = 30.0


class ImportOptions(StrictModel):
    """Per-run knobs for the import phase, bounded by hard caps."""

    chunk_size: int = Field(default=10, ge=1, le=MAX_CHUNK_SIZE)
    concurrency: int = Field(default=3, ge=1, le=MAX_CONCURRENCY)
    retry_count: int = Field(default=1, ge=0, le=MAX_RETRY_COUNT)
    retry_delay: float = Field(default=0.5, ge=0.0, le=MAX_RETRY_DELAY)
    stop_on_error: bool = False
