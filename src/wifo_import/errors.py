from __future__ import annotations

from typing import Any


class ImportPipelineError(Exception):
    """Base error raised at the edges of the statement import pipeline."""

    code = "import_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FileParseError(ImportPipelineError):
    """Statement file could not be read into rows."""

    code = "parse_error"


class FileFormatError(FileParseError):
    """Statement file has an unsupported type or is missing required columns."""

    code = "file_format_error"

    def __init__(
        self,
        message: str,
        *,
        expected_format: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.expected_format = expected_format


class BatchStateError(ImportPipelineError):
    """Batch lifecycle transition is not allowed from the current status."""

    code = "batch_state_error"


class RecordStateError(ImportPipelineError):
    """Record status transition is not allowed from the current status."""

    code = "record_state_error"


class BatchNotImportableError(ImportPipelineError):
    """Import was requested for a batch that is not ready or has nothing to import."""

    code = "batch_not_importable"


class RecordNotFoundError(ImportPipelineError):
    """Operator action referenced a record id that is not part of the batch."""

    code = "record_not_found"
