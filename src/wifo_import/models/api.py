from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import Field

from wifo_import.models.batch import ImportBatch
from wifo_import.models.common import ErrorInfo, StrictModel
from wifo_import.models.enums import BatchStatus, RecordStatus
from wifo_import.models.issues import ValidationIssue
from wifo_import.models.record import ImportRecord

SCHEMA_VERSION: Literal["v1"] = "v1"


class BatchStatistics(StrictModel):
    """Per-status record counters of one batch."""

    total: int
    pending: int
    valid: int
    warning: int
    invalid: int
    imported: int
    failed: int
    skipped: int
    importable: int
    validation_progress: int
    import_progress: int


class BatchResponse(StrictModel):
    """Public batch response contract returned by API endpoints."""

    schema_version: Literal["v1"] = SCHEMA_VERSION
    batch_id: str
    file_name: str
    file_size: int
    uploaded_by: str | None = None
    status: BatchStatus
    statistics: BatchStatistics
    can_import: bool
    error: ErrorInfo | None = None
    uploaded_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_batch(cls, batch: ImportBatch) -> "BatchResponse":
        """Map the internal aggregate to the stable public response shape."""

        error_obj = None
        if batch.error_message:
            error_obj = ErrorInfo(code="BATCH_ERROR", message=batch.error_message)
        return cls(
            batch_id=batch.batch_id,
            file_name=batch.file_name,
            file_size=batch.file_size,
            uploaded_by=batch.uploaded_by,
            status=batch.status,
            statistics=BatchStatistics(**batch.statistics()),
            can_import=batch.can_import,
            error=error_obj,
            uploaded_at=batch.uploaded_at,
            started_at=batch.started_at,
            completed_at=batch.completed_at,
        )


class BatchListResponse(StrictModel):
    """List response wrapper for batch query endpoint."""

    schema_version: Literal["v1"] = SCHEMA_VERSION
    total: int
    items: list[BatchResponse]


class RecordResponse(StrictModel):
    """One statement line with its verdict, as shown to operators."""

    record_id: str
    row_number: int
    status: RecordStatus
    agent_name: str | None = None
    employee_id: str | None = None
    employee_name: str | None = None
    customer_name: str
    contract: str | None = None
    entry_date: date | None = None
    category_code: str | None = None
    net: float | None = None
    issues: list[ValidationIssue] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)
    imported_entry_id: str | None = None

    @classmethod
    def from_record(cls, record: ImportRecord) -> "RecordResponse":
        return cls(
            record_id=record.record_id,
            row_number=record.row_number,
            status=record.status,
            agent_name=record.agent_name,
            employee_id=record.employee_id,
            employee_name=record.employee_name,
            customer_name=record.customer_name,
            contract=record.contract_reference,
            entry_date=record.entry_date,
            category_code=record.category_code,
            net=record.net,
            issues=record.issues,
            messages=[issue.full_message for issue in record.issues],
            imported_entry_id=record.imported_entry_id,
        )


class RecordListResponse(StrictModel):
    schema_version: Literal["v1"] = SCHEMA_VERSION
    batch_id: str
    total: int
    items: list[RecordResponse]


class SkipRecordsRequest(StrictModel):
    record_ids: list[str] = Field(min_length=1)


class RemapRecordRequest(StrictModel):
    employee_id: str = Field(min_length=1)


class ImportResultResponse(StrictModel):
    """Batch state after an import run plus the progress events it emitted."""

    schema_version: Literal["v1"] = SCHEMA_VERSION
    batch: BatchResponse
    progress: list[dict[str, Any]] = Field(default_factory=list)
