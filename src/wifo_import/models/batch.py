from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import Field

from wifo_import.errors import BatchStateError
from wifo_import.models.common import StrictModel
from wifo_import.models.enums import BatchStatus, RecordStatus
from wifo_import.models.record import ImportRecord

_STATUS_COUNTERS: dict[RecordStatus, str] = {
    RecordStatus.PENDING: "pending_records",
    RecordStatus.VALID: "valid_records",
    RecordStatus.WARNING: "warning_records",
    RecordStatus.INVALID: "invalid_records",
    RecordStatus.IMPORTED: "imported_records",
    RecordStatus.FAILED: "failed_records",
    RecordStatus.SKIPPED: "skipped_records",
}


class ImportBatch(StrictModel):
    """Aggregate root for one uploaded statement file and its records."""

    batch_id: str
    file_name: str
    file_size: int = 0
    uploaded_by: str | None = None
    uploaded_at: datetime
    status: BatchStatus = BatchStatus.PENDING
    records: list[ImportRecord] = Field(default_factory=list)

    total_records: int = 0
    pending_records: int = 0
    valid_records: int = 0
    warning_records: int = 0
    invalid_records: int = 0
    imported_records: int = 0
    failed_records: int = 0
    skipped_records: int = 0

    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None
    error_message: str | None = None

    @classmethod
    def create(cls, file_name: str, *, file_size: int = 0, uploaded_by: str | None = None) -> "ImportBatch":
        """Build a pending batch with generated id and timestamp."""

        now = datetime.now(UTC)
        return cls(
            batch_id=str(uuid4()),
            file_name=file_name,
            file_size=file_size,
            uploaded_by=uploaded_by,
            uploaded_at=now,
            updated_at=now,
        )

    # records

    def set_records(self, records: list[ImportRecord]) -> None:
        self.records = list(records)
        self.recalculate_statistics()

    def add_record(self, record: ImportRecord) -> None:
        self.records.append(record)
        self.total_records += 1
        counter = _STATUS_COUNTERS[record.status]
        setattr(self, counter, getattr(self, counter) + 1)

    def get_record(self, record_id: str) -> ImportRecord | None:
        return next((r for r in self.records if r.record_id == record_id), None)

    def get_record_by_row(self, row_number: int) -> ImportRecord | None:
        return next((r for r in self.records if r.row_number == row_number), None)

    def get_importable_records(self) -> list[ImportRecord]:
        return [r for r in self.records if r.can_import]

    def get_invalid_records(self) -> list[ImportRecord]:
        return [r for r in self.records if r.status == RecordStatus.INVALID]

    def get_records_with_warnings(self) -> list[ImportRecord]:
        return [r for r in self.records if r.status == RecordStatus.WARNING]

    def recalculate_statistics(self) -> None:
        """Recount every status counter from the records."""

        counts = {name: 0 for name in _STATUS_COUNTERS.values()}
        for record in self.records:
            counts[_STATUS_COUNTERS[record.status]] += 1
        for name, value in counts.items():
            setattr(self, name, value)
        self.total_records = len(self.records)
        self.updated_at = datetime.now(UTC)

    # derived state

    @property
    def importable_records(self) -> int:
        return self.valid_records + self.warning_records

    @property
    def can_import(self) -> bool:
        return self.status == BatchStatus.READY and self.importable_records > 0

    @property
    def is_processing(self) -> bool:
        return self.status in {BatchStatus.PARSING, BatchStatus.VALIDATING, BatchStatus.IMPORTING}

    @property
    def validation_progress(self) -> int:
        if self.total_records == 0:
            return 0
        validated = self.total_records - self.pending_records
        return round(validated / self.total_records * 100)

    @property
    def import_progress(self) -> int:
        attempted = self.imported_records + self.failed_records
        target = attempted + self.importable_records
        if target == 0:
            return 0
        return round(attempted / target * 100)

    def statistics(self) -> dict[str, Any]:
        return {
            "total": self.total_records,
            "pending": self.pending_records,
            "valid": self.valid_records,
            "warning": self.warning_records,
            "invalid": self.invalid_records,
            "imported": self.imported_records,
            "failed": self.failed_records,
            "skipped": self.skipped_records,
            "importable": self.importable_records,
            "validation_progress": self.validation_progress,
            "import_progress": self.import_progress,
        }

    # lifecycle

    def start_parsing(self) -> None:
        self._transition({BatchStatus.PENDING}, BatchStatus.PARSING)
        self.started_at = self.started_at or datetime.now(UTC)

    def start_validating(self) -> None:
        allowed = {BatchStatus.PARSING, BatchStatus.VALIDATING}
        if self.pending_records > 0:
            allowed |= {BatchStatus.READY, BatchStatus.FAILED}
        self._transition(allowed, BatchStatus.VALIDATING)
        self.error_message = None

    def finish_validation(self) -> None:
        """Move a validated batch to ready or failed."""

        self._require({BatchStatus.VALIDATING}, "finish validation")
        self.recalculate_statistics()
        if self.total_records > 0 and self.invalid_records == self.total_records:
            self.fail("all entries invalid")
        elif self.importable_records > 0:
            self.status = BatchStatus.READY
        else:
            self.fail("no importable entries")

    def start_importing(self) -> None:
        if not self.can_import:
            raise BatchStateError(f"batch {self.batch_id} is {self.status.value} and cannot be imported")
        self._transition({BatchStatus.READY}, BatchStatus.IMPORTING)

    def finish_import(self) -> None:
        self._require({BatchStatus.IMPORTING}, "finish import")
        self.recalculate_statistics()
        if self.imported_records > 0 and self.failed_records > 0:
            self.status = BatchStatus.PARTIALLY_COMPLETED
        elif self.imported_records > 0:
            self.status = BatchStatus.COMPLETED
        else:
            self.fail("no entry could be imported")
        self.completed_at = datetime.now(UTC)

    def fail(self, message: str) -> None:
        if self.status in {BatchStatus.COMPLETED, BatchStatus.PARTIALLY_COMPLETED}:
            raise BatchStateError(f"batch {self.batch_id} already finished as {self.status.value}")
        self.status = BatchStatus.FAILED
        self.error_message = message
        self.updated_at = datetime.now(UTC)

    def _transition(self, allowed: set[BatchStatus], target: BatchStatus) -> None:
        self._require(allowed, f"move to {target.value}")
        self.status = target
        self.updated_at = datetime.now(UTC)

    def _require(self, allowed: set[BatchStatus], action: str) -> None:
        if self.status not in allowed:
            raise BatchStateError(f"batch {self.batch_id} is {self.status.value}, cannot {action}")
