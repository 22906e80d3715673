from __future__ import annotations

import asyncio
import logging
from datetime import UTC, date, datetime
from typing import Any

from wifo_import.config import ImportSettings
from wifo_import.errors import BatchNotImportableError, BatchStateError, RecordNotFoundError, RecordStateError
from wifo_import.models.batch import ImportBatch
from wifo_import.models.entries import CatalogRef, RevenueEntry, RevenueEntryDraft, StatementFile
from wifo_import.models.enums import BatchStatus
from wifo_import.models.options import ImportOptions
from wifo_import.models.record import ImportRecord
from wifo_import.services.ports import (
    BatchRepository,
    EmployeeDirectory,
    FileParser,
    ImportProgress,
    ParseProgress,
    RevenueSink,
    ValidationProgress,
)
from wifo_import.services.validation_service import ValidationPipeline

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "Unknown (WIFO import)"


def build_entry_draft(record: ImportRecord) -> RevenueEntryDraft:
    """Translate an importable record into the revenue sink payload."""

    if not record.employee_id:
        raise ValueError(f"row {record.row_number} has no mapped employee")
    if not record.category:
        raise ValueError(f"row {record.row_number} has no mapped category")

    notes = [part for part in (record.company, record.tariff) if part]
    if record.provision_code:
        notes.append(f"({record.provision_code})")
    if record.contract_reference:
        notes.append(f"- contract: {record.contract_reference}")

    return RevenueEntryDraft(
        category=record.category,
        provision_type=record.provision_type.value if record.provision_type else None,
        customer_name=record.customer_name or UNKNOWN_CUSTOMER,
        provision_amount=record.net or 0.0,
        contract_number=record.contract_reference,
        notes=" ".join(notes),
        entry_date=record.entry_date or date.today(),
        product=CatalogRef(name=record.tariff or "WIFO Import", category=record.category),
        product_provider=CatalogRef(name=record.company or "WIFO", category=record.category),
        source_reference=record.contract_reference,
        metadata={
            "sparte": record.category_code,
            "wifo_category": record.wifo_category.value if record.wifo_category else None,
            "art": record.provision_code,
            "basis": record.basis,
            "satz": record.rate,
            "brutto": record.gross,
            "stornoreserve": record.storno_reserve,
            "rb": record.risk_buffer,
            "lauf": record.statement_run,
            "row_number": record.row_number,
            "imported_at": datetime.now(UTC).isoformat(),
        },
    )


class ImportOrchestrator:
    """Runs the parse, validate and import phases of one statement batch."""

    def __init__(
        self,
        *,
        file_parser: FileParser,
        employee_directory: EmployeeDirectory,
        revenue_sink: RevenueSink,
        batch_repository: BatchRepository | None = None,
        validator: ValidationPipeline | None = None,
        settings: ImportSettings | None = None,
    ) -> None:
        """Bind collaborators; repository and validator are optional."""

        self.settings = settings or ImportSettings()
        self.file_parser = file_parser
        self.employee_directory = employee_directory
        self.revenue_sink = revenue_sink
        self.batch_repository = batch_repository
        self.validator = validator or ValidationPipeline(
            fuzzy_match_threshold=self.settings.fuzzy_match_threshold,
            suggestion_threshold=self.settings.suggestion_threshold,
            suggestion_limit=self.settings.suggestion_limit,
            duplicate_check=self.settings.duplicate_check,
        )

    async def _persist(self, batch: ImportBatch) -> None:
        if self.batch_repository is not None:
            await self.batch_repository.save(batch)

    # phases

    async def parse_file(
        self,
        file: StatementFile,
        uploaded_by: str | None = None,
        on_progress: ParseProgress | None = None,
    ) -> ImportBatch:
        """Read a statement file into a new batch of pending records."""

        batch = ImportBatch.create(file.name, file_size=file.size, uploaded_by=uploaded_by)
        batch.start_parsing()
        try:
            rows = await self.file_parser.parse(file, on_progress)
        except Exception as exc:
            batch.fail(f"could not read file: {exc}")
            await self._persist(batch)
            logger.error("batch %s: parsing %s failed: %s", batch.batch_id, file.name, exc)
            raise
        batch.set_records([ImportRecord.from_row(row.row_number, row.values) for row in rows])
        await self._persist(batch)
        logger.info("batch %s: parsed %d rows from %s", batch.batch_id, batch.total_records, file.name)
        return batch

    async def prepare(self) -> None:
        """Rebuild the employee lookup and duplicate index snapshots."""

        employees = await self.employee_directory.get_all_employees()
        self.validator.build_employee_lookup(employees)
        logger.info("employee lookup built with %d employees", len(employees))
        try:
            entries = await self.revenue_sink.search_entries({})
        except Exception as exc:
            logger.warning("could not load existing entries for duplicate detection: %s", exc)
            entries = []
        self.validator.build_duplicate_index(entries)
        logger.info("loaded %d existing entries for duplicate detection", len(entries))

    async def validate_batch(self, batch: ImportBatch, on_progress: ValidationProgress | None = None) -> ImportBatch:
        await self.prepare()
        await self.validator.validate_batch(batch, on_progress)
        await self._persist(batch)
        return batch

    async def import_batch(
        self,
        batch: ImportBatch,
        options: ImportOptions | None = None,
        on_progress: ImportProgress | None = None,
    ) -> ImportBatch:
        """Write every importable record to the revenue sink in bounded chunks."""

        if not batch.can_import:
            raise BatchNotImportableError(
                f"batch {batch.batch_id} cannot be imported: status {batch.status.value}, "
                f"{batch.importable_records} importable records",
                details={"status": batch.status.value, "importable": batch.importable_records},
            )
        options = options or self.settings.options
        batch.start_importing()
        await self._persist(batch)

        records = batch.get_importable_records()
        total = len(records)
        chunks = [records[i : i + options.chunk_size] for i in range(0, total, options.chunk_size)]
        semaphore = asyncio.Semaphore(options.concurrency)
        stop = asyncio.Event()
        imported = 0
        failed = 0

        async def run_one(record: ImportRecord) -> None:
            nonlocal imported, failed
            async with semaphore:
                if stop.is_set():
                    return
                error = await self._import_with_retry(record, options)
                if error is None:
                    imported += 1
                    return
                record.mark_failed(error)
                failed += 1
                if options.stop_on_error:
                    stop.set()

        for chunk_index, chunk in enumerate(chunks):
            if stop.is_set():
                break
            await asyncio.gather(*(run_one(record) for record in chunk))
            batch.recalculate_statistics()
            processed = min((chunk_index + 1) * options.chunk_size, total)
            if on_progress is not None:
                on_progress(
                    processed,
                    total,
                    {
                        "imported": imported,
                        "failed": failed,
                        "remaining": total - processed,
                        "chunk_progress": {"current": chunk_index + 1, "total": len(chunks)},
                    },
                )
            await asyncio.sleep(0)

        batch.finish_import()
        await self._persist(batch)
        logger.info(
            "batch %s import finished as %s: %d imported, %d failed",
            batch.batch_id,
            batch.status.value,
            batch.imported_records,
            batch.failed_records,
        )
        return batch

    async def _import_with_retry(self, record: ImportRecord, options: ImportOptions) -> str | None:
        """Try to import one record; return the last error message or None on success."""

        last_error = "unknown error"
        attempts = options.retry_count + 1
        for attempt in range(1, attempts + 1):
            record.record_attempt()
            try:
                entry = await self._import_record(record)
            except Exception as exc:
                last_error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "import attempt %d/%d failed for row %d (%s): %s",
                    attempt,
                    attempts,
                    record.row_number,
                    record.agent_name,
                    last_error,
                )
                if attempt < attempts:
                    await asyncio.sleep(options.retry_delay)
                continue
            record.mark_imported(entry.id)
            logger.debug("row %d imported as entry %s", record.row_number, entry.id)
            return None
        return last_error

    async def _import_record(self, record: ImportRecord) -> RevenueEntry:
        draft = build_entry_draft(record)
        return await self.revenue_sink.add_entry(record.employee_id, draft)

    # operator actions and queries

    async def skip_records(self, batch: ImportBatch, record_ids: list[str]) -> ImportBatch:
        """Exclude importable records from the next import run."""

        if batch.status != BatchStatus.READY:
            raise BatchStateError(f"batch {batch.batch_id} is {batch.status.value}, records can only be skipped when ready")
        records = []
        for record_id in record_ids:
            record = batch.get_record(record_id)
            if record is None:
                raise RecordNotFoundError(f"record {record_id} not found in batch {batch.batch_id}")
            if not record.can_import:
                raise RecordStateError(f"row {record.row_number} is {record.status.value} and cannot be skipped")
            records.append(record)
        for record in records:
            record.mark_skipped()
        batch.recalculate_statistics()
        if batch.importable_records == 0:
            batch.fail("no importable entries")
        await self._persist(batch)
        return batch

    async def remap_record(self, batch: ImportBatch, record_id: str, employee_id: str) -> ImportRecord:
        """Assign an employee to a record by hand and validate it again."""

        record = batch.get_record(record_id)
        if record is None:
            raise RecordNotFoundError(f"record {record_id} not found in batch {batch.batch_id}")
        if batch.status not in {BatchStatus.READY, BatchStatus.FAILED}:
            raise BatchStateError(f"batch {batch.batch_id} is {batch.status.value}, records cannot be remapped")
        await self.prepare()
        employee = self.validator.find_employee(employee_id)
        if employee is None:
            raise RecordNotFoundError(f"employee {employee_id} not found", details={"employee_id": employee_id})
        record.reset_validation()
        batch.recalculate_statistics()
        batch.start_validating()
        record.apply_validation(self.validator.revalidate_record(batch, record, employee_override=employee))
        batch.finish_validation()
        await self._persist(batch)
        return record

    def get_statistics(self, batch: ImportBatch) -> dict[str, Any]:
        stats = batch.statistics()
        stats["status"] = batch.status.value
        stats["error_message"] = batch.error_message
        return stats

    async def get_recent_batches(self, limit: int = 10) -> list[ImportBatch]:
        if self.batch_repository is None:
            return []
        return await self.batch_repository.find_recent(limit)

    async def get_batch(self, batch_id: str) -> ImportBatch | None:
        if self.batch_repository is None:
            return None
        return await self.batch_repository.find_by_id(batch_id)
