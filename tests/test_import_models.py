from __future__ import annotations

"""Record/batch model behaviour, code tables and value coercion."""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from wifo_import.coercion import to_date, to_float
from wifo_import.errors import BatchStateError, RecordStateError
from wifo_import.models.batch import ImportBatch
from wifo_import.models.codes import ProvisionType, WifoCategory, parse_category, parse_provision_type
from wifo_import.models.enums import BatchStatus, IssueCode, RecordStatus
from wifo_import.models.issues import ValidationIssue
from wifo_import.models.options import ImportOptions
from wifo_import.models.record import ImportRecord, RecordValidation


def _validated(status: RecordStatus, row_number: int = 2) -> ImportRecord:
    record = ImportRecord(row_number=row_number)
    record.apply_validation(RecordValidation(status=status))
    return record


def _batch_with(*statuses: RecordStatus) -> ImportBatch:
    batch = ImportBatch.create("statement.xlsx", file_size=10)
    batch.start_parsing()
    batch.set_records([ImportRecord(row_number=i + 2) for i in range(len(statuses))])
    batch.start_validating()
    for record, status in zip(batch.records, statuses):
        record.apply_validation(RecordValidation(status=status))
    return batch


def test_to_float_handles_german_and_english_formats() -> None:
    """Thousands separators, decimal commas and currency symbols are understood."""

    assert to_float("1.234,56") == pytest.approx(1234.56)
    assert to_float("1,234.56") == pytest.approx(1234.56)
    assert to_float("12,5 €") == pytest.approx(12.5)
    assert to_float("-90,00") == pytest.approx(-90.0)
    assert to_float(0) == 0.0
    assert to_float("abc") is None
    assert to_float("  ") is None
    assert to_float("12abc") is None
    assert to_float("1e5") is None
    assert to_float("(12,50 €)") == pytest.approx(-12.5)
    assert to_float("1.234,56\xa0EUR") == pytest.approx(1234.56)


def test_to_date_handles_serials_and_strings() -> None:
    """Excel serials count from 1899-12-30; German and ISO strings parse."""

    assert to_date(45366) == date(2024, 3, 15)
    assert to_date("45366") == date(2024, 3, 15)
    assert to_date("15.03.2024") == date(2024, 3, 15)
    assert to_date("2024-03-15T00:00:00") == date(2024, 3, 15)
    assert to_date("15/03/2024") == date(2024, 3, 15)
    assert to_date(datetime(2024, 3, 15, 12, 0)) == date(2024, 3, 15)
    assert to_date("31.02.2024") is None
    assert to_date("next week") is None


def test_record_from_row_maps_wifo_columns() -> None:
    """Column headers are mapped to typed record fields; raw values are kept."""

    record = ImportRecord.from_row(
        7,
        {
            "Datum": 45366,
            "Vertrag": 12345,
            "Sparte": "PKV",
            "Kunde Name": "Braun",
            "Kunde Vorname": "Bernd",
            "AP-VM": " Schmidt, Anna ",
            "Art": "AP",
            "Gesellschaft": "Allianz",
            "Brutto": "100,00",
            "Netto": "1.234,56",
            "Unused": "x",
        },
    )
    assert record.row_number == 7
    assert record.entry_date == date(2024, 3, 15)
    assert record.contract == "12345"
    assert record.agent_name == "Schmidt, Anna"
    assert record.net == pytest.approx(1234.56)
    assert record.gross == pytest.approx(100.0)
    assert record.customer_name == "Bernd Braun"
    assert record.company == "Allianz"
    assert record.status == RecordStatus.PENDING
    assert record.raw_value("Netto") == "1.234,56"
    assert record.raw_value("Unused") == "x"


def test_record_transitions() -> None:
    """Only pending records validate; only importable records import."""

    record = _validated(RecordStatus.WARNING)
    assert record.can_import
    with pytest.raises(RecordStateError):
        record.apply_validation(RecordValidation(status=RecordStatus.VALID))

    record.mark_imported("entry-1")
    assert record.status == RecordStatus.IMPORTED
    assert record.imported_entry_id == "entry-1"
    with pytest.raises(RecordStateError):
        record.reset_validation()

    invalid = _validated(RecordStatus.INVALID)
    with pytest.raises(RecordStateError):
        invalid.mark_imported("entry-2")
    invalid.reset_validation()
    assert invalid.status == RecordStatus.PENDING


def test_mark_failed_adds_import_error_issue() -> None:
    """A failed import is recorded as an issue on the record."""

    record = _validated(RecordStatus.VALID)
    record.mark_failed("timeout")
    assert record.status == RecordStatus.FAILED
    assert record.issues[-1].code == IssueCode.IMPORT_ERROR
    assert "timeout" in record.issues[-1].message


def test_batch_counters_reconcile_with_records() -> None:
    """Counters always sum to the total after bulk and single mutations."""

    batch = _batch_with(RecordStatus.VALID, RecordStatus.WARNING, RecordStatus.INVALID)
    batch.recalculate_statistics()
    stats = batch.statistics()
    assert (stats["valid"], stats["warning"], stats["invalid"], stats["total"]) == (1, 1, 1, 3)
    assert batch.importable_records == 2

    batch.add_record(ImportRecord(row_number=9))
    assert batch.total_records == 4
    assert batch.pending_records == 1
    counted = sum(
        stats_value
        for key, stats_value in batch.statistics().items()
        if key in {"pending", "valid", "warning", "invalid", "imported", "failed", "skipped"}
    )
    assert counted == batch.total_records


def test_derived_record_and_batch_state() -> None:
    """Mapping, issue flags, lookups and progress follow the records."""

    record = ImportRecord(row_number=2)
    record.apply_validation(
        RecordValidation(
            status=RecordStatus.WARNING,
            issues=[ValidationIssue.negative_amount("Netto", -5.0)],
            employee_id="E1",
            category="insurance",
        )
    )
    assert record.is_mapped
    assert record.has_warnings
    assert not record.has_errors

    batch = _batch_with(RecordStatus.VALID, RecordStatus.WARNING, RecordStatus.INVALID, RecordStatus.VALID)
    assert batch.is_processing
    batch.finish_validation()
    assert not batch.is_processing
    assert batch.validation_progress == 100
    assert [r.row_number for r in batch.get_invalid_records()] == [4]
    assert [r.row_number for r in batch.get_records_with_warnings()] == [3]

    batch.start_importing()
    batch.records[0].mark_imported("e")
    batch.recalculate_statistics()
    assert batch.import_progress == 33


def test_finish_validation_outcomes() -> None:
    """Ready needs an importable record; all-invalid and empty batches fail."""

    ready = _batch_with(RecordStatus.VALID, RecordStatus.INVALID)
    ready.finish_validation()
    assert ready.status == BatchStatus.READY
    assert ready.can_import

    all_invalid = _batch_with(RecordStatus.INVALID, RecordStatus.INVALID)
    all_invalid.finish_validation()
    assert all_invalid.status == BatchStatus.FAILED
    assert all_invalid.error_message == "all entries invalid"

    empty = _batch_with()
    empty.finish_validation()
    assert empty.status == BatchStatus.FAILED
    assert empty.error_message == "no importable entries"


def test_finish_import_outcomes() -> None:
    """Completed, partially completed and failed follow the imported/failed counts."""

    def run(*outcomes: str) -> ImportBatch:
        batch = _batch_with(*[RecordStatus.VALID] * len(outcomes))
        batch.finish_validation()
        batch.start_importing()
        for record, outcome in zip(batch.records, outcomes):
            if outcome == "ok":
                record.mark_imported("e")
            else:
                record.mark_failed("boom")
        batch.finish_import()
        return batch

    assert run("ok", "ok").status == BatchStatus.COMPLETED
    partial = run("ok", "fail")
    assert partial.status == BatchStatus.PARTIALLY_COMPLETED
    assert partial.completed_at is not None
    failed = run("fail")
    assert failed.status == BatchStatus.FAILED
    assert failed.error_message == "no entry could be imported"


def test_illegal_batch_transitions_raise() -> None:
    """Lifecycle steps out of order raise BatchStateError."""

    batch = ImportBatch.create("statement.xlsx")
    with pytest.raises(BatchStateError):
        batch.start_importing()
    with pytest.raises(BatchStateError):
        batch.finish_validation()
    batch.start_parsing()
    with pytest.raises(BatchStateError):
        batch.start_parsing()


def test_parse_category_codes_and_aliases() -> None:
    """Codes, aliases and the SONSTIGE fallback all map to insurance."""

    assert parse_category("pkv").code == WifoCategory.PKV
    assert parse_category("Rentenversicherung").code == WifoCategory.RV
    assert parse_category("Berufsunfähigkeit").code == WifoCategory.BU
    assert parse_category("Kfz-Versicherung").code == WifoCategory.KFZ
    fallback = parse_category("Tierversicherung")
    assert fallback.code == WifoCategory.SONSTIGE
    assert fallback.is_fallback
    assert fallback.internal_category == "insurance"
    assert parse_category("123") is None
    assert parse_category(None) is None


def test_parse_provision_type_prefixes() -> None:
    """AP/BP prefixes map; anything else does not."""

    assert parse_provision_type("AP") == ProvisionType.AP
    assert parse_provision_type("bp-folge") == ProvisionType.BP
    assert parse_provision_type("XX") is None
    assert ProvisionType.AP.display_name == "Abschlussprovision"


def test_issue_full_message_formats_details() -> None:
    """Field, message and formatted details render as one line."""

    assert ValidationIssue.missing_required_field("Netto").full_message == "Netto: Required field is missing"
    suggestion = ValidationIssue(
        code=IssueCode.UNKNOWN_AGENT,
        field="AP-VM",
        message="Agent not found",
        details={"searched_name": "A", "suggestions": [{"name": "Anna Schmidt", "score": 0.7}]},
    )
    assert suggestion.full_message == "AP-VM: Agent not found (did you mean: Anna Schmidt (70%))"


def test_import_options_enforce_caps() -> None:
    """Concurrency, chunk size and retries are bounded."""

    assert ImportOptions().concurrency == 3
    with pytest.raises(ValidationError):
        ImportOptions(concurrency=0)
    with pytest.raises(ValidationError):
        ImportOptions(concurrency=1000)
    with pytest.raises(ValidationError):
        ImportOptions(retry_count=50)
