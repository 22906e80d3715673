from __future__ import annotations

from datetime import date
from typing import Any
from uuid import uuid4

from pydantic import Field

from wifo_import.coercion import clean_text, to_date, to_float
from wifo_import.errors import RecordStateError
from wifo_import.models.codes import ProvisionType, WifoCategory
from wifo_import.models.common import StrictModel
from wifo_import.models.enums import RecordStatus
from wifo_import.models.issues import ValidationIssue

WIFO_COLUMNS: tuple[str, ...] = (
    "Datum",
    "Vertrag",
    "Sparte",
    "Kunde Name",
    "Kunde Vorname",
    "Kunde Geburtsdatum",
    "Firma",
    "VP Name",
    "VP Vorname",
    "VP Geburtsdatum",
    "Kfz",
    "AP-VM",
    "Art",
    "Gesellschaft",
    "Tarif",
    "Basis",
    "Satz",
    "Brutto",
    "Stornoreserve",
    "RB",
    "Netto",
    "Vertrag ID",
    "Lauf",
    "Erstelldatum",
)
REQUIRED_COLUMNS: tuple[str, ...] = ("Netto", "AP-VM", "Sparte", "Datum")

# Column header -> (record field, coercion)
_COLUMN_FIELDS: dict[str, tuple[str, Any]] = {
    "Datum": ("entry_date", to_date),
    "Vertrag": ("contract", clean_text),
    "Sparte": ("category_code", clean_text),
    "Kunde Name": ("customer_last_name", clean_text),
    "Kunde Vorname": ("customer_first_name", clean_text),
    "Kunde Geburtsdatum": ("customer_birth_date", to_date),
    "Firma": ("firm", clean_text),
    "AP-VM": ("agent_name", clean_text),
    "Art": ("provision_code", clean_text),
    "Gesellschaft": ("company", clean_text),
    "Tarif": ("tariff", clean_text),
    "Basis": ("basis", to_float),
    "Satz": ("rate", clean_text),
    "Brutto": ("gross", to_float),
    "Stornoreserve": ("storno_reserve", to_float),
    "RB": ("risk_buffer", to_float),
    "Netto": ("net", to_float),
    "Vertrag ID": ("contract_id", clean_text),
    "Lauf": ("statement_run", clean_text),
    "Erstelldatum": ("created_on", to_date),
}

_VALIDATED = {RecordStatus.VALID, RecordStatus.WARNING, RecordStatus.INVALID}
_IMPORTABLE = {RecordStatus.VALID, RecordStatus.WARNING}


class RecordValidation(StrictModel):
    """Validation verdict for one record before it is applied."""

    status: RecordStatus
    issues: list[ValidationIssue] = Field(default_factory=list)
    employee_id: str | None = None
    employee_name: str | None = None
    category: str | None = None
    wifo_category: WifoCategory | None = None
    provision_type: ProvisionType | None = None
    duplicate_info: dict[str, Any] | None = None


class ImportRecord(StrictModel):
    """One statement line with its parsed fields, validation state and mapping."""

    record_id: str = Field(default_factory=lambda: str(uuid4()))
    row_number: int
    raw_data: dict[str, Any] = Field(default_factory=dict)

    entry_date: date | None = None
    contract: str | None = None
    contract_id: str | None = None
    category_code: str | None = None
    provision_code: str | None = None
    agent_name: str | None = None
    customer_first_name: str | None = None
    customer_last_name: str | None = None
    customer_birth_date: date | None = None
    company: str | None = None
    firm: str | None = None
    tariff: str | None = None
    basis: float | None = None
    rate: str | None = None
    gross: float | None = None
    storno_reserve: float | None = None
    risk_buffer: float | None = None
    net: float | None = None
    statement_run: str | None = None
    created_on: date | None = None

    status: RecordStatus = RecordStatus.PENDING
    issues: list[ValidationIssue] = Field(default_factory=list)

    employee_id: str | None = None
    employee_name: str | None = None
    category: str | None = None
    wifo_category: WifoCategory | None = None
    provision_type: ProvisionType | None = None
    duplicate_info: dict[str, Any] | None = None

    import_attempts: int = 0
    imported_entry_id: str | None = None

    @classmethod
    def from_row(cls, row_number: int, values: dict[str, Any]) -> "ImportRecord":
        """Build a record from a header-keyed statement row."""

        raw = {str(key).strip(): value for key, value in values.items() if key is not None}
        fields: dict[str, Any] = {}
        for column, (field_name, coerce) in _COLUMN_FIELDS.items():
            fields[field_name] = coerce(raw.get(column))
        return cls(row_number=row_number, raw_data=_jsonable(raw), **fields)

    def raw_value(self, column: str) -> Any:
        return self.raw_data.get(column)

    @property
    def customer_name(self) -> str:
        parts = [part for part in (self.customer_first_name, self.customer_last_name) if part]
        return " ".join(parts)

    @property
    def contract_reference(self) -> str | None:
        return self.contract or self.contract_id

    @property
    def is_mapped(self) -> bool:
        return bool(self.employee_id and self.category)

    @property
    def can_import(self) -> bool:
        return self.status in _IMPORTABLE

    @property
    def has_errors(self) -> bool:
        return any(issue.is_error for issue in self.issues)

    @property
    def has_warnings(self) -> bool:
        return any(issue.is_warning for issue in self.issues)

    def apply_validation(self, result: RecordValidation) -> None:
        """Store a validation verdict; only pending records can be validated."""

        if self.status != RecordStatus.PENDING:
            raise RecordStateError(
                f"row {self.row_number} is {self.status.value}, only pending records can be validated"
            )
        if result.status not in _VALIDATED:
            raise RecordStateError(f"{result.status.value} is not a validation outcome")
        self.issues = list(result.issues)
        self.employee_id = result.employee_id
        self.employee_name = result.employee_name
        self.category = result.category
        self.wifo_category = result.wifo_category
        self.provision_type = result.provision_type
        self.duplicate_info = result.duplicate_info
        self.status = result.status

    def record_attempt(self) -> int:
        self.import_attempts += 1
        return self.import_attempts

    def mark_imported(self, entry_id: str) -> None:
        self._require_importable("imported")
        self.imported_entry_id = entry_id
        self.status = RecordStatus.IMPORTED

    def mark_failed(self, message: str) -> None:
        self._require_importable("failed")
        self.issues.append(ValidationIssue.import_error(message))
        self.status = RecordStatus.FAILED

    def mark_skipped(self) -> None:
        self._require_importable("skipped")
        self.status = RecordStatus.SKIPPED

    def reset_validation(self) -> None:
        """Return the record to pending so it can be validated again."""

        if self.status in {RecordStatus.IMPORTED, RecordStatus.FAILED}:
            raise RecordStateError(f"row {self.row_number} is {self.status.value} and cannot be re-validated")
        self.status = RecordStatus.PENDING
        self.issues = []
        self.employee_id = None
        self.employee_name = None
        self.category = None
        self.wifo_category = None
        self.provision_type = None
        self.duplicate_info = None

    def _require_importable(self, target: str) -> None:
        if self.status not in _IMPORTABLE:
            raise RecordStateError(f"row {self.row_number} is {self.status.value}, cannot mark {target}")


def _jsonable(values: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in values.items():
        if value is None or isinstance(value, (str, int, float, bool)):
            out[key] = value
        elif isinstance(value, date):
            out[key] = value.isoformat()
        else:
            out[key] = str(value)
    return out
