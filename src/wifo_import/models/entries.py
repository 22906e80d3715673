from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import Field

from wifo_import.models.common import ExternalModel, StrictModel
from wifo_import.models.enums import DuplicateType

IMPORT_SOURCE = "wifo_import"


class Employee(ExternalModel):
    """Employee as delivered by the employee directory."""

    id: str
    name: str
    first_name: str | None = None
    last_name: str | None = None


class RevenueEntry(ExternalModel):
    """Already persisted revenue entry used for duplicate detection."""

    id: str
    employee_id: str
    contract_number: str | None = None
    source: str | None = None
    source_reference: str | None = None
    customer_name: str | None = None
    provision_amount: float | None = None
    entry_date: date | None = None
    created_at: datetime | None = None


class CatalogRef(StrictModel):
    """Product or provider descriptor attached to a revenue entry."""

    name: str
    category: str


class RevenueEntryDraft(StrictModel):
    """Payload handed to the revenue sink to create one entry."""

    category: str
    provision_type: str | None = None
    customer_name: str
    provision_amount: float
    contract_number: str | None = None
    notes: str = ""
    entry_date: date | None = None
    product: CatalogRef
    product_provider: CatalogRef
    source: Literal["wifo_import"] = IMPORT_SOURCE
    source_reference: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DuplicateCheck(StrictModel):
    """Outcome of checking one record against the duplicate index."""

    is_duplicate: bool = False
    duplicate_type: DuplicateType | None = None
    confidence: float = 0.0
    existing_entry: RevenueEntry | None = None


class RawRow(StrictModel):
    """One statement line as produced by a file parser, keyed by column header."""

    row_number: int
    values: dict[str, Any] = Field(default_factory=dict)


class StatementFile(StrictModel):
    """Uploaded statement file content."""

    name: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return self.name.rsplit(".", 1)[-1].lower() if "." in self.name else ""
