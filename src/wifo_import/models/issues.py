from __future__ import annotations

from typing import Any

from wifo_import.models.common import StrictModel
from wifo_import.models.enums import IssueCode, Severity

DEFAULT_MESSAGES: dict[IssueCode, str] = {
    IssueCode.MISSING_REQUIRED_FIELD: "Required field is missing",
    IssueCode.INVALID_DATE_FORMAT: "Invalid date format",
    IssueCode.INVALID_NUMBER_FORMAT: "Invalid number format",
    IssueCode.UNKNOWN_AGENT: "Agent not found",
    IssueCode.UNKNOWN_CATEGORY: "Unknown category (Sparte)",
    IssueCode.CATEGORY_FALLBACK: "Category not recognised, booked as SONSTIGE",
    IssueCode.DUPLICATE_ENTRY: "Entry already exists",
    IssueCode.POTENTIAL_DUPLICATE: "Potential duplicate detected",
    IssueCode.NEGATIVE_AMOUNT: "Cancellation (negative amount)",
    IssueCode.FUTURE_DATE: "Date lies in the future",
    IssueCode.INVALID_PROVISION_TYPE: "Invalid provision type",
    IssueCode.AMOUNT_MISMATCH: "Amounts do not add up",
    IssueCode.FUZZY_MATCH: "Employee found by similarity match",
    IssueCode.IMPORT_ERROR: "Import failed",
}


class ValidationIssue(StrictModel):
    """One finding attached to a statement line."""

    code: IssueCode
    field: str | None = None
    severity: Severity = Severity.ERROR
    message: str = ""
    details: Any = None

    def model_post_init(self, __context: Any) -> None:
        if not self.message:
            self.message = DEFAULT_MESSAGES[self.code]

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    @property
    def is_warning(self) -> bool:
        return self.severity == Severity.WARNING

    @property
    def is_info(self) -> bool:
        return self.severity == Severity.INFO

    @property
    def full_message(self) -> str:
        """Render field, message and formatted details as one line."""

        text = self.message
        if self.field:
            text = f"{self.field}: {text}"
        formatted = self._format_details()
        if formatted:
            text = f"{text} ({formatted})"
        return text

    def _format_details(self) -> str:
        details = self.details
        if details is None or details == "":
            return ""
        if isinstance(details, (str, int, float)):
            return str(details)
        if not isinstance(details, dict):
            return str(details)
        if self.code in {IssueCode.DUPLICATE_ENTRY, IssueCode.POTENTIAL_DUPLICATE}:
            return _format_duplicate(details)
        if self.code == IssueCode.FUZZY_MATCH:
            parts = []
            if details.get("searched_name"):
                parts.append(f'searched: "{details["searched_name"]}"')
            if details.get("matched_name"):
                parts.append(f'found: "{details["matched_name"]}"')
            if details.get("score") is not None:
                parts.append(f"{round(details['score'] * 100)}% match")
            return ", ".join(parts)
        if self.code == IssueCode.UNKNOWN_AGENT and details.get("suggestions") is not None:
            suggestions = details["suggestions"]
            if not suggestions:
                return f'"{details.get("searched_name", "")}", no similar employees'
            names = ", ".join(f"{s['name']} ({round(s['score'] * 100)}%)" for s in suggestions)
            return f"did you mean: {names}"
        for key in ("name", "message"):
            if details.get(key):
                return str(details[key])
        pairs = [f"{key}: {value}" for key, value in details.items() if value is not None and not isinstance(value, (dict, list))]
        return ", ".join(pairs)

    # factories for the common findings

    @classmethod
    def missing_required_field(cls, field: str) -> "ValidationIssue":
        return cls(code=IssueCode.MISSING_REQUIRED_FIELD, field=field)

    @classmethod
    def invalid_date_format(cls, field: str, value: Any) -> "ValidationIssue":
        return cls(code=IssueCode.INVALID_DATE_FORMAT, field=field, details=_printable(value))

    @classmethod
    def invalid_number_format(cls, field: str, value: Any) -> "ValidationIssue":
        return cls(code=IssueCode.INVALID_NUMBER_FORMAT, field=field, details=_printable(value))

    @classmethod
    def future_date(cls, field: str) -> "ValidationIssue":
        return cls(code=IssueCode.FUTURE_DATE, field=field, severity=Severity.WARNING)

    @classmethod
    def negative_amount(cls, field: str, amount: float) -> "ValidationIssue":
        return cls(code=IssueCode.NEGATIVE_AMOUNT, field=field, severity=Severity.WARNING, details=amount)

    @classmethod
    def import_error(cls, message: str) -> "ValidationIssue":
        return cls(code=IssueCode.IMPORT_ERROR, message=f"Import failed: {message}", details={"message": message})


def _printable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _format_duplicate(details: dict[str, Any]) -> str:
    if details.get("duplicate_type") == "internal":
        return ""
    parts: list[str] = []
    existing = details.get("existing_entry") or {}
    if existing.get("customer_name"):
        parts.append(str(existing["customer_name"]))
    if existing.get("contract_number"):
        parts.append(f"contract: {existing['contract_number']}")
    if existing.get("entry_date"):
        parts.append(str(existing["entry_date"]))
    if existing.get("provision_amount") is not None:
        parts.append(f"{float(existing['provision_amount']):.2f} EUR")
    confidence = details.get("confidence")
    if confidence is not None and confidence < 1:
        parts.append(f"{round(confidence * 100)}% match")
    return ", ".join(parts)
