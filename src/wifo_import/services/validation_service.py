from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from wifo_import.coercion import is_blank
from wifo_import.models.batch import ImportBatch
from wifo_import.models.codes import parse_category, parse_provision_type
from wifo_import.models.entries import DuplicateCheck, Employee, RevenueEntry
from wifo_import.models.enums import DuplicateType, IssueCode, RecordStatus, Severity
from wifo_import.models.issues import ValidationIssue
from wifo_import.models.record import REQUIRED_COLUMNS, ImportRecord, RecordValidation
from wifo_import.name_matching import find_all_matches, find_best_match
from wifo_import.services.duplicate_index import DuplicateIndex, find_internal_duplicates
from wifo_import.services.ports import ValidationProgress

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.01
YIELD_EVERY = 50

_REQUIRED_FIELDS = {
    "Netto": "net",
    "AP-VM": "agent_name",
    "Sparte": "category_code",
    "Datum": "entry_date",
}
_DATE_COLUMNS = {"Datum": "entry_date", "Kunde Geburtsdatum": "customer_birth_date", "Erstelldatum": "created_on"}
_NUMBER_COLUMNS = {
    "Netto": "net",
    "Brutto": "gross",
    "Stornoreserve": "storno_reserve",
    "RB": "risk_buffer",
    "Basis": "basis",
}
_DUPLICATE_LABELS = {
    DuplicateType.EXACT_CONTRACT: "exact match",
    DuplicateType.CONTRACT_MATCH: "contract number",
    DuplicateType.AMOUNT_DATE_MATCH: "date and amount",
}


@dataclass(frozen=True)
class _AgentMatch:
    employee: Employee
    score: float
    match_type: str


class ValidationPipeline:
    """Validates statement records and maps them to employees and categories."""

    def __init__(
        self,
        *,
        fuzzy_match_threshold: float = 0.75,
        suggestion_threshold: float = 0.5,
        suggestion_limit: int = 3,
        duplicate_check: bool = True,
    ) -> None:
        """Bind matching thresholds and the duplicate check toggle."""

        self.fuzzy_match_threshold = fuzzy_match_threshold
        self.suggestion_threshold = suggestion_threshold
        self.suggestion_limit = suggestion_limit
        self.duplicate_check = duplicate_check
        self._employees: list[Employee] = []
        self._employees_by_id: dict[str, Employee] = {}
        self._name_lookup: dict[str, Employee] = {}
        self._duplicates = DuplicateIndex()

    # lookup snapshots

    def build_employee_lookup(self, employees: Iterable[Employee]) -> None:
        """Index employees by full name, "Last, First" and "First Last"."""

        self._employees = list(employees)
        self._employees_by_id = {employee.id: employee for employee in self._employees}
        self._name_lookup = {}
        for employee in self._employees:
            full = employee.name.lower().strip()
            if full:
                self._name_lookup[full] = employee
            if employee.first_name and employee.last_name:
                self._name_lookup[f"{employee.last_name}, {employee.first_name}".lower().strip()] = employee
                self._name_lookup[f"{employee.first_name} {employee.last_name}".lower().strip()] = employee
        logger.debug("employee lookup built with %d employees, %d keys", len(self._employees), len(self._name_lookup))

    def build_duplicate_index(self, entries: Iterable[RevenueEntry]) -> None:
        self._duplicates.build(entries)

    def find_employee(self, employee_id: str) -> Employee | None:
        return self._employees_by_id.get(employee_id)

    def find_employee_by_name(self, name: str | None) -> Employee | None:
        if not name:
            return None
        return self._name_lookup.get(name.lower().strip())

    # single record

    def validate_record(self, record: ImportRecord, employee_override: Employee | None = None) -> RecordValidation:
        """Run every check on one record in a fixed order and derive its status."""

        issues: list[ValidationIssue] = []
        self._check_required(record, issues)
        self._check_formats(record, issues)
        self._check_business_rules(record, issues)

        if employee_override is not None:
            agent = _AgentMatch(employee_override, 1.0, "operator")
        else:
            agent = self._map_agent(record, issues)

        category = None
        if not is_blank(record.category_code):
            category = parse_category(record.category_code)
            if category is None:
                issues.append(
                    ValidationIssue(
                        code=IssueCode.UNKNOWN_CATEGORY,
                        field="Sparte",
                        details=record.category_code,
                    )
                )
            elif category.is_fallback:
                issues.append(
                    ValidationIssue(
                        code=IssueCode.CATEGORY_FALLBACK,
                        field="Sparte",
                        severity=Severity.INFO,
                        details=record.category_code,
                    )
                )

        provision_type = None
        if record.provision_code:
            provision_type = parse_provision_type(record.provision_code)
            if provision_type is None:
                issues.append(
                    ValidationIssue(
                        code=IssueCode.INVALID_PROVISION_TYPE,
                        field="Art",
                        severity=Severity.WARNING,
                        details=record.provision_code,
                    )
                )

        duplicate_info = None
        if self.duplicate_check and agent is not None:
            check = self._duplicates.check_duplicate(record, agent.employee.id)
            self._add_duplicate_issue(check, issues)
            if check.duplicate_type is not None:
                duplicate_info = check.model_dump(mode="json")

        return RecordValidation(
            status=status_for(issues),
            issues=issues,
            employee_id=agent.employee.id if agent else None,
            employee_name=agent.employee.name if agent else None,
            category=category.internal_category if category else None,
            wifo_category=category.code if category else None,
            provision_type=provision_type,
            duplicate_info=duplicate_info,
        )

    def _check_required(self, record: ImportRecord, issues: list[ValidationIssue]) -> None:
        for column in REQUIRED_COLUMNS:
            value = getattr(record, _REQUIRED_FIELDS[column])
            # A non-blank raw value that failed to parse is reported as a format error instead.
            if value is None and is_blank(record.raw_value(column)):
                issues.append(ValidationIssue.missing_required_field(column))

    def _check_formats(self, record: ImportRecord, issues: list[ValidationIssue]) -> None:
        for column, field_name in _DATE_COLUMNS.items():
            raw = record.raw_value(column)
            if getattr(record, field_name) is None and not is_blank(raw):
                issues.append(ValidationIssue.invalid_date_format(column, raw))
        for column, field_name in _NUMBER_COLUMNS.items():
            raw = record.raw_value(column)
            if getattr(record, field_name) is None and not is_blank(raw):
                issues.append(ValidationIssue.invalid_number_format(column, raw))

    def _check_business_rules(self, record: ImportRecord, issues: list[ValidationIssue]) -> None:
        if record.entry_date is not None and record.entry_date > date.today():
            issues.append(ValidationIssue.future_date("Datum"))
        if record.net is not None and record.net < 0:
            issues.append(ValidationIssue.negative_amount("Netto", record.net))
        amounts = (record.gross, record.storno_reserve, record.risk_buffer, record.net)
        if all(value is not None for value in amounts):
            expected = record.gross - record.storno_reserve - record.risk_buffer
            if abs(expected - record.net) > AMOUNT_TOLERANCE:
                issues.append(
                    ValidationIssue(
                        code=IssueCode.AMOUNT_MISMATCH,
                        field="Netto",
                        severity=Severity.INFO,
                        message=f"Net does not add up (expected: {expected:.2f}, actual: {record.net:.2f})",
                        details={"expected": round(expected, 2), "actual": record.net},
                    )
                )

    def _map_agent(self, record: ImportRecord, issues: list[ValidationIssue]) -> _AgentMatch | None:
        name = record.agent_name
        if not name:
            return None

        exact = self.find_employee_by_name(name)
        if exact is not None:
            return _AgentMatch(exact, 1.0, "exact")

        best = find_best_match(name, self._employees, self.fuzzy_match_threshold)
        if best.candidate is not None:
            if not best.is_exact:
                issues.append(
                    ValidationIssue(
                        code=IssueCode.FUZZY_MATCH,
                        field="AP-VM",
                        severity=Severity.WARNING,
                        message=f'Employee "{best.candidate.name}" found ({round(best.score * 100)}% match)',
                        details={
                            "searched_name": name,
                            "matched_name": best.candidate.name,
                            "score": best.score,
                            "match_type": best.match_type.value,
                        },
                    )
                )
            return _AgentMatch(best.candidate, best.score, best.match_type.value)

        suggestions = find_all_matches(name, self._employees, self.suggestion_threshold)[: self.suggestion_limit]
        message = f'Employee "{name}" not found.'
        if suggestions:
            message += " Possible matches: " + ", ".join(s.candidate.name for s in suggestions)
        issues.append(
            ValidationIssue(
                code=IssueCode.UNKNOWN_AGENT,
                field="AP-VM",
                message=message,
                details={
                    "searched_name": name,
                    "suggestions": [
                        {"id": s.candidate.id, "name": s.candidate.name, "score": s.score} for s in suggestions
                    ],
                },
            )
        )
        return None

    def _add_duplicate_issue(self, check: DuplicateCheck, issues: list[ValidationIssue]) -> None:
        if check.duplicate_type is None:
            return
        details = check.model_dump(mode="json", exclude={"is_duplicate"})
        if check.is_duplicate:
            label = _DUPLICATE_LABELS.get(check.duplicate_type, check.duplicate_type.value)
            issues.append(
                ValidationIssue(
                    code=IssueCode.DUPLICATE_ENTRY,
                    message=f"Entry already exists ({label})",
                    details=details,
                )
            )
        elif check.duplicate_type == DuplicateType.POTENTIAL_DUPLICATE and check.confidence > 0.5:
            issues.append(
                ValidationIssue(
                    code=IssueCode.POTENTIAL_DUPLICATE,
                    severity=Severity.WARNING,
                    message="Potential duplicate: same amount on the same day",
                    details=details,
                )
            )

    def _internal_duplicate_issue(self, records: list[ImportRecord], group: list[int]) -> ValidationIssue:
        first = records[group[0]]
        return ValidationIssue(
            code=IssueCode.DUPLICATE_ENTRY,
            severity=Severity.WARNING,
            message=f"Duplicate within this file (row {first.row_number})",
            details={
                "duplicate_type": DuplicateType.INTERNAL.value,
                "first_occurrence_index": group[0],
                "first_occurrence_row": first.row_number,
                "all_indices": group,
            },
        )

    def revalidate_record(
        self,
        batch: ImportBatch,
        record: ImportRecord,
        employee_override: Employee | None = None,
    ) -> RecordValidation:
        """Validate one record of a batch again, keeping its in-file duplicate warning."""

        result = self.validate_record(record, employee_override=employee_override)
        position = next(i for i, candidate in enumerate(batch.records) if candidate is record)
        for group in find_internal_duplicates(batch.records).values():
            if position in group[1:]:
                result.issues.append(self._internal_duplicate_issue(batch.records, group))
                result.status = status_for(result.issues)
                break
        return result

    # whole batch

    async def validate_batch(self, batch: ImportBatch, on_progress: ValidationProgress | None = None) -> ImportBatch:
        """Validate every pending record of a batch and finalize its status."""

        batch.start_validating()
        records = batch.records
        total = len(records)
        internal_groups = find_internal_duplicates(records)
        first_of: dict[int, list[int]] = {}
        for indices in internal_groups.values():
            for index in indices[1:]:
                first_of[index] = indices

        for index, record in enumerate(records):
            if record.status == RecordStatus.PENDING:
                result = self.validate_record(record)
                group = first_of.get(index)
                if group is not None:
                    result.issues.append(self._internal_duplicate_issue(records, group))
                    result.status = status_for(result.issues)
                record.apply_validation(result)
            if on_progress is not None:
                on_progress(index + 1, total)
            if (index + 1) % YIELD_EVERY == 0:
                await asyncio.sleep(0)

        batch.finish_validation()
        logger.info(
            "batch %s validated: %d valid, %d warning, %d invalid",
            batch.batch_id,
            batch.valid_records,
            batch.warning_records,
            batch.invalid_records,
        )
        return batch


def status_for(issues: list[ValidationIssue]) -> RecordStatus:
    if any(issue.severity == Severity.ERROR for issue in issues):
        return RecordStatus.INVALID
    if any(issue.severity == Severity.WARNING for issue in issues):
        return RecordStatus.WARNING
    return RecordStatus.VALID
