"""Public model exports for the WIFO statement import."""

from wifo_import.models.batch import ImportBatch
from wifo_import.models.codes import ProvisionType, WifoCategory, parse_category, parse_provision_type
from wifo_import.models.common import ErrorInfo
from wifo_import.models.entries import (
    DuplicateCheck,
    Employee,
    RawRow,
    RevenueEntry,
    RevenueEntryDraft,
    StatementFile,
)
from wifo_import.models.enums import BatchStatus, DuplicateType, IssueCode, MatchType, RecordStatus, Severity
from wifo_import.models.issues import ValidationIssue
from wifo_import.models.options import ImportOptions
from wifo_import.models.record import ImportRecord, RecordValidation

__all__ = [
    "BatchStatus",
    "DuplicateCheck",
    "DuplicateType",
    "Employee",
    "ErrorInfo",
    "ImportBatch",
    "ImportOptions",
    "ImportRecord",
    "IssueCode",
    "MatchType",
    "ProvisionType",
    "RawRow",
    "RecordStatus",
    "RecordValidation",
    "RevenueEntry",
    "RevenueEntryDraft",
    "Severity",
    "StatementFile",
    "ValidationIssue",
    "WifoCategory",
    "parse_category",
    "parse_provision_type",
]
