from __future__ import annotations

from enum import Enum


class BatchStatus(str, Enum):
    """Lifecycle status for one statement import batch."""

    PENDING = "pending"  # Created, file not read yet.
    PARSING = "parsing"  # File parser is running.
    VALIDATING = "validating"  # Records are being validated.
    READY = "ready"  # Validated, at least one record can be imported.
    IMPORTING = "importing"  # Revenue entries are being written.
    COMPLETED = "completed"  # Every attempted record was imported.
    PARTIALLY_COMPLETED = "partiallyCompleted"  # Some records imported, some failed.
    FAILED = "failed"  # Parse failure, nothing importable or nothing imported.


class RecordStatus(str, Enum):
    """Validation/import status of a single statement line."""

    PENDING = "pending"  # Not validated yet.
    VALID = "valid"  # No issues above info level.
    WARNING = "warning"  # Importable, operator should review.
    INVALID = "invalid"  # Blocked by at least one error.
    IMPORTED = "imported"  # Revenue entry created.
    FAILED = "failed"  # Import attempts exhausted.
    SKIPPED = "skipped"  # Excluded by the operator.


class Severity(str, Enum):
    """Severity of one validation issue."""

    ERROR = "error"  # Blocks import.
    WARNING = "warning"  # Non-blocking, surfaced for review.
    INFO = "info"  # Advisory only.


class IssueCode(str, Enum):
    """Machine-readable validation issue codes."""

    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_DATE_FORMAT = "invalid_date_format"
    INVALID_NUMBER_FORMAT = "invalid_number_format"
    UNKNOWN_AGENT = "unknown_agent"
    UNKNOWN_CATEGORY = "unknown_category"
    CATEGORY_FALLBACK = "category_fallback"
    DUPLICATE_ENTRY = "duplicate_entry"
    POTENTIAL_DUPLICATE = "potential_duplicate"
    NEGATIVE_AMOUNT = "negative_amount"
    FUTURE_DATE = "future_date"
    INVALID_PROVISION_TYPE = "invalid_provision_type"
    AMOUNT_MISMATCH = "amount_mismatch"
    FUZZY_MATCH = "fuzzy_match"
    IMPORT_ERROR = "import_error"


class DuplicateType(str, Enum):
    """How a statement line collided with an existing revenue entry."""

    EXACT_CONTRACT = "exact_contract"  # Same source reference and employee.
    CONTRACT_MATCH = "contract_match"  # Same contract number and employee.
    AMOUNT_DATE_MATCH = "amount_date_match"  # Same date/amount, similar customer.
    POTENTIAL_DUPLICATE = "potential_duplicate"  # Same date/amount, customer differs.
    INTERNAL = "internal"  # Repeated line within the same file.


class MatchType(str, Enum):
    """Strategy that produced a name-match score."""

    EXACT = "exact"
    NAME_PARTS = "name_parts"
    LAST_NAME_ONLY = "lastName_only"
    FUZZY_FULL = "fuzzy_full"
    PARTS_MATCH = "parts_match"
    INITIALS = "initials"
    NONE = "none"
