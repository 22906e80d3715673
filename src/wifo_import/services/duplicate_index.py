from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Iterable

from wifo_import.models.entries import DuplicateCheck, RevenueEntry
from wifo_import.models.enums import DuplicateType
from wifo_import.models.record import ImportRecord

logger = logging.getLogger(__name__)

CUSTOMER_SIMILARITY_THRESHOLD = 0.7


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def contract_key(contract: str, employee_id: str) -> str:
    return f"contract:{_norm(contract)}:{employee_id}"


def source_key(reference: str, employee_id: str) -> str:
    return f"source:{_norm(reference)}:{employee_id}"


def amount_key(day: date, amount: float, employee_id: str) -> str:
    return f"amount:{day.isoformat()}:{abs(amount):.2f}:{employee_id}"


def customer_similarity(a: str | None, b: str | None) -> float:
    """Cheap customer-name similarity: equality, containment, then word overlap."""

    left = _norm(a)
    right = _norm(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    if left in right or right in left:
        return 0.8
    left_words = set(left.split())
    right_words = set(right.split())
    overlap = len(left_words & right_words)
    return overlap / max(len(left_words), len(right_words))


def internal_duplicate_key(record: ImportRecord) -> str:
    entry_date = record.entry_date.isoformat() if record.entry_date else ""
    net = f"{record.net:.2f}" if record.net is not None else ""
    return "|".join([record.contract_reference or "", entry_date, net, _norm(record.agent_name)])


class DuplicateIndex:
    """Hash index over existing revenue entries for duplicate lookups."""

    def __init__(self) -> None:
        self._index: dict[str, list[RevenueEntry]] = defaultdict(list)
        self._total_entries = 0

    def build(self, entries: Iterable[RevenueEntry]) -> None:
        """Replace the index contents with the given entries."""

        self._index = defaultdict(list)
        self._total_entries = 0
        for entry in entries:
            self._total_entries += 1
            if entry.contract_number:
                self._index[contract_key(entry.contract_number, entry.employee_id)].append(entry)
            if entry.source_reference:
                self._index[source_key(entry.source_reference, entry.employee_id)].append(entry)
            day = entry.entry_date or (entry.created_at.date() if entry.created_at else None)
            if day is not None and entry.provision_amount is not None:
                self._index[amount_key(day, entry.provision_amount, entry.employee_id)].append(entry)
        logger.debug("duplicate index built: %s", self.stats())

    def check_duplicate(self, record: ImportRecord, employee_id: str | None) -> DuplicateCheck:
        """Look a record up against existing entries of one employee."""

        if not employee_id:
            return DuplicateCheck()
        reference = record.contract_reference
        if reference:
            hits = self._index.get(source_key(reference, employee_id))
            if hits:
                return DuplicateCheck(
                    is_duplicate=True,
                    duplicate_type=DuplicateType.EXACT_CONTRACT,
                    confidence=1.0,
                    existing_entry=hits[0],
                )
            hits = self._index.get(contract_key(reference, employee_id))
            if hits:
                return DuplicateCheck(
                    is_duplicate=True,
                    duplicate_type=DuplicateType.CONTRACT_MATCH,
                    confidence=0.95,
                    existing_entry=hits[0],
                )
        if record.entry_date is not None and record.net is not None:
            hits = self._index.get(amount_key(record.entry_date, record.net, employee_id))
            if hits:
                for existing in hits:
                    score = customer_similarity(record.customer_name, existing.customer_name)
                    if score > CUSTOMER_SIMILARITY_THRESHOLD:
                        return DuplicateCheck(
                            is_duplicate=True,
                            duplicate_type=DuplicateType.AMOUNT_DATE_MATCH,
                            confidence=0.8 + score * 0.15,
                            existing_entry=existing,
                        )
                return DuplicateCheck(
                    is_duplicate=False,
                    duplicate_type=DuplicateType.POTENTIAL_DUPLICATE,
                    confidence=0.6,
                    existing_entry=hits[0],
                )
        return DuplicateCheck()

    def stats(self) -> dict[str, int]:
        return {"total_entries": self._total_entries, "indexed_keys": len(self._index)}


def find_internal_duplicates(records: list[ImportRecord]) -> dict[str, list[int]]:
    """Group record indices sharing contract, date, net amount and agent."""

    groups: dict[str, list[int]] = defaultdict(list)
    for index, record in enumerate(records):
        groups[internal_duplicate_key(record)].append(index)
    return {key: indices for key, indices in groups.items() if len(indices) > 1}
