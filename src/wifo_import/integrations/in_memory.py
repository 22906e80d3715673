from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any, Iterable
from uuid import uuid4

from wifo_import.models.batch import ImportBatch
from wifo_import.models.entries import Employee, RevenueEntry, RevenueEntryDraft


class InMemoryBatchRepository:
    """In-memory batch repository for local development and tests."""

    def __init__(self) -> None:
        """Initialize lock-guarded in-memory store."""

        self._items: dict[str, ImportBatch] = {}
        self._lock = asyncio.Lock()

    async def save(self, batch: ImportBatch) -> None:
        """Upsert batch."""

        async with self._lock:
            self._items[batch.batch_id] = batch

    async def find_by_id(self, batch_id: str) -> ImportBatch | None:
        """Get one batch by id."""

        async with self._lock:
            return self._items.get(batch_id)

    async def find_recent(self, limit: int = 10) -> list[ImportBatch]:
        """Return latest batches ordered by upload time."""

        async with self._lock:
            values = sorted(self._items.values(), key=lambda x: x.uploaded_at, reverse=True)
            return values[:limit]


class InMemoryEmployeeDirectory:
    """Fixed employee list."""

    def __init__(self, employees: Iterable[Employee] = ()) -> None:
        self._employees = list(employees)

    async def get_all_employees(self) -> list[Employee]:
        return list(self._employees)


class InMemoryRevenueSink:
    """Revenue store kept in a list; query keys filter by equality."""

    def __init__(self, entries: Iterable[RevenueEntry] = ()) -> None:
        self.entries: list[RevenueEntry] = list(entries)
        self.drafts: list[RevenueEntryDraft] = []
        self._lock = asyncio.Lock()

    async def add_entry(self, employee_id: str, draft: RevenueEntryDraft) -> RevenueEntry:
        entry = RevenueEntry(
            id=str(uuid4()),
            employee_id=employee_id,
            contract_number=draft.contract_number,
            source=draft.source,
            source_reference=draft.source_reference,
            customer_name=draft.customer_name,
            provision_amount=draft.provision_amount,
            entry_date=draft.entry_date,
            created_at=datetime.now(UTC),
        )
        async with self._lock:
            self.entries.append(entry)
            self.drafts.append(draft)
        return entry

    async def search_entries(self, query: dict[str, Any]) -> list[RevenueEntry]:
        async with self._lock:
            return [
                entry
                for entry in self.entries
                if all(getattr(entry, key, None) == value for key, value in query.items())
            ]
