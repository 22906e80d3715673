from __future__ import annotations

from typing import Any, Callable, Protocol, Sequence

from wifo_import.models.batch import ImportBatch
from wifo_import.models.entries import Employee, RawRow, RevenueEntry, RevenueEntryDraft, StatementFile

ParseProgress = Callable[[int], None]
ValidationProgress = Callable[[int, int], None]
ImportProgress = Callable[[int, int, dict[str, Any]], None]


class FileParser(Protocol):
    """Turns an uploaded statement file into header-keyed rows."""

    async def parse(self, file: StatementFile, on_progress: ParseProgress | None = None) -> Sequence[RawRow]:
        """Read all data rows; raise FileParseError when the file is unusable."""

        ...


class EmployeeDirectory(Protocol):
    """Source of employees that statement agents are matched against."""

    async def get_all_employees(self) -> list[Employee]:
        """Return every active employee."""

        ...


class RevenueSink(Protocol):
    """Store that receives imported revenue entries."""

    async def add_entry(self, employee_id: str, draft: RevenueEntryDraft) -> RevenueEntry:
        """Create one revenue entry for an employee."""

        ...

    async def search_entries(self, query: dict[str, Any]) -> list[RevenueEntry]:
        """Return existing entries matching a query; an empty query returns all."""

        ...


class BatchRepository(Protocol):
    """Persistence contract for import batches."""

    async def save(self, batch: ImportBatch) -> None:
        """Upsert one batch including its records."""

        ...

    async def find_recent(self, limit: int = 10) -> list[ImportBatch]:
        """List latest batches, newest upload first."""

        ...

    async def find_by_id(self, batch_id: str) -> ImportBatch | None:
        """Load one batch by id."""

        ...
