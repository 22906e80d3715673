from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from wifo_import.models.batch import ImportBatch
from wifo_import.models.entries import Employee, RevenueEntry, RevenueEntryDraft


class JsonBatchRepository:
    """Batch repository writing one JSON document per batch into a directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._lock = asyncio.Lock()

    def _path(self, batch_id: str) -> Path:
        return self.root / f"{batch_id}.json"

    async def save(self, batch: ImportBatch) -> None:
        """Write the batch snapshot, replacing the previous one."""

        payload = batch.model_dump_json(indent=2)
        async with self._lock:
            await asyncio.to_thread(self._write, self._path(batch.batch_id), payload)

    @staticmethod
    def _write(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(path)

    async def find_by_id(self, batch_id: str) -> ImportBatch | None:
        path = self._path(batch_id)
        async with self._lock:
            if not path.exists():
                return None
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return ImportBatch.model_validate_json(text)

    async def find_recent(self, limit: int = 10) -> list[ImportBatch]:
        async with self._lock:
            paths = sorted(self.root.glob("*.json")) if self.root.exists() else []
            texts = [await asyncio.to_thread(p.read_text, encoding="utf-8") for p in paths]
        batches = [ImportBatch.model_validate_json(text) for text in texts]
        batches.sort(key=lambda x: x.uploaded_at, reverse=True)
        return batches[:limit]


class JsonEmployeeDirectory:
    """Employee directory backed by a JSON array file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    async def get_all_employees(self) -> list[Employee]:
        raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        data = json.loads(raw)
        if isinstance(data, dict):
            data = data.get("employees", [])
        return [Employee.model_validate(item) for item in data]


class JsonRevenueLedger:
    """Revenue sink appending entries to a JSON array file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        if not isinstance(data, list):
            raise ValueError(f"{self.path} must contain a JSON array")
        return data

    def _dump(self, rows: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")

    async def add_entry(self, employee_id: str, draft: RevenueEntryDraft) -> RevenueEntry:
        row = draft.model_dump(mode="json")
        row["id"] = str(uuid4())
        row["employee_id"] = employee_id
        row["created_at"] = datetime.now(UTC).isoformat()
        async with self._lock:
            rows = await asyncio.to_thread(self._load)
            rows.append(row)
            await asyncio.to_thread(self._dump, rows)
        return RevenueEntry.model_validate(row)

    async def search_entries(self, query: dict[str, Any]) -> list[RevenueEntry]:
        async with self._lock:
            rows = await asyncio.to_thread(self._load)
        entries = [RevenueEntry.model_validate(row) for row in rows]
        return [
            entry
            for entry in entries
            if all(getattr(entry, key, None) == value for key, value in query.items())
        ]
