from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, UploadFile

from wifo_import.errors import (
    BatchNotImportableError,
    BatchStateError,
    FileParseError,
    ImportPipelineError,
    RecordNotFoundError,
    RecordStateError,
)
from wifo_import.integrations.container import AppContainer, build_container
from wifo_import.logging_setup import configure_logging
from wifo_import.models.api import (
    BatchListResponse,
    BatchResponse,
    ImportResultResponse,
    RecordListResponse,
    RecordResponse,
    RemapRecordRequest,
    SkipRecordsRequest,
)
from wifo_import.models.batch import ImportBatch
from wifo_import.models.entries import StatementFile
from wifo_import.models.enums import RecordStatus
from wifo_import.models.options import ImportOptions

container: AppContainer = build_container()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging once per process."""

    configure_logging(container.settings.log_level)
    yield


app = FastAPI(title="wifo_import statement import", version="0.1.0", lifespan=lifespan)


def _error_detail(exc: ImportPipelineError) -> dict[str, Any]:
    return {"code": exc.code, "message": exc.message, "details": exc.details or None}


async def _load_batch(batch_id: str) -> ImportBatch:
    batch = await container.orchestrator.get_batch(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="batch not found")
    return batch


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Lightweight health endpoint for liveness checks."""

    return {"status": "ok"}


@app.post("/v1/imports", response_model=BatchResponse)
async def upload_statement(
    file: UploadFile = File(...),
    uploaded_by: str | None = Form(None),
) -> BatchResponse:
    """Parse and validate an uploaded statement file."""

    filename = (file.filename or "").strip()
    if not filename:
        raise HTTPException(status_code=400, detail="file must have a name")
    content = await file.read()
    await file.close()
    statement = StatementFile(name=filename, content=content)

    orchestrator = container.orchestrator
    try:
        batch = await orchestrator.parse_file(statement, uploaded_by)
    except FileParseError as exc:
        raise HTTPException(status_code=400, detail=_error_detail(exc)) from exc
    await orchestrator.validate_batch(batch)
    return BatchResponse.from_batch(batch)


@app.get("/v1/imports", response_model=BatchListResponse)
async def list_imports(limit: int = 10) -> BatchListResponse:
    """List recently uploaded batches."""

    limit = max(1, min(limit, 100))
    batches = await container.orchestrator.get_recent_batches(limit)
    items = [BatchResponse.from_batch(batch) for batch in batches]
    return BatchListResponse(total=len(items), items=items)


@app.get("/v1/imports/{batch_id}", response_model=BatchResponse)
async def get_import(batch_id: str) -> BatchResponse:
    """Fetch one batch by id."""

    return BatchResponse.from_batch(await _load_batch(batch_id))


@app.get("/v1/imports/{batch_id}/records", response_model=RecordListResponse)
async def list_records(batch_id: str, status: RecordStatus | None = None) -> RecordListResponse:
    """List the records of a batch, optionally filtered by status."""

    batch = await _load_batch(batch_id)
    records = [r for r in batch.records if status is None or r.status == status]
    return RecordListResponse(
        batch_id=batch.batch_id,
        total=len(records),
        items=[RecordResponse.from_record(r) for r in records],
    )


@app.post("/v1/imports/{batch_id}/import", response_model=ImportResultResponse)
async def run_import(batch_id: str, options: ImportOptions | None = None) -> ImportResultResponse:
    """Import every importable record of a ready batch."""

    batch = await _load_batch(batch_id)
    events: list[dict[str, Any]] = []

    def on_progress(processed: int, total: int, info: dict[str, Any]) -> None:
        events.append({"processed": processed, "total": total, **info})

    try:
        await container.orchestrator.import_batch(batch, options, on_progress)
    except (BatchNotImportableError, BatchStateError) as exc:
        raise HTTPException(status_code=409, detail=_error_detail(exc)) from exc
    return ImportResultResponse(batch=BatchResponse.from_batch(batch), progress=events)


@app.post("/v1/imports/{batch_id}/skip", response_model=BatchResponse)
async def skip_records(batch_id: str, req: SkipRecordsRequest) -> BatchResponse:
    """Exclude records from the next import run."""

    batch = await _load_batch(batch_id)
    try:
        await container.orchestrator.skip_records(batch, req.record_ids)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=_error_detail(exc)) from exc
    except (RecordStateError, BatchStateError) as exc:
        raise HTTPException(status_code=409, detail=_error_detail(exc)) from exc
    return BatchResponse.from_batch(batch)


@app.post("/v1/imports/{batch_id}/records/{record_id}/remap", response_model=RecordResponse)
async def remap_record(batch_id: str, record_id: str, req: RemapRecordRequest) -> RecordResponse:
    """Assign an employee to a record by hand and validate it again."""

    batch = await _load_batch(batch_id)
    try:
        record = await container.orchestrator.remap_record(batch, record_id, req.employee_id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=_error_detail(exc)) from exc
    except (RecordStateError, BatchStateError) as exc:
        raise HTTPException(status_code=409, detail=_error_detail(exc)) from exc
    return RecordResponse.from_record(record)


def run() -> None:
    """Local API entrypoint used by script/console command."""

    import uvicorn

    # Start local HTTP server with env-configurable host and port.
    uvicorn.run(
        "wifo_import.api.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )
