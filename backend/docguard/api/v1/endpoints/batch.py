"""
Batch upload endpoints
"""
import json
import uuid
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sse_starlette.sse import EventSourceResponse

from docguard.api.v1.deps import get_batch_coordinator, get_current_user_id
from docguard.core.logger import logger
from docguard.db.schemas import BatchReportResponse
from docguard.services.batch_service import BatchCoordinator, BatchFile
from docguard.services.validation_service import FileCandidate, validate_batch
from docguard.utils.exceptions import FileValidationError

router = APIRouter()


async def _read_files(files: List[UploadFile], client_ids: Optional[List[str]]) -> List[BatchFile]:
    batch = []
    for index, upload in enumerate(files):
        client_id = client_ids[index] if client_ids and index < len(client_ids) else str(uuid.uuid4())
        batch.append(BatchFile(
            client_id=client_id,
            filename=upload.filename or f"document-{index + 1}",
            content_type=upload.content_type or "application/octet-stream",
            data=await upload.read(),
        ))
    return batch


def _check_batch_size(batch: List[BatchFile]) -> None:
    result = validate_batch([FileCandidate(f.filename, f.content_type, len(f.data)) for f in batch])
    if not result.accepted:
        raise FileValidationError(result.reason)


@router.post("", response_model=BatchReportResponse)
async def run_batch(
    files: List[UploadFile] = File(...),
    client_ids: Optional[List[str]] = Form(None),
    user_id: UUID = Depends(get_current_user_id),
    coordinator: BatchCoordinator = Depends(get_batch_coordinator),
):
    """
    Process a batch and return the final report
    """
    batch = await _read_files(files, client_ids)
    report = await coordinator.run_to_completion(user_id, batch)
    return report.to_dict()


@router.post("/stream")
async def stream_batch(
    request: Request,
    files: List[UploadFile] = File(...),
    client_ids: Optional[List[str]] = Form(None),
    user_id: UUID = Depends(get_current_user_id),
    coordinator: BatchCoordinator = Depends(get_batch_coordinator),
):
    """
    Process a batch, streaming progress via Server-Sent Events

    Events:
    - progress: one file changed state
    - complete: all files finished, with succeeded/failed counts
    """
    batch = await _read_files(files, client_ids)
    _check_batch_size(batch)

    async def event_generator():
        succeeded = failed = 0
        async for event in coordinator.run(user_id, batch):
            if event.status == "completed":
                succeeded += 1
            elif event.status == "failed":
                failed += 1

            if await request.is_disconnected():
                # Pipelines keep running server-side
                logger.info(f"Batch stream client {user_id} disconnected")
                return

            yield {"event": "progress", "data": json.dumps(event.to_dict())}

        yield {
            "event": "complete",
            "data": json.dumps({"total": len(batch), "succeeded": succeeded, "failed": failed}),
        }

    return EventSourceResponse(event_generator())
