# docguard/services/batch_service.py
"""
Batch coordinator.

Runs the single-document pipeline over up to MAX_BATCH_SIZE files with at
most BATCH_CONCURRENCY in flight. Every file reports its own progress:

    pending (0) -> uploading (20, 40) -> analyzing (60) -> completed (100)

or failed at any point after pending.

A failing file never affects its siblings. Progress is streamed as it
happens through an asyncio.Queue.
"""
from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Sequence, Set
from uuid import UUID

from docguard.core.config import settings
from docguard.core.logger import logger
from docguard.services.validation_service import FileCandidate, validate_batch
from docguard.utils.exceptions import DocGuardError, FileValidationError

# stage reported by the pipeline -> (batch status, progress)
STAGE_PROGRESS = {
    "uploading": ("uploading", 20),
    "uploaded": ("uploading", 40),
    "analyzing": ("analyzing", 60),
}

# Keeps running pipelines referenced if the consumer goes away mid-batch
_inflight: Set[asyncio.Task] = set()


@dataclass
class BatchFile:
    client_id: str
    filename: str
    content_type: str
    data: bytes = field(repr=False)


@dataclass
class BatchEvent:
    client_id: str
    filename: str
    status: str
    progress: int
    error: Optional[str] = None
    document_id: Optional[str] = None
    scan_result_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BatchReport:
    total: int
    succeeded: int = 0
    failed: int = 0
    results: List[Dict[str, str]] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class BatchCoordinator:

    def __init__(self, pipeline, concurrency: Optional[int] = None):
        self.pipeline = pipeline
        self.concurrency = concurrency or settings.BATCH_CONCURRENCY

    async def _process_one(
        self,
        sem: asyncio.Semaphore,
        queue: asyncio.Queue,
        user_id: UUID,
        item: BatchFile,
    ) -> None:
        last_progress = 0

        async def on_stage(stage: str) -> None:
            nonlocal last_progress
            status, progress = STAGE_PROGRESS.get(stage, ("analyzing", last_progress))
            last_progress = progress
            await queue.put(BatchEvent(item.client_id, item.filename, status, progress))

        async with sem:
            try:
                outcome = await self.pipeline.process_upload(
                    user_id, item.filename, item.content_type, item.data, on_stage=on_stage
                )
                await queue.put(BatchEvent(
                    item.client_id,
                    item.filename,
                    "completed",
                    100,
                    document_id=str(outcome.document_id),
                    scan_result_id=str(outcome.scan_result_id),
                ))

            except DocGuardError as e:
                logger.warning(f"Batch file {item.filename} failed: {e.detail}")
                await queue.put(BatchEvent(item.client_id, item.filename, "failed", last_progress, error=e.detail))

            except Exception as e:
                logger.exception(f"Batch file {item.filename} failed unexpectedly")
                await queue.put(BatchEvent(
                    item.client_id, item.filename, "failed", last_progress, error=str(e) or "Unknown error"
                ))

    async def run(self, user_id: UUID, files: Sequence[BatchFile]) -> AsyncIterator[BatchEvent]:
        """
        Process a batch, yielding progress events as they happen. The
        iterator ends once every file reached completed or failed.

        Raises:
            FileValidationError: the batch as a whole was refused
        """
        validation = validate_batch(
            [FileCandidate(f.filename, f.content_type, len(f.data)) for f in files]
        )
        if not validation.accepted:
            raise FileValidationError(validation.reason)

        for item in files:
            yield BatchEvent(item.client_id, item.filename, "pending", 0)

        for index, reason in validation.rejected_files.items():
            item = files[index]
            yield BatchEvent(item.client_id, item.filename, "failed", 0, error=reason)

        accepted = [files[i] for i in validation.accepted_indexes]
        if not accepted:
            return

        logger.info(f"Batch of {len(accepted)} file(s) started for user {user_id}")
        sem = asyncio.Semaphore(self.concurrency)
        queue: asyncio.Queue = asyncio.Queue()
        for item in accepted:
            task = asyncio.create_task(self._process_one(sem, queue, user_id, item))
            _inflight.add(task)
            task.add_done_callback(_inflight.discard)

        remaining = len(accepted)
        while remaining:
            event = await queue.get()
            if event.is_terminal:
                remaining -= 1
            yield event

    async def run_to_completion(self, user_id: UUID, files: Sequence[BatchFile]) -> BatchReport:
        report = BatchReport(total=len(files))
        async for event in self.run(user_id, files):
            if event.status == "completed":
                report.succeeded += 1
                report.results.append({
                    "client_id": event.client_id,
                    "filename": event.filename,
                    "document_id": event.document_id,
                    "scan_result_id": event.scan_result_id,
                })
            elif event.status == "failed":
                report.failed += 1
                report.errors.append({
                    "client_id": event.client_id,
                    "filename": event.filename,
                    "error": event.error,
                })

        logger.info(f"Batch finished: {report.succeeded}/{report.total} succeeded")
        return report
