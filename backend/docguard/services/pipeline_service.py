"""
Analysis pipeline.

Drives one document from upload to a stored verdict:

    intake   validate -> store blob -> Document(pending) -> audit
    analyze  pending -> processing -> download -> oracle -> parse
             -> verdict + completed (one transaction) -> notify -> audit

`status` only ever moves pending -> processing -> completed | failed, and
`completed` is written in the same transaction as the verdict so it always
implies a ScanResult. Any failure after `processing` lands the document in
`failed` with a human-readable reason; `retry` moves it back to `pending`.

Database work happens in short sessions that never span an await. The
blocking storage client and the heavier database stages run in worker
threads; the claim and the failure mark stay inline.
"""
from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docguard.core.config import settings
from docguard.core.logger import logger
from docguard.db.database import SessionLocal
from docguard.db.models import Document, DocumentStatus, NotificationType, ReviewStatus
from docguard.services.audit_service import AuditService
from docguard.services.document_service import DocumentService
from docguard.services.notification_service import EntityRef, NotificationService
from docguard.services.s3_service import build_storage_path
from docguard.services.validation_service import validate_file
from docguard.services.verdict_parser import Verdict, parse_verdict
from docguard.services.verdict_store import save_verdict
from docguard.utils.exceptions import (
    AnalysisInProgressError,
    DocGuardError,
    DocumentNotFoundError,
    FileValidationError,
    InvalidStateError,
    PersistenceError,
    StorageError,
)

StageCallback = Callable[[str], Awaitable[None]]

UNEXPECTED_FAILURE_MESSAGE = "AI analysis failed. Please try again."


@dataclass
class AnalysisOutcome:
    success: bool
    document_id: UUID
    scan_result_id: Optional[UUID] = None
    summary: Dict[str, Any] = field(default_factory=dict)


def summarize(verdict: Verdict) -> Dict[str, Any]:
    return {
        "overall_risk_score": verdict.overall_risk_score,
        "risk_level": verdict.risk_level,
        "document_type": verdict.document_type,
        "fraud_flags_count": len(verdict.fraud_flags),
        "passed_checks": list(verdict.passed_checks),
        "analysis_summary": verdict.analysis_summary,
        "is_degraded": verdict.is_degraded,
    }


def is_high_risk(verdict: Verdict) -> bool:
    return (
        verdict.risk_level in ("high", "critical")
        or verdict.overall_risk_score >= settings.HIGH_RISK_SCORE_THRESHOLD
    )


class PipelineService:
    """
    Orchestrates intake and analysis of documents.

    `storage` needs upload/download/delete/create_signed_url (sync);
    `oracle` needs an async `analyze(payload, mime_type) -> str`.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        storage=None,
        oracle=None,
        audit: Optional[AuditService] = None,
    ):
        if storage is None:
            from docguard.services.s3_service import s3_service as storage
        if oracle is None:
            from docguard.services.oracle_client import oracle_client as oracle
        self.session_factory = session_factory
        self.storage = storage
        self.oracle = oracle
        self.audit = audit or AuditService(session_factory)

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    @staticmethod
    async def _stage(on_stage: Optional[StageCallback], name: str) -> None:
        if on_stage is not None:
            await on_stage(name)

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def intake(
        self,
        user_id: UUID,
        filename: str,
        content_type: str,
        data: bytes,
        on_stage: Optional[StageCallback] = None,
    ) -> Document:
        """
        Validate, store and record an upload. Nothing touches storage
        unless validation passes.

        Raises:
            FileValidationError: the file broke an upload rule
            StorageError: the blob could not be stored
            PersistenceError: the record could not be written; the blob is removed
        """
        result = validate_file(content_type, len(data), filename)
        if not result.accepted:
            raise FileValidationError(result.reason)

        path = build_storage_path(user_id, filename)
        await self._stage(on_stage, "uploading")
        await asyncio.to_thread(self.storage.upload, path, data, content_type)
        await self._stage(on_stage, "uploaded")

        try:
            document = await asyncio.to_thread(self._record, user_id, filename, path, content_type, len(data))
        except SQLAlchemyError as e:
            logger.error(f"Failed to record upload {path}: {str(e)}")
            await self._discard_blob(path)
            raise PersistenceError("Failed to create document record") from e

        await self.audit.log_document_upload(user_id, document.id, filename, len(data))
        return document

    def _record(self, user_id: UUID, filename: str, path: str, content_type: str, file_size: int) -> Document:
        with self._session() as db:
            return DocumentService.create_document(db, {
                "user_id": user_id,
                "filename": filename,
                "file_path": path,
                "file_type": content_type,
                "file_size": file_size,
            })

    async def _discard_blob(self, path: str) -> None:
        """Best-effort removal of a blob that has no document record."""
        try:
            await asyncio.to_thread(self.storage.delete, path)
        except StorageError as e:
            logger.error(f"Could not remove orphaned blob {path}: {e.detail}")

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _claim(self, user_id: UUID, document_id: UUID) -> Dict[str, Any]:
        """Move an owned, pending document to processing."""
        with self._session() as db:
            document = db.query(Document).filter(
                Document.id == document_id,
                Document.user_id == user_id,
            ).with_for_update().first()

            if not document:
                raise DocumentNotFoundError(document_id)
            if document.status == DocumentStatus.processing:
                raise AnalysisInProgressError(document_id)
            if document.status != DocumentStatus.pending:
                raise InvalidStateError(
                    f"Document cannot be analyzed while {document.status.value}"
                )

            DocumentService.set_status(db, document, DocumentStatus.processing)
            return {
                "file_path": document.file_path,
                "file_type": document.file_type,
                "filename": document.filename,
            }

    def _complete(self, document_id: UUID, verdict: Verdict) -> UUID:
        """Store the verdict and mark the document completed in one commit."""
        with self._session() as db:
            try:
                document = db.get(Document, document_id)
                scan_result = save_verdict(db, document_id, verdict, commit=False)
                scan_result_id = scan_result.id

                if verdict.overall_risk_score >= settings.REVIEW_RISK_THRESHOLD:
                    document.review_status = ReviewStatus.pending

                DocumentService.set_status(db, document, DocumentStatus.completed, commit=False)
                db.commit()
                return scan_result_id

            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to complete document {document_id}: {str(e)}")
                raise PersistenceError("Failed to store scan result") from e

    def _fail(self, document_id: UUID, error: DocGuardError) -> None:
        """Mark a document failed. Only a document still processing is touched."""
        with self._session() as db:
            try:
                document = db.get(Document, document_id)
                if document is not None and document.status == DocumentStatus.processing:
                    DocumentService.set_status(
                        db,
                        document,
                        DocumentStatus.failed,
                        error_message=error.detail,
                        error_code=error.code,
                    )
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Could not mark document {document_id} as failed: {str(e)}")

    def _notify_completion(self, user_id: UUID, filename: str, scan_result_id: UUID, verdict: Verdict) -> None:
        score = verdict.overall_risk_score
        if is_high_risk(verdict):
            kind = NotificationType.high_risk
            title = "High Risk Document Detected"
            message = (
                f'Your document "{filename}" has been flagged with a risk score of {score}. '
                f"Please review the analysis results."
            )
        else:
            kind = NotificationType.analysis_complete
            title = "Analysis Complete"
            message = f'Analysis of "{filename}" completed with a risk score of {score}.'

        with self._session() as db:
            NotificationService.notify(db, user_id, kind, title, message, EntityRef.scan_result(scan_result_id))

    async def analyze(self, user_id: UUID, document_id: UUID) -> AnalysisOutcome:
        """
        Run the oracle on a pending document and store the verdict.

        Raises:
            DocumentNotFoundError: missing or owned by someone else
            AnalysisInProgressError: the document is already processing
            InvalidStateError: the document is not pending
            StorageError / OracleError / PersistenceError: the document
                has been marked failed with the error's message

        If the call is cancelled or interrupted mid-flight the document is
        marked failed with code `interrupted` so it can be retried.
        """
        # No await between the claim and the guarded block below
        info = self._claim(user_id, document_id)
        logger.info(f"Analyzing document {document_id} ({info['filename']})")

        try:
            payload = await asyncio.to_thread(self.storage.download, info["file_path"])
            raw_text = await self.oracle.analyze(payload, info["file_type"])
            verdict = parse_verdict(raw_text)
            scan_result_id = await asyncio.to_thread(self._complete, document_id, verdict)

        except DocGuardError as e:
            logger.warning(f"Analysis of document {document_id} failed: {e.code}: {e.detail}")
            self._fail(document_id, e)
            raise

        except Exception as e:
            logger.exception(f"Unexpected error analyzing document {document_id}")
            error = DocGuardError(UNEXPECTED_FAILURE_MESSAGE, code="internal_error", retryable=True)
            self._fail(document_id, error)
            raise error from e

        except BaseException:
            logger.warning(f"Analysis of document {document_id} was interrupted")
            self._fail(
                document_id,
                DocGuardError(UNEXPECTED_FAILURE_MESSAGE, code="interrupted", retryable=True),
            )
            raise

        await asyncio.to_thread(self._notify_completion, user_id, info["filename"], scan_result_id, verdict)
        await self.audit.log_document_analyze(
            user_id, document_id, scan_result_id, verdict.overall_risk_score, verdict.risk_level
        )

        logger.info(
            f"Document {document_id} completed: score={verdict.overall_risk_score} "
            f"level={verdict.risk_level} degraded={verdict.is_degraded}"
        )
        return AnalysisOutcome(
            success=True,
            document_id=document_id,
            scan_result_id=scan_result_id,
            summary=summarize(verdict),
        )

    async def retry(self, user_id: UUID, document_id: UUID) -> AnalysisOutcome:
        """
        Re-run a failed analysis against the already stored blob.
        """
        with self._session() as db:
            document = DocumentService.get_owned_document(db, document_id, user_id)
            if not document:
                raise DocumentNotFoundError(document_id)
            if document.status == DocumentStatus.processing:
                raise AnalysisInProgressError(document_id)
            if document.status != DocumentStatus.failed:
                raise InvalidStateError("Only failed documents can be retried")
            DocumentService.set_status(db, document, DocumentStatus.pending)

        logger.info(f"Retrying analysis of document {document_id}")
        return await self.analyze(user_id, document_id)

    async def process_upload(
        self,
        user_id: UUID,
        filename: str,
        content_type: str,
        data: bytes,
        on_stage: Optional[StageCallback] = None,
    ) -> AnalysisOutcome:
        """Intake followed by analysis, the single-document flow."""
        document = await self.intake(user_id, filename, content_type, data, on_stage=on_stage)
        await self._stage(on_stage, "analyzing")
        return await self.analyze(user_id, document.id)

    # ------------------------------------------------------------------
    # Document access
    # ------------------------------------------------------------------

    async def view_url(self, user_id: UUID, document_id: UUID) -> str:
        with self._session() as db:
            document = DocumentService.get_owned_document(db, document_id, user_id)
            if not document:
                raise DocumentNotFoundError(document_id)
            path = document.file_path
        return await asyncio.to_thread(
            self.storage.create_signed_url, path, settings.SIGNED_URL_TTL_SECONDS
        )

    async def delete(self, user_id: UUID, document_id: UUID) -> None:
        """
        Remove the blob, then the record and its verdicts.
        """
        with self._session() as db:
            document = DocumentService.get_owned_document(db, document_id, user_id)
            if not document:
                raise DocumentNotFoundError(document_id)
            if document.status == DocumentStatus.processing:
                raise AnalysisInProgressError(document_id)
            path, filename = document.file_path, document.filename

        await asyncio.to_thread(self.storage.delete, path)

        with self._session() as db:
            document = DocumentService.get_owned_document(db, document_id, user_id)
            if document is not None:
                DocumentService.delete_document(db, document)

        await self.audit.log_document_delete(user_id, document_id, filename)
