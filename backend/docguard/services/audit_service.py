# docguard/services/audit_service.py

import asyncio
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from docguard.core.logger import logger
from docguard.db.database import SessionLocal
from docguard.db.models import AuditAction, AuditLog, ReviewStatus


class AuditService:
    """
    Append-only audit trail stored in the `audit_logs` table.

    Every entry is written in its own session so a failing audit write can
    never roll back the caller's work. Failures are logged and dropped.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    async def log(
        self,
        user_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        await asyncio.to_thread(self._write, user_id, action, entity_type, entity_id, metadata)

    def _write(
        self,
        user_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: Optional[UUID],
        metadata: Optional[Dict[str, Any]],
    ) -> None:
        db = None
        try:
            db = self.session_factory()
            db.add(AuditLog(
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=metadata or {},
            ))
            db.commit()

        except Exception as e:
            if db is not None:
                db.rollback()
            logger.error(f"Failed to write audit entry {action.value}: {str(e)}")

        finally:
            if db is not None:
                db.close()

    async def log_document_upload(self, user_id: UUID, document_id: UUID, filename: str, file_size: int):
        await self.log(
            user_id,
            AuditAction.document_upload,
            "document",
            document_id,
            {"filename": filename, "file_size": file_size},
        )

    async def log_document_analyze(
        self,
        user_id: UUID,
        document_id: UUID,
        scan_result_id: UUID,
        risk_score: int,
        risk_level: str,
    ):
        await self.log(
            user_id,
            AuditAction.document_analyze,
            "document",
            document_id,
            {"scan_result_id": str(scan_result_id), "risk_score": risk_score, "risk_level": risk_level},
        )

    async def log_document_delete(self, user_id: UUID, document_id: UUID, filename: str):
        await self.log(user_id, AuditAction.document_delete, "document", document_id, {"filename": filename})

    async def log_document_review(
        self,
        user_id: UUID,
        document_id: UUID,
        decision: ReviewStatus,
        notes: Optional[str] = None,
    ):
        action = AuditAction.document_verify if decision == ReviewStatus.verified else AuditAction.document_reject
        await self.log(user_id, action, "document", document_id, {"notes": notes} if notes else {})

    async def log_report_export(self, user_id: UUID, scan_result_id: UUID, report_format: str = "json"):
        await self.log(
            user_id,
            AuditAction.report_export,
            "scan_result",
            scan_result_id,
            {"format": report_format},
        )


# Singleton instance
audit_service = AuditService()
