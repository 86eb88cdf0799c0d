# docguard/services/document_service.py

from datetime import datetime, timedelta
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from docguard.core.logger import logger
from docguard.db.models import Document, DocumentStatus, RiskLevel, ScanResult

DateRange = Literal["all", "week", "month", "year"]
SortBy = Literal["date", "risk", "name"]
SortOrder = Literal["asc", "desc"]

DATE_RANGE_DAYS = {"week": 7, "month": 30, "year": 365}


class DocumentService:
    """
    Service layer for document records.
    """

    @staticmethod
    def create_document(db: Session, doc_data: Dict[str, Any]) -> Document:
        """
        Create a new document record in `pending`.
        """
        try:
            document = Document(**doc_data)
            document.status = DocumentStatus.pending
            db.add(document)
            db.commit()
            db.refresh(document)

            logger.info(f"Document created: {document.file_path}")
            return document

        except Exception as e:
            db.rollback()
            logger.error(f"Failed to create document: {str(e)}")
            raise

    @staticmethod
    def get_owned_document(db: Session, document_id: UUID, user_id: UUID) -> Optional[Document]:
        """
        Fetch a document only if `user_id` owns it. Missing and foreign
        documents both return None.
        """
        return db.query(Document).filter(
            Document.id == document_id,
            Document.user_id == user_id,
        ).first()

    @staticmethod
    def set_status(
        db: Session,
        document: Document,
        status: DocumentStatus,
        error_message: Optional[str] = None,
        error_code: Optional[str] = None,
        commit: bool = True,
    ) -> Document:
        """
        Move a document through its lifecycle. Error details are cleared
        on every transition except into `failed`.
        """
        document.status = status
        if status == DocumentStatus.failed:
            document.error_message = error_message
            document.error_code = error_code
        else:
            document.error_message = None
            document.error_code = None
        document.updated_at = datetime.utcnow()

        if commit:
            db.commit()
            db.refresh(document)

        logger.info(f"Document {document.id} -> {status.value}")
        return document

    @staticmethod
    def list_documents(
        db: Session,
        user_id: UUID,
        status: Optional[DocumentStatus] = None,
        search: Optional[str] = None,
        risk_levels: Optional[List[RiskLevel]] = None,
        date_range: DateRange = "all",
        sort_by: SortBy = "date",
        sort_order: SortOrder = "desc",
        skip: int = 0,
        limit: int = 50,
    ) -> List[Document]:
        """
        List a user's documents.

        `search` matches filename or any detected document type,
        case-insensitively. `risk_levels` and the `risk` sort use the
        document's latest verdict; documents without one are dropped by a
        risk filter and sort last by risk. `date_range` keeps uploads from
        the last 7, 30 or 365 days.
        """
        query = db.query(Document).filter(Document.user_id == user_id)

        if status:
            query = query.filter(Document.status == status)

        if search:
            pattern = f"%{search.strip()}%"
            typed = select(ScanResult.document_id).where(
                ScanResult.document_type.ilike(pattern)
            ).correlate(None)
            query = query.filter(or_(Document.filename.ilike(pattern), Document.id.in_(typed)))

        if date_range != "all":
            cutoff = datetime.utcnow() - timedelta(days=DATE_RANGE_DAYS[date_range])
            query = query.filter(Document.created_at >= cutoff)

        if risk_levels or sort_by == "risk":
            latest = db.query(
                ScanResult.document_id.label("document_id"),
                func.max(ScanResult.created_at).label("created_at"),
            ).group_by(ScanResult.document_id).subquery()

            query = query.outerjoin(latest, latest.c.document_id == Document.id).outerjoin(
                ScanResult,
                (ScanResult.document_id == latest.c.document_id)
                & (ScanResult.created_at == latest.c.created_at),
            )
            if risk_levels:
                query = query.filter(ScanResult.risk_level.in_(risk_levels))

        if sort_by == "risk":
            key = ScanResult.overall_risk_score
        elif sort_by == "name":
            key = func.lower(Document.filename)
        else:
            key = Document.created_at
        key = key.asc() if sort_order == "asc" else key.desc()

        return query.order_by(
            key.nulls_last(), Document.created_at.desc()
        ).offset(skip).limit(limit).all()

    @staticmethod
    def latest_scan_result(db: Session, document_id: UUID) -> Optional[ScanResult]:
        return db.query(ScanResult).filter(
            ScanResult.document_id == document_id
        ).order_by(ScanResult.created_at.desc()).first()

    @staticmethod
    def delete_document(db: Session, document: Document) -> None:
        """
        Delete a document and, by cascade, its verdicts. The blob is
        removed by the caller.
        """
        try:
            db.delete(document)
            db.commit()
            logger.info(f"Document deleted: {document.file_path}")

        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete document: {str(e)}")
            raise
