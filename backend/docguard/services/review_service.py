# docguard/services/review_service.py

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from docguard.core.config import settings
from docguard.core.logger import logger
from docguard.db.models import Document, NotificationType, ReviewStatus, ScanResult
from docguard.services.notification_service import EntityRef, NotificationService
from docguard.utils.exceptions import DocumentNotFoundError, InvalidReviewTransitionError

REVIEW_DECISIONS = (ReviewStatus.verified, ReviewStatus.rejected)


class ReviewService:
    """
    Human review of high-risk verdicts.

    review_status: pending -> verified | rejected, terminal once decided.
    Independent of the document's pipeline status.
    """

    @staticmethod
    def get_review_queue(db: Session, user_id: UUID) -> List[Tuple[ScanResult, Document]]:
        """
        Latest verdict of each document awaiting review whose score is at
        or above the review threshold, highest score first.
        """
        latest = db.query(
            ScanResult.document_id.label("document_id"),
            func.max(ScanResult.created_at).label("created_at"),
        ).group_by(ScanResult.document_id).subquery()

        return db.query(ScanResult, Document).join(
            Document, Document.id == ScanResult.document_id
        ).join(
            latest,
            (latest.c.document_id == ScanResult.document_id)
            & (latest.c.created_at == ScanResult.created_at),
        ).filter(
            Document.user_id == user_id,
            Document.review_status == ReviewStatus.pending,
            ScanResult.overall_risk_score >= settings.REVIEW_RISK_THRESHOLD,
        ).order_by(ScanResult.overall_risk_score.desc(), ScanResult.created_at.desc()).all()

    @staticmethod
    def review_document(
        db: Session,
        user_id: UUID,
        document_id: UUID,
        decision: ReviewStatus,
        notes: Optional[str] = None,
    ) -> Document:
        """
        Record a review decision.

        Raises:
            DocumentNotFoundError: missing or not owned
            InvalidReviewTransitionError: not awaiting review, or the
                decision is not verified/rejected
        """
        if decision not in REVIEW_DECISIONS:
            raise InvalidReviewTransitionError(f"Unsupported review decision: {decision}")

        document = db.query(Document).filter(
            Document.id == document_id,
            Document.user_id == user_id,
        ).first()
        if not document:
            raise DocumentNotFoundError(document_id)

        if document.review_status != ReviewStatus.pending:
            current = document.review_status.value if document.review_status else "not under review"
            raise InvalidReviewTransitionError(f"Document is {current}; only pending reviews can be decided")

        document.review_status = decision
        document.reviewed_by = user_id
        document.reviewed_at = datetime.utcnow()
        document.reviewer_notes = notes
        db.commit()
        db.refresh(document)

        logger.info(f"Document {document_id} review -> {decision.value}")

        if decision == ReviewStatus.verified:
            NotificationService.notify(
                db, user_id, NotificationType.verified, "Document Verified",
                f'"{document.filename}" was marked as verified.',
                EntityRef.document(document.id),
            )
        else:
            NotificationService.notify(
                db, user_id, NotificationType.rejected, "Document Rejected",
                f'"{document.filename}" was marked as rejected.',
                EntityRef.document(document.id),
            )

        return document
