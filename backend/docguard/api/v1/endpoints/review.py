"""
Human review endpoints
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from docguard.api.v1.deps import get_audit_service, get_current_user_id, get_db
from docguard.db.schemas import DocumentResponse, ReviewDecisionRequest, ReviewQueueItem
from docguard.services.review_service import ReviewService

router = APIRouter()


@router.get("/queue")
def get_review_queue(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    High-risk documents awaiting a decision, highest score first
    """
    rows = ReviewService.get_review_queue(db, user_id)
    items = [
        ReviewQueueItem(
            document_id=document.id,
            scan_result_id=scan_result.id,
            filename=document.filename,
            document_type=scan_result.document_type,
            overall_risk_score=scan_result.overall_risk_score,
            risk_level=scan_result.risk_level,
            created_at=scan_result.created_at,
        ).model_dump(mode="json")
        for scan_result, document in rows
    ]
    return {"data": items, "total": len(items)}


@router.post("/{document_id}")
async def review_document(
    document_id: UUID,
    request: ReviewDecisionRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    audit=Depends(get_audit_service),
):
    document = ReviewService.review_document(db, user_id, document_id, request.decision, request.notes)
    await audit.log_document_review(user_id, document.id, request.decision, request.notes)
    return {"data": DocumentResponse.model_validate(document).model_dump(mode="json")}
