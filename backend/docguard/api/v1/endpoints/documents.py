"""
Document endpoints: upload, listing, access and retry
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from docguard.api.v1.deps import get_current_user_id, get_db, get_pipeline_service
from docguard.core.config import settings
from docguard.db.models import DocumentStatus, RiskLevel
from docguard.db.schemas import AnalyzeResponse, DocumentListResponse, DocumentResponse, ScanResultResponse
from docguard.services.document_service import DateRange, DocumentService, SortBy, SortOrder
from docguard.services.pipeline_service import AnalysisOutcome, PipelineService
from docguard.utils.exceptions import DocGuardError

router = APIRouter()


def outcome_payload(outcome: AnalysisOutcome) -> dict:
    return {
        "success": outcome.success,
        "documentId": str(outcome.document_id),
        "scanResultId": str(outcome.scan_result_id) if outcome.scan_result_id else None,
        "analysis": outcome.summary,
    }


@router.post("/upload", response_model=AnalyzeResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    user_id: UUID = Depends(get_current_user_id),
    pipeline: PipelineService = Depends(get_pipeline_service),
):
    """
    Upload a document and analyze it.

    Validation failures return 400 before anything is stored. If the
    upload succeeds but analysis fails, the error response still carries
    `documentId` so the client can retry.
    """
    data = await file.read()
    content_type = file.content_type or "application/octet-stream"

    document = await pipeline.intake(user_id, file.filename or "document", content_type, data)

    try:
        outcome = await pipeline.analyze(user_id, document.id)
    except DocGuardError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={**e.to_dict(), "documentId": str(document.id)},
        )

    return outcome_payload(outcome)


@router.get("", response_model=DocumentListResponse)
def list_documents(
    status_filter: Optional[DocumentStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    risk_level: Optional[List[RiskLevel]] = Query(None),
    date_range: DateRange = Query("all"),
    sort_by: SortBy = Query("date"),
    sort_order: SortOrder = Query("desc"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    List the caller's documents, newest first unless another sort is asked
    for. `risk_level` may be repeated to match several levels.
    """
    documents = DocumentService.list_documents(
        db,
        user_id,
        status=status_filter,
        search=search,
        risk_levels=risk_level,
        date_range=date_range,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=skip,
        limit=limit,
    )
    return {
        "data": [DocumentResponse.model_validate(d).model_dump(mode="json") for d in documents],
        "total": len(documents),
    }


@router.get("/{document_id}")
def get_document(
    document_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Document with its latest verdict, if any
    """
    document = DocumentService.get_owned_document(db, document_id, user_id)
    if not document:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found or access denied"
        )

    scan_result = DocumentService.latest_scan_result(db, document.id)
    return {
        "data": {
            "document": DocumentResponse.model_validate(document).model_dump(mode="json"),
            "scan_result": (
                ScanResultResponse.model_validate(scan_result).model_dump(mode="json")
                if scan_result else None
            ),
        }
    }


@router.get("/{document_id}/view-url")
async def get_view_url(
    document_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    pipeline: PipelineService = Depends(get_pipeline_service),
):
    """
    Time-limited URL for viewing the original file
    """
    url = await pipeline.view_url(user_id, document_id)
    return {"url": url, "expires_in": settings.SIGNED_URL_TTL_SECONDS}


@router.delete("/{document_id}")
async def delete_document(
    document_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    pipeline: PipelineService = Depends(get_pipeline_service),
):
    await pipeline.delete(user_id, document_id)
    return {"message": "Document deleted successfully"}


@router.post("/{document_id}/retry", response_model=AnalyzeResponse)
async def retry_document(
    document_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    pipeline: PipelineService = Depends(get_pipeline_service),
):
    """
    Re-run analysis for a failed document
    """
    outcome = await pipeline.retry(user_id, document_id)
    return outcome_payload(outcome)
