"""
Pipeline invocation endpoint
"""
from uuid import UUID

from fastapi import APIRouter, Depends

from docguard.api.v1.deps import get_current_user_id, get_pipeline_service
from docguard.api.v1.endpoints.documents import outcome_payload
from docguard.db.schemas import AnalyzeRequest, AnalyzeResponse
from docguard.services.pipeline_service import PipelineService

router = APIRouter()


@router.post("", response_model=AnalyzeResponse)
async def analyze_document(
    request: AnalyzeRequest,
    user_id: UUID = Depends(get_current_user_id),
    pipeline: PipelineService = Depends(get_pipeline_service),
):
    """
    Analyze an uploaded document.

    The stored blob is always used; `fileUrl`, `fileType` and `filename`
    are accepted for compatibility with existing clients and ignored.
    Errors: 401 unauthenticated, 404 not found or not owned, 409 already
    processing, 429 rate limited, 402 credits exhausted, 500 other failures.
    """
    outcome = await pipeline.analyze(user_id, request.documentId)
    return outcome_payload(outcome)
