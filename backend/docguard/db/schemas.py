"""
Pydantic validation schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID

from docguard.db.models import DocumentStatus, EntityType, NotificationType, ReviewStatus, RiskLevel, Severity

# ============================================================================
# Document Schemas
# ============================================================================

class DocumentResponse(BaseModel):
    id: UUID
    filename: str
    file_type: str
    file_size: int
    status: DocumentStatus
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    review_status: Optional[ReviewStatus] = None
    reviewed_at: Optional[datetime] = None
    reviewer_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DocumentListResponse(BaseModel):
    data: List[DocumentResponse]
    total: int


# ============================================================================
# Verdict Schemas
# ============================================================================

class FraudFlagResponse(BaseModel):
    id: UUID
    flag_type: str
    name: str
    description: str
    severity: Severity
    confidence: int
    evidence_reference: Optional[str] = None
    page_number: Optional[int] = None
    region_coords: Optional[Dict[str, float]] = None

    class Config:
        from_attributes = True


class ExtractedFieldResponse(BaseModel):
    id: UUID
    field_name: str
    field_value: Optional[str] = None
    confidence: Optional[int] = None

    class Config:
        from_attributes = True


class ScanResultResponse(BaseModel):
    id: UUID
    document_id: UUID
    overall_risk_score: int
    risk_level: RiskLevel
    document_type: Optional[str] = None
    raw_ocr_text: Optional[str] = None
    analysis_summary: Optional[str] = None
    passed_checks: List[str] = []
    is_degraded: bool = False
    created_at: datetime
    fraud_flags: List[FraudFlagResponse] = []
    extracted_fields: List[ExtractedFieldResponse] = []

    class Config:
        from_attributes = True


# ============================================================================
# Analysis Schemas
# ============================================================================

class AnalyzeRequest(BaseModel):
    """Pipeline invocation from the UI (field names match the web client)"""
    documentId: UUID
    fileUrl: Optional[str] = None
    fileType: Optional[str] = None
    filename: Optional[str] = None


class AnalysisSummary(BaseModel):
    overall_risk_score: int
    risk_level: RiskLevel
    document_type: Optional[str] = None
    fraud_flags_count: int
    passed_checks: List[str] = []
    analysis_summary: Optional[str] = None
    is_degraded: bool = False


class AnalyzeResponse(BaseModel):
    success: bool
    documentId: UUID
    scanResultId: Optional[UUID] = None
    analysis: Optional[AnalysisSummary] = None


# ============================================================================
# Review Schemas
# ============================================================================

class ReviewDecisionRequest(BaseModel):
    decision: ReviewStatus
    notes: Optional[str] = Field(None, max_length=5000)


class ReviewQueueItem(BaseModel):
    document_id: UUID
    scan_result_id: UUID
    filename: str
    document_type: Optional[str] = None
    overall_risk_score: int
    risk_level: RiskLevel
    created_at: datetime


# ============================================================================
# Notification Schemas
# ============================================================================

class EntityRefResponse(BaseModel):
    kind: Optional[EntityType] = None
    id: Optional[UUID] = None


class NotificationResponse(BaseModel):
    id: UUID
    type: NotificationType
    title: str
    message: str
    read: bool
    entity: EntityRefResponse
    created_at: datetime


class NotificationListResponse(BaseModel):
    data: List[NotificationResponse]
    unread_count: int


# ============================================================================
# Batch Schemas
# ============================================================================

class BatchReportResponse(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
