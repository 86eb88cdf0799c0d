"""
Verdict endpoints: detail, comparison, overlay geometry and report export
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from docguard.api.v1.deps import get_audit_service, get_current_user_id, get_db
from docguard.db.models import Document, ScanResult
from docguard.db.schemas import ScanResultResponse
from docguard.services import compare_service, overlay_service
from docguard.services.report_service import build_report
from docguard.utils.exceptions import ScanResultNotFoundError

router = APIRouter()


def _owned_scan(db: Session, scan_result_id: UUID, user_id: UUID):
    row = db.query(ScanResult, Document).join(
        Document, Document.id == ScanResult.document_id
    ).filter(
        ScanResult.id == scan_result_id,
        Document.user_id == user_id,
    ).first()
    if not row:
        raise ScanResultNotFoundError(scan_result_id)
    return row


@router.get("/compare")
def compare_scan_results(
    left: UUID = Query(..., description="Scan result shown on the left"),
    right: UUID = Query(..., description="Scan result shown on the right"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Compare two of the caller's verdicts field by field
    """
    left_scan, left_document = _owned_scan(db, left, user_id)
    right_scan, right_document = _owned_scan(db, right, user_id)
    return {"data": compare_service.compare_scans(left_scan, left_document, right_scan, right_document)}


@router.get("/{scan_result_id}")
def get_scan_result(
    scan_result_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    scan_result, document = _owned_scan(db, scan_result_id, user_id)
    detected, low_confidence = overlay_service.group_by_confidence(scan_result.fraud_flags)
    return {
        "data": ScanResultResponse.model_validate(scan_result).model_dump(mode="json"),
        "filename": document.filename,
        "risk_state": overlay_service.risk_state(scan_result.overall_risk_score),
        "detected_flag_ids": [str(f.id) for f in detected],
        "low_confidence_flag_ids": [str(f.id) for f in low_confidence],
    }


@router.get("/{scan_result_id}/overlay")
def get_overlay(
    scan_result_id: UUID,
    width: float = Query(..., gt=0, description="Natural image width in pixels"),
    height: float = Query(..., gt=0, description="Natural image height in pixels"),
    zoom: float = Query(1.0),
    selected: Optional[str] = Query(None, description="Selected fraud flag id"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Pixel geometry for drawing the suspicious regions over the page image
    """
    scan_result, _ = _owned_scan(db, scan_result_id, user_id)
    layout = overlay_service.build_overlay(
        scan_result.fraud_flags, width, height, zoom=zoom, selected_flag_id=selected
    )
    return layout.to_dict()


@router.get("/{scan_result_id}/report")
async def export_report(
    scan_result_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    audit=Depends(get_audit_service),
):
    scan_result, document = _owned_scan(db, scan_result_id, user_id)
    report = build_report(scan_result, document)
    await audit.log_report_export(user_id, scan_result.id)
    return report
