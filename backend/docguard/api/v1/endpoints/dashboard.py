"""
Dashboard statistics endpoints
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from docguard.api.v1.deps import get_current_user_id, get_db
from docguard.services import analytics_service

router = APIRouter()


@router.get("/stats")
def get_dashboard_stats(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Total scans, average risk, high-risk count and scans in the last 7 days
    """
    return analytics_service.quick_stats(db, user_id)


@router.get("/trends")
def get_dashboard_trends(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return analytics_service.historical_trends(db, user_id)
