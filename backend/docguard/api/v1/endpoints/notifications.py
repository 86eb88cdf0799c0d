"""
Notification endpoints
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from docguard.api.v1.deps import get_current_user_id, get_db
from docguard.db.schemas import EntityRefResponse, NotificationListResponse, NotificationResponse
from docguard.services.notification_service import EntityRef, NotificationService

router = APIRouter()


def _to_response(notification) -> dict:
    entity = EntityRef.of(notification)
    return NotificationResponse(
        id=notification.id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        read=notification.read,
        entity=EntityRefResponse(kind=entity.kind, id=entity.id),
        created_at=notification.created_at,
    ).model_dump(mode="json")


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    notifications = NotificationService.list_notifications(db, user_id, limit=limit)
    return {
        "data": [_to_response(n) for n in notifications],
        "unread_count": NotificationService.unread_count(db, user_id),
    }


@router.post("/read-all")
def mark_all_read(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    updated = NotificationService.mark_all_as_read(db, user_id)
    return {"updated": updated}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    if not NotificationService.mark_as_read(db, user_id, notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return {"message": "Notification marked as read"}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    if not NotificationService.delete_notification(db, user_id, notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return {"message": "Notification deleted"}
