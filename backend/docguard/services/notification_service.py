# docguard/services/notification_service.py

from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from docguard.core.logger import logger
from docguard.db.models import EntityType, Notification, NotificationType


@dataclass(frozen=True)
class EntityRef:
    """
    What a notification points at. `kind` is None for notifications that
    reference nothing, in which case `id` is None as well.
    """
    kind: Optional[EntityType] = None
    id: Optional[UUID] = None

    @classmethod
    def scan_result(cls, scan_result_id: UUID) -> "EntityRef":
        return cls(EntityType.scan_result, scan_result_id)

    @classmethod
    def document(cls, document_id: UUID) -> "EntityRef":
        return cls(EntityType.document, document_id)

    @classmethod
    def of(cls, notification: Notification) -> "EntityRef":
        if notification.entity_type is None or notification.entity_id is None:
            return cls()
        return cls(notification.entity_type, notification.entity_id)


class NotificationService:
    """
    In-app notifications. Creating one is a side effect of other
    workflows and must never fail them.
    """

    @staticmethod
    def notify(
        db: Session,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        entity: Optional[EntityRef] = None,
    ) -> Optional[Notification]:
        entity = entity or EntityRef()
        try:
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                read=False,
                entity_type=entity.kind,
                entity_id=entity.id,
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)
            return notification

        except Exception as e:
            db.rollback()
            logger.error(f"Failed to create {type.value} notification for {user_id}: {str(e)}")
            return None

    @staticmethod
    def list_notifications(db: Session, user_id: UUID, limit: int = 20) -> List[Notification]:
        return db.query(Notification).filter(
            Notification.user_id == user_id
        ).order_by(Notification.created_at.desc()).limit(limit).all()

    @staticmethod
    def unread_count(db: Session, user_id: UUID) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        ).count()

    @staticmethod
    def mark_as_read(db: Session, user_id: UUID, notification_id: UUID) -> bool:
        """
        Returns False when the notification does not exist for this user.
        """
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).first()
        if not notification:
            return False
        notification.read = True
        db.commit()
        return True

    @staticmethod
    def mark_all_as_read(db: Session, user_id: UUID) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        ).update({Notification.read: True}, synchronize_session=False)
        db.commit()
        return updated

    @staticmethod
    def delete_notification(db: Session, user_id: UUID, notification_id: UUID) -> bool:
        deleted = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).delete(synchronize_session=False)
        db.commit()
        return deleted > 0
