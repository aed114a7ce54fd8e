"""
Notification Service

Creates and reads in-app notifications for dispute events and keeps each
user's notification settings.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import NotificationDB, NotificationSettingsDB
from ...models.workflow import NotificationType

DEFAULT_REMINDER_LEAD_DAYS = 5
MIN_REMINDER_LEAD_DAYS = 1
MAX_REMINDER_LEAD_DAYS = 30


class NotificationService:
    """Thin persistence helper around NotificationDB."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def create(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        dispute_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> NotificationDB:
        """Add a notification to the session. Caller commits."""
        notification = NotificationDB(
            id=str(uuid4()),
            user_id=user_id,
            dispute_id=dispute_id,
            type=notification_type,
            title=title,
            message=message,
            read=False,
            created_at=created_at or datetime.utcnow(),
        )
        self.db.add(notification)
        return notification

    def get_for_user(self, user_id: str, unread_only: bool = False) -> List[Dict[str, Any]]:
        query = self.db.query(NotificationDB).filter(NotificationDB.user_id == user_id)
        if unread_only:
            query = query.filter(NotificationDB.read.is_(False))
        notifications = query.order_by(NotificationDB.created_at.desc()).all()
        return [self.to_dict(n) for n in notifications]

    def mark_read(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        notification = self.db.query(NotificationDB).filter(
            NotificationDB.id == notification_id,
            NotificationDB.user_id == user_id,
        ).first()
        if not notification:
            return {"error": "Notification not found", "code": 404}

        notification.read = True
        self.db.commit()
        return self.to_dict(notification)

    def mark_all_read(self, user_id: str) -> Dict[str, Any]:
        updated = self.db.query(NotificationDB).filter(
            NotificationDB.user_id == user_id,
            NotificationDB.read.is_(False),
        ).update({NotificationDB.read: True}, synchronize_session=False)
        self.db.commit()
        return {"updated": updated}

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def _get_or_create_settings(self, user_id: str) -> NotificationSettingsDB:
        settings = self.db.query(NotificationSettingsDB).filter(
            NotificationSettingsDB.user_id == user_id
        ).first()
        if settings is None:
            settings = NotificationSettingsDB(
                user_id=user_id,
                email_enabled=True,
                in_app_enabled=True,
                reminder_lead_days=DEFAULT_REMINDER_LEAD_DAYS,
            )
            self.db.add(settings)
            self.db.commit()
        return settings

    def get_settings(self, user_id: str) -> Dict[str, Any]:
        """The user's settings, created with defaults on first read."""
        return self.settings_to_dict(self._get_or_create_settings(user_id))

    def update_settings(
        self,
        user_id: str,
        email_enabled: Optional[bool] = None,
        in_app_enabled: Optional[bool] = None,
        reminder_lead_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Partial update. Fields left as None keep their stored value."""
        if reminder_lead_days is not None \
                and not MIN_REMINDER_LEAD_DAYS <= reminder_lead_days <= MAX_REMINDER_LEAD_DAYS:
            return {
                "error": (
                    f"reminder_lead_days must be between {MIN_REMINDER_LEAD_DAYS} "
                    f"and {MAX_REMINDER_LEAD_DAYS}"
                ),
                "code": 400,
            }

        settings = self._get_or_create_settings(user_id)
        if email_enabled is not None:
            settings.email_enabled = email_enabled
        if in_app_enabled is not None:
            settings.in_app_enabled = in_app_enabled
        if reminder_lead_days is not None:
            settings.reminder_lead_days = reminder_lead_days

        self.db.commit()
        return self.settings_to_dict(settings)

    def get_settings_for_users(self, user_ids: List[str]) -> Dict[str, NotificationSettingsDB]:
        """Stored settings keyed by user id. Users without a row are absent."""
        if not user_ids:
            return {}
        rows = self.db.query(NotificationSettingsDB).filter(
            NotificationSettingsDB.user_id.in_(user_ids)
        ).all()
        return {row.user_id: row for row in rows}

    @staticmethod
    def settings_to_dict(settings: NotificationSettingsDB) -> Dict[str, Any]:
        return {
            "user_id": settings.user_id,
            "email_enabled": bool(settings.email_enabled),
            "in_app_enabled": bool(settings.in_app_enabled),
            "reminder_lead_days": settings.reminder_lead_days,
            "updated_at": settings.updated_at.isoformat() if settings.updated_at else None,
        }

    @staticmethod
    def to_dict(notification: NotificationDB) -> Dict[str, Any]:
        return {
            "id": notification.id,
            "dispute_id": notification.dispute_id,
            "type": notification.type.value,
            "title": notification.title,
            "message": notification.message,
            "read": bool(notification.read),
            "created_at": notification.created_at.isoformat() if notification.created_at else None,
        }
