"""
Notification API Routes

In-app notifications for dispute events and deadline reminders, plus the
user's notification settings.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..services.disputes import NotificationService


router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationSettingsRequest(BaseModel):
    email_enabled: Optional[bool] = None
    in_app_enabled: Optional[bool] = None
    reminder_lead_days: Optional[int] = None


@router.get("", response_model=dict)
async def list_notifications(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    service = NotificationService(db)
    notifications = service.get_for_user(current_user.id)
    return {"count": len(notifications), "notifications": notifications}


@router.get("/unread", response_model=dict)
async def list_unread_notifications(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    service = NotificationService(db)
    notifications = service.get_for_user(current_user.id, unread_only=True)
    return {"count": len(notifications), "notifications": notifications}


@router.post("/read-all", response_model=dict)
async def mark_all_read(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    service = NotificationService(db)
    return service.mark_all_read(current_user.id)


@router.post("/{notification_id}/read", response_model=dict)
async def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    service = NotificationService(db)
    result = service.mark_read(notification_id, current_user.id)

    if "error" in result:
        raise HTTPException(status_code=result["code"], detail=result["error"])

    return result


@router.get("/settings", response_model=dict)
async def get_notification_settings(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """Current settings; defaults are stored on first read."""
    service = NotificationService(db)
    return service.get_settings(current_user.id)


@router.patch("/settings", response_model=dict)
async def update_notification_settings(
    request: NotificationSettingsRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    Partial update. reminder_lead_days sets how many days before a response
    deadline the reminder scan starts notifying.
    """
    service = NotificationService(db)
    result = service.update_settings(
        current_user.id,
        email_enabled=request.email_enabled,
        in_app_enabled=request.in_app_enabled,
        reminder_lead_days=request.reminder_lead_days,
    )

    if "error" in result:
        raise HTTPException(status_code=result["code"], detail=result["error"])

    return result
