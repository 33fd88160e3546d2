from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from needflow.api import deps
from needflow.db.session import get_db
from needflow.models.user import User
from needflow.schemas.notification import NotificationResponse
from needflow.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_user),
):
    return NotificationService.list_for_user(db, current_user.id, unread_only=unread_only)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_user),
):
    return NotificationService.mark_read(db, notification_id, current_user.id)
