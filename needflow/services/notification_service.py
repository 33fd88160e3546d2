from __future__ import annotations

import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from needflow.core.exceptions import Forbidden, NotFound
from needflow.db.session import SessionLocal
from needflow.models.notification import Notification
from needflow.models.user import User
from needflow.services.email_service import EmailService

logger = logging.getLogger(__name__)

EMAIL_SUBJECT = "[needflow] Approval workflow notification"


class NotificationDispatcher:
    """
    Best-effort delivery of workflow notifications.

    Runs after the workflow transaction committed, in its own session; a failure
    is logged and never propagated to the caller.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def notify(self, user_id: int, request_id: int, message: str) -> Optional[Notification]:
        db = self.session_factory()
        try:
            notification = Notification(user_id=user_id, request_id=request_id, message=message, is_read=False)
            db.add(notification)
            db.commit()
            db.refresh(notification)
            self._send_email(db, user_id, message)
            return notification
        except Exception:
            logger.exception(
                "Notification dispatch failed",
                extra={"request_id_db": request_id, "actor_id": user_id},
            )
            db.rollback()
            return None
        finally:
            db.close()

    @staticmethod
    def _send_email(db: Session, user_id: int, message: str) -> None:
        if not EmailService.is_enabled(db):
            return
        user = db.query(User).filter(User.id == user_id).first()
        if user is None or not user.email:
            return
        res = EmailService.send_email(db, user.email, EMAIL_SUBJECT, message)
        if not res.get("success"):
            logger.warning("Notification email not sent: %s", res.get("error"), extra={"actor_id": user_id})


class NotificationService:
    @staticmethod
    def list_for_user(db: Session, user_id: int, unread_only: bool = False) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()

    @staticmethod
    def mark_read(db: Session, notification_id: int, user_id: int) -> Notification:
        notification = db.query(Notification).filter(Notification.id == notification_id).first()
        if notification is None:
            raise NotFound("Notification not found")
        if notification.user_id != user_id:
            raise Forbidden("Not enough permissions")
        notification.is_read = True
        db.commit()
        db.refresh(notification)
        return notification
