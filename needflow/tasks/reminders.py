"""
Reminder task: nudges approvers whose step has been pending past the staleness window.
Scheduled by celery beat (see celery_app.py).
"""
import logging

from celery import shared_task

from needflow.db.session import SessionLocal
from needflow.services.notification_service import NotificationDispatcher
from needflow.services.reminder_service import ReminderSweeper
from needflow.services.request_store import SqlRequestStore

logger = logging.getLogger(__name__)


@shared_task
def send_pending_reminders():
    db = SessionLocal()
    try:
        result = ReminderSweeper(SqlRequestStore(db)).run(NotificationDispatcher(SessionLocal))
        return result
    except Exception:
        logger.exception("Reminder sweep failed")
        db.rollback()
        return {"reminded": 0, "steps": [], "error": True}
    finally:
        db.close()
