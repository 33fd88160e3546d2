from celery import Celery

from needflow.core import config
from needflow.core.logging_config import configure_logging

configure_logging()

celery_app = Celery(
    "needflow",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
    include=["needflow.tasks.reminders"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    worker_hijack_root_logger=False,
    beat_schedule={
        "send-pending-approval-reminders": {
            "task": "needflow.tasks.reminders.send_pending_reminders",
            "schedule": config.REMINDER_SWEEP_INTERVAL_SECONDS,
        },
    },
)
