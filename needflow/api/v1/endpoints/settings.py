from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from needflow.api import deps
from needflow.db.session import get_db
from needflow.services.email_service import EmailService
from needflow.services.settings_service import NotificationSettings

router = APIRouter(dependencies=[Depends(deps.require_admin)])


class SettingUpdate(BaseModel):
    settings: Dict[str, Any]


class EmailTestRequest(BaseModel):
    to_email: str


@router.get("/general")
def get_settings(db: Session = Depends(get_db)):
    """Notification settings; secrets are masked."""
    return NotificationSettings.masked(db)


@router.put("/general")
def update_settings(payload: SettingUpdate, db: Session = Depends(get_db)):
    return {"updated": NotificationSettings.update(db, payload.settings)}


@router.post("/test-email")
def send_test_email(payload: EmailTestRequest, db: Session = Depends(get_db)):
    return EmailService.send_email(db, payload.to_email, "[needflow] Test email", "SMTP settings are working.")
