import logging
from typing import Any, Dict, Iterable

from sqlalchemy.orm import Session

from needflow.core.field_encryption import open_secret, seal_secret
from needflow.models.settings import SystemSetting

logger = logging.getLogger(__name__)

DEFAULTS = {
    "notification_email_enabled": "false",
    "smtp_host": "localhost",
    "smtp_port": "587",
    "smtp_user": "",
    "smtp_password": "",
    "smtp_from": "needflow@localhost",
}
SECRET_KEYS = {"smtp_password"}
MASK = "********"


class NotificationSettings:
    """
    Email notification settings stored as SystemSetting rows.
    Only SECRET_KEYS are sealed at rest; every other value is stored in clear.
    """

    @staticmethod
    def get_value(db: Session, key: str, default: str = "") -> str:
        setting = db.query(SystemSetting).filter(SystemSetting.key == key).first()
        if setting is None or setting.value is None:
            return default
        if key in SECRET_KEYS:
            plain = open_secret(setting.value, key)
            return default if plain is None else plain
        return setting.value

    @staticmethod
    def set_value(db: Session, key: str, value: Any) -> SystemSetting:
        stored = str(value)
        if key in SECRET_KEYS:
            stored = seal_secret(stored)
        setting = db.query(SystemSetting).filter(SystemSetting.key == key).first()
        if setting is None:
            setting = SystemSetting(key=key, value=stored, category="Notifications")
            db.add(setting)
        else:
            setting.value = stored
        return setting

    @staticmethod
    def masked(db: Session) -> Dict[str, str]:
        out = {k: NotificationSettings.get_value(db, k, v) for k, v in DEFAULTS.items()}
        for k in SECRET_KEYS:
            if out.get(k):
                out[k] = MASK
        return out

    @staticmethod
    def update(db: Session, values: Dict[str, Any]) -> Iterable[str]:
        updated = []
        for key, value in values.items():
            if key not in DEFAULTS:
                continue
            # the masked placeholder comes back untouched from the settings form
            if key in SECRET_KEYS and value == MASK:
                continue
            NotificationSettings.set_value(db, key, value)
            updated.append(key)
        db.commit()
        logger.info("Notification settings updated: %s", ", ".join(sorted(updated)) or "none")
        return sorted(updated)
