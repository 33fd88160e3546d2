import json
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from needflow.models.audit import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    @staticmethod
    def build_entry(
        user: Any,
        action: str,
        resource_type: str,
        resource_name: Optional[str],
        details: Any = None,
        status: str = "success",
    ) -> AuditLog:
        """Build an audit row; the caller adds it to its own unit of work."""
        if isinstance(details, (dict, list)):
            details = json.dumps(details, default=str)
        return AuditLog(
            user_id=getattr(user, "id", None),
            username=getattr(user, "username", "system") if user else "system",
            action=action,
            resource_type=resource_type,
            resource_name=resource_name,
            details=details,
            status=status,
        )

    @staticmethod
    def get_logs(db: Session, resource_name: Optional[str] = None, limit: int = 100):
        query = db.query(AuditLog)
        if resource_name:
            query = query.filter(AuditLog.resource_name == resource_name)
        return query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
