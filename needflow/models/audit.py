from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey

from needflow.core.clock import utcnow
from needflow.db.session import Base

class AuditLog(Base):
    """
    Audit trail of workflow actions.
    Who did what to which request, and when.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Who
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    username = Column(String, nullable=True) # snapshot, survives user deletion

    # What
    action = Column(String, nullable=False, index=True) # CREATE, APPROVE, REJECT, REMIND
    resource_type = Column(String, nullable=True)       # "Request"
    resource_name = Column(String, nullable=True)       # ticket id
    details = Column(Text, nullable=True)
    status = Column(String, default="success")

    # When
    timestamp = Column(DateTime, default=utcnow, index=True)
