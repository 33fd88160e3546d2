from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from needflow.core.clock import utcnow
from needflow.db.session import Base


class ApprovalChainRule(Base):
    """
    Who validates and approves requests of a department.
    department "*" is the fallback rule used when no department-specific rule exists.
    """
    __tablename__ = "approval_chain_rules"

    id = Column(Integer, primary_key=True, index=True)
    department = Column(String, unique=True, nullable=False, index=True)

    validator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    dg_id = Column(Integer, ForeignKey("users.id"), nullable=True) # bound to dg steps above the DG threshold

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
