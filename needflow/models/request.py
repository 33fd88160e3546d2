from decimal import Decimal

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Numeric, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from needflow.core import config
from needflow.core.clock import utcnow
from needflow.db.session import Base
from needflow.models.enums import Priority, RequestStatus, StepStatus


def _enum_values(enum_cls):
    return [m.value for m in enum_cls]


class Request(Base):
    """
    Expression of need submitted for approval.
    ticket_id is assigned once in the creating transaction and never rewritten.
    """
    __tablename__ = "requests"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(32), unique=True, nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(
        Enum(Priority, native_enum=False, values_callable=_enum_values, length=16),
        nullable=False,
        default=Priority.NORMAL,
    )
    department = Column(String, nullable=False, index=True)

    status = Column(
        Enum(RequestStatus, native_enum=False, values_callable=_enum_values, length=32),
        nullable=False,
        default=RequestStatus.PENDING_APPROVAL,
        index=True,
    )
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    current_approver = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    montant_demande = Column(Numeric(16, 2), nullable=False, default=Decimal("0"))

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    creator = relationship("User", foreign_keys=[created_by])
    steps = relationship("ApprovalStep", back_populates="request", order_by="ApprovalStep.order")

    @property
    def requires_dg_validation(self) -> bool:
        return Decimal(self.montant_demande or 0) > config.DG_VALIDATION_THRESHOLD

    @property
    def requires_dcf_validation(self) -> bool:
        return Decimal(self.montant_demande or 0) > config.DCF_VALIDATION_THRESHOLD


class ApprovalStep(Base):
    __tablename__ = "approval_steps"
    __table_args__ = (UniqueConstraint("request_id", "step_order", name="uq_approval_steps_request_order"),)

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    role = Column(String(32), nullable=False) # initiator, validator, approver, dg
    order = Column("step_order", Integer, nullable=False)
    status = Column(
        Enum(StepStatus, native_enum=False, values_callable=_enum_values, length=16),
        nullable=False,
        default=StepStatus.PENDING,
        index=True,
    )

    comments = Column(Text, nullable=True)
    signature = Column(Text, nullable=True) # opaque image payload (data URL)
    action_date = Column(DateTime, nullable=True)
    last_reminded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    request = relationship("Request", back_populates="steps")


class TicketSequence(Base):
    """Per-year counter backing REQ-<year>-<seq> ticket ids."""
    __tablename__ = "ticket_sequences"

    year = Column(Integer, primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
