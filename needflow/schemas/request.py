from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from needflow.models.enums import ApprovalAction, Priority, RequestStatus, StepStatus


class RequestCreate(BaseModel):
    """POST /requests body"""
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    priority: Priority = Priority.NORMAL
    department: str = Field(..., min_length=1, max_length=100)
    montant_demande: Decimal = Field(default=Decimal("0"), ge=0)


class ApprovalActionIn(BaseModel):
    action: ApprovalAction
    comments: Optional[str] = None
    signature: Optional[str] = None # data URL of the drawn signature


class ApprovalStepResponse(BaseModel):
    id: int
    request_id: int
    user_id: int
    role: str
    order: int
    status: StepStatus
    comments: Optional[str] = None
    signature: Optional[str] = None
    action_date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RequestResponse(BaseModel):
    id: int
    ticket_id: str
    title: str
    description: str
    priority: Priority
    department: str
    status: RequestStatus
    created_by: int
    current_approver: Optional[int] = None
    montant_demande: Decimal
    requires_dcf_validation: bool
    requires_dg_validation: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RequesterInfo(BaseModel):
    id: int
    full_name: Optional[str] = None
    department: Optional[str] = None

    class Config:
        from_attributes = True


class RequestDetailResponse(RequestResponse):
    approval_steps: List[ApprovalStepResponse] = []
    requester: Optional[RequesterInfo] = None


class ActionResponse(BaseModel):
    message: str
    request_id: int
    status: RequestStatus
    current_approver: Optional[int] = None
    inserted_step_id: Optional[int] = None


class RequestStats(BaseModel):
    total: int
    pending_approval: int
    approved: int
    rejected: int


class AuditEntryResponse(BaseModel):
    id: int
    username: Optional[str] = None
    action: str
    details: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True
