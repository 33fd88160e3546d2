from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ApprovalChainRuleIn(BaseModel):
    validator_id: int = Field(..., ge=1)
    approver_id: int = Field(..., ge=1)
    dg_id: Optional[int] = Field(default=None, ge=1)


class ApprovalChainRuleResponse(ApprovalChainRuleIn):
    id: int
    department: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
