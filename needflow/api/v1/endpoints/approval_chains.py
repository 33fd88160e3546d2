import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from needflow.api import deps
from needflow.db.session import get_db
from needflow.models.approval_chain import ApprovalChainRule
from needflow.models.user import User
from needflow.schemas.approval_chain import ApprovalChainRuleIn, ApprovalChainRuleResponse

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(deps.require_admin)])


def _require_user(db: Session, user_id, field: str) -> None:
    if user_id is None:
        return
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=400, detail=f"{field}: user {user_id} not found or inactive")


@router.get("", response_model=List[ApprovalChainRuleResponse])
def list_rules(db: Session = Depends(get_db)):
    return db.query(ApprovalChainRule).order_by(ApprovalChainRule.department).all()


@router.put("/{department}", response_model=ApprovalChainRuleResponse)
def upsert_rule(department: str, rule_in: ApprovalChainRuleIn, db: Session = Depends(get_db)):
    """Create or replace the chain of a department ("*" sets the fallback chain)."""
    _require_user(db, rule_in.validator_id, "validator_id")
    _require_user(db, rule_in.approver_id, "approver_id")
    _require_user(db, rule_in.dg_id, "dg_id")

    rule = db.query(ApprovalChainRule).filter(ApprovalChainRule.department == department).first()
    if rule is None:
        rule = ApprovalChainRule(department=department)
        db.add(rule)
    for field, value in rule_in.model_dump().items():
        setattr(rule, field, value)
    db.commit()
    db.refresh(rule)
    logger.info("Approval chain updated for department %s", department)
    return rule


@router.delete("/{department}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(department: str, db: Session = Depends(get_db)):
    rule = db.query(ApprovalChainRule).filter(ApprovalChainRule.department == department).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Approval chain not found")
    db.delete(rule)
    db.commit()
    return None
