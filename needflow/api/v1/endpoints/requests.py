from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from needflow.api import deps
from needflow.db.session import get_db
from needflow.models.user import User
from needflow.schemas.request import (
    ActionResponse,
    ApprovalActionIn,
    ApprovalStepResponse,
    AuditEntryResponse,
    RequestCreate,
    RequestDetailResponse,
    RequestResponse,
    RequestStats,
    RequesterInfo,
)
from needflow.services.audit_service import AuditService
from needflow.services.request_store import SqlRequestStore
from needflow.services.workflow_engine import WorkflowEngine

router = APIRouter()


@router.get("", response_model=List[RequestResponse], dependencies=[Depends(deps.require_admin)])
def list_requests(db: Session = Depends(get_db)):
    """All requests, oldest first (admin only)."""
    return SqlRequestStore(db).list_requests()


@router.get("/my", response_model=List[RequestResponse])
def list_my_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_user),
):
    return SqlRequestStore(db).list_requests_by_creator(current_user.id)


@router.get("/to-approve", response_model=List[RequestResponse])
def list_requests_to_approve(
    engine: WorkflowEngine = Depends(deps.get_workflow_engine),
    current_user: User = Depends(deps.require_user),
):
    """Requests currently waiting on the caller."""
    return engine.requests_to_approve(current_user.id)


@router.get("/stats", response_model=RequestStats)
def get_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_user),
):
    counts = SqlRequestStore(db).count_by_status()
    return RequestStats(total=sum(counts.values()), **counts)


@router.post("", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
def create_request(
    payload: RequestCreate,
    engine: WorkflowEngine = Depends(deps.get_workflow_engine),
    current_user: User = Depends(deps.require_user),
):
    """
    Submit an expression of need.
    The initiator step is recorded as approved and the department validator becomes the current approver.
    """
    return engine.create_request(
        current_user,
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        department=payload.department,
        montant_demande=payload.montant_demande,
    )


@router.get("/{request_id}", response_model=RequestDetailResponse)
def get_request(
    request_id: int,
    engine: WorkflowEngine = Depends(deps.get_workflow_engine),
    current_user: User = Depends(deps.require_user),
):
    """Request with its ordered approval steps and requester, for the timeline view."""
    detail = engine.get_request(request_id)
    resp = RequestDetailResponse.model_validate(detail.request)
    resp.approval_steps = [ApprovalStepResponse.model_validate(s) for s in detail.steps]
    if detail.requester is not None:
        resp.requester = RequesterInfo.model_validate(detail.requester)
    return resp


@router.get("/{request_id}/history", response_model=List[AuditEntryResponse])
def get_request_history(
    request_id: int,
    engine: WorkflowEngine = Depends(deps.get_workflow_engine),
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_user),
):
    detail = engine.get_request(request_id)
    return AuditService.get_logs(db, resource_name=detail.request.ticket_id)


@router.post("/{request_id}/approve", response_model=ActionResponse)
def act_on_request(
    request_id: int,
    body: ApprovalActionIn,
    engine: WorkflowEngine = Depends(deps.get_workflow_engine),
    current_user: User = Depends(deps.require_user),
):
    """Approve or reject the step awaiting the caller (action in the body)."""
    result = engine.apply_action(request_id, current_user.id, body.action, body.comments, body.signature)
    return ActionResponse(
        message=result.message,
        request_id=result.request.id,
        status=result.request.status,
        current_approver=result.request.current_approver,
        inserted_step_id=result.inserted_step.id if result.inserted_step is not None else None,
    )
