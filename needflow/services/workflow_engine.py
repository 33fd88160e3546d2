"""
Approval workflow engine.

Single entry point for every state change of a request:

  create_request  -> Request(pending_approval) + steps initiator(approved), validator, approver
  apply_action    -> approve / reject the step awaiting the current approver

Each call runs in one unit of work of the RequestStore; notifications are
collected during the unit and dispatched only after it committed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Tuple

from needflow.core.clock import utcnow
from needflow.core.exceptions import Forbidden, InvalidState, NotFound, ValidationError
from needflow.models.enums import ApprovalAction, Priority, RequestStatus, StepRole, StepStatus
from needflow.models.request import ApprovalStep, Request
from needflow.models.user import User
from needflow.services.request_store import RequestStore
from needflow.services.step_sequencer import StepSequencer

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    request: Request
    step: ApprovalStep
    action: ApprovalAction
    message: str
    next_approver_id: Optional[int] = None
    inserted_step: Optional[ApprovalStep] = None


@dataclass
class RequestDetail:
    request: Request
    steps: List[ApprovalStep]
    requester: Optional[User]


@dataclass
class _Outbox:
    items: List[Tuple[int, int, str]] = field(default_factory=list)

    def add(self, user_id: Optional[int], request_id: int, message: str) -> None:
        if user_id is not None:
            self.items.append((user_id, request_id, message))


def new_step_message(request: Request) -> str:
    return f"New request requires your approval: {request.title}"


def _parse_amount(value) -> Decimal:
    """Requested amount as a finite, non-negative Decimal (None means 0)."""
    try:
        amount = Decimal(value if value is not None else 0)
    except (InvalidOperation, TypeError, ValueError):
        amount = None
    if amount is None or not amount.is_finite():
        raise ValidationError(
            "Requested amount must be a number",
            details=[{"path": "montant_demande", "message": "Requested amount must be a number"}],
        )
    if amount < 0:
        raise ValidationError(
            "Requested amount must not be negative",
            details=[{"path": "montant_demande", "message": "Requested amount must not be negative"}],
        )
    return amount


class WorkflowEngine:
    def __init__(self, store: RequestStore, dispatcher=None, *, clock: Callable = utcnow):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock
        self.sequencer = StepSequencer(store)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def create_request(
        self,
        requester: User,
        *,
        title: str,
        description: str = "",
        priority: Priority = Priority.NORMAL,
        department: str,
        montant_demande: Optional[Decimal] = None,
    ) -> Request:
        if not (title or "").strip():
            raise ValidationError("Title is required", details=[{"path": "title", "message": "Title is required"}])
        if not (department or "").strip():
            raise ValidationError(
                "Department is required", details=[{"path": "department", "message": "Department is required"}]
            )
        try:
            priority = Priority(priority)
        except ValueError:
            raise ValidationError(
                f"Unknown priority '{priority}'",
                details=[{"path": "priority", "message": "Priority must be one of: " + ", ".join(p.value for p in Priority)}],
            ) from None
        amount = _parse_amount(montant_demande)

        outbox = _Outbox()
        now = self.clock()
        with self.store.atomic():
            request = Request(
                ticket_id=self.store.next_ticket_id(now.year),
                title=title.strip(),
                description=description or "",
                priority=priority,
                department=department.strip(),
                status=RequestStatus.PENDING_APPROVAL,
                created_by=requester.id,
                current_approver=None,
                montant_demande=amount,
                created_at=now,
                updated_at=now,
            )
            self.store.add_request(request)
            self.sequencer.build_initial_chain(request, now)
            self.store.add_audit_entry(
                requester, "CREATE", request, {"department": request.department, "amount": str(amount)}
            )
            outbox.add(request.current_approver, request.id, new_step_message(request))

        logger.info(
            "Request created",
            extra={"request_id_db": request.id, "ticket_id": request.ticket_id, "actor_id": requester.id},
        )
        self._dispatch(outbox)
        return request

    def apply_action(
        self,
        request_id: int,
        actor_id: int,
        action,
        comments: Optional[str] = None,
        signature: Optional[str] = None,
    ) -> ActionResult:
        try:
            action = ApprovalAction(action)
        except ValueError:
            raise ValidationError(
                f"Unknown action '{action}'",
                details=[{"path": "action", "message": "Action must be 'approve' or 'reject'"}],
            ) from None

        outbox = _Outbox()
        with self.store.atomic(request_id):
            request = self.store.get_request(request_id, lock=True)
            if request is None:
                raise NotFound("Request not found")
            if RequestStatus(request.status).is_terminal or request.current_approver != actor_id:
                raise Forbidden("You are not authorized to approve this request")

            steps = self.store.get_steps(request_id)
            step = self._current_step(steps, actor_id)
            actor = self.store.get_user(actor_id)
            now = self.clock()

            if action is ApprovalAction.REJECT:
                result = self._reject(request, step, actor, comments, signature, now, outbox)
            else:
                result = self._approve(request, step, actor, comments, signature, now, outbox)

        logger.info(
            result.message,
            extra={
                "request_id_db": request.id,
                "ticket_id": request.ticket_id,
                "actor_id": actor_id,
                "action": action.value,
                "step_id": step.id,
            },
        )
        self._dispatch(outbox)
        return result

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    @staticmethod
    def _current_step(steps: List[ApprovalStep], actor_id: int) -> ApprovalStep:
        actor_pending = [s for s in steps if s.user_id == actor_id and s.status == StepStatus.PENDING]
        if not actor_pending:
            raise InvalidState("No pending approval step found")
        awaited = min((s for s in steps if s.status == StepStatus.PENDING), key=lambda s: s.order)
        if awaited.user_id != actor_id:
            raise InvalidState("No pending approval step found")
        return awaited

    def _reject(self, request, step, actor, comments, signature, now, outbox) -> ActionResult:
        self.store.complete_step(
            step, StepStatus.REJECTED, comments=comments, signature=signature, action_date=now
        )
        self.store.update_request(
            request,
            expected_approver=step.user_id,
            status=RequestStatus.REJECTED,
            current_approver=None,
            updated_at=now,
        )
        self.store.add_audit_entry(actor, "REJECT", request, {"step": step.order, "comments": comments})

        actor_name = (actor.full_name or actor.username) if actor else f"user {step.user_id}"
        outbox.add(request.created_by, request.id, f'Your request "{request.title}" was rejected by {actor_name}')
        return ActionResult(request, step, ApprovalAction.REJECT, "Request rejected successfully")

    def _approve(self, request, step, actor, comments, signature, now, outbox) -> ActionResult:
        self.store.complete_step(
            step, StepStatus.APPROVED, comments=comments, signature=signature, action_date=now
        )
        inserted = self._extend_chain(request, self.store.get_steps(request.id), now)

        steps = self.store.get_steps(request.id)
        max_order = max(s.order for s in steps)
        remaining = [s for s in steps if s.status == StepStatus.PENDING]

        if step.order < max_order and remaining:
            next_step = min(remaining, key=lambda s: s.order)
            self.store.update_request(
                request, expected_approver=step.user_id, current_approver=next_step.user_id, updated_at=now
            )
            self.store.add_audit_entry(
                actor, "APPROVE", request, {"step": step.order, "next_step": next_step.order, "comments": comments}
            )
            outbox.add(next_step.user_id, request.id, new_step_message(request))
            return ActionResult(
                request,
                step,
                ApprovalAction.APPROVE,
                "Request approved successfully",
                next_approver_id=next_step.user_id,
                inserted_step=inserted,
            )

        self.store.update_request(
            request,
            expected_approver=step.user_id,
            status=RequestStatus.APPROVED,
            current_approver=None,
            updated_at=now,
        )
        self.store.add_audit_entry(actor, "APPROVE", request, {"step": step.order, "final": True, "comments": comments})
        outbox.add(request.created_by, request.id, f'Your request "{request.title}" has been fully approved')
        return ActionResult(request, step, ApprovalAction.APPROVE, "Request approved successfully", inserted_step=inserted)

    def _extend_chain(self, request: Request, steps: List[ApprovalStep], now) -> Optional[ApprovalStep]:
        """Append a dg step once when the requested amount is above the DG threshold."""
        if request.requires_dcf_validation:
            logger.debug("Request above DCF threshold", extra={"ticket_id": request.ticket_id})
        if not request.requires_dg_validation or any(s.role == StepRole.DG.value for s in steps):
            return None

        dg_id = self.sequencer.resolve_dg(request.department)
        step = ApprovalStep(
            request_id=request.id,
            user_id=dg_id,
            role=StepRole.DG.value,
            order=max(s.order for s in steps) + 1,
            status=StepStatus.PENDING,
            created_at=now,
        )
        self.store.add_step(step)
        logger.info(
            "DG validation step appended",
            extra={"request_id_db": request.id, "ticket_id": request.ticket_id, "step_id": step.id},
        )
        return step

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_request(self, request_id: int) -> RequestDetail:
        request = self.store.get_request(request_id)
        if request is None:
            raise NotFound("Request not found")
        return RequestDetail(request, self.store.get_steps(request_id), self.store.get_user(request.created_by))

    def requests_to_approve(self, user_id: int) -> List[Request]:
        return self.store.list_requests_to_approve(user_id)

    # ------------------------------------------------------------------
    def _dispatch(self, outbox: _Outbox) -> None:
        if self.dispatcher is None:
            return
        for user_id, request_id, message in outbox.items:
            self.dispatcher.notify(user_id, request_id, message)
