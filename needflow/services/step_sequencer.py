from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from needflow.core.exceptions import WorkflowConfigurationError
from needflow.models.enums import StepRole, StepStatus
from needflow.models.request import ApprovalStep, Request
from needflow.services.request_store import RequestStore

logger = logging.getLogger(__name__)

SUBMITTED_COMMENT = "Request submitted"


@dataclass(frozen=True)
class ChainAssignment:
    department: str
    validator_id: int
    approver_id: int
    dg_id: Optional[int] = None


class StepSequencer:
    """Builds the initial initiator -> validator -> approver chain of a new request."""

    def __init__(self, store: RequestStore):
        self.store = store

    def _require_active_user(self, user_id: Optional[int], label: str, department: str) -> int:
        user = self.store.get_user(user_id)
        if user is None or not user.is_active:
            raise WorkflowConfigurationError(
                f"No active {label} configured for department '{department}'",
                details={"department": department, "role": label, "user_id": user_id},
            )
        return user.id

    def resolve(self, department: str) -> ChainAssignment:
        rule = self.store.resolve_chain(department)
        if rule is None:
            raise WorkflowConfigurationError(
                f"No approval chain configured for department '{department}'",
                details={"department": department},
            )
        return ChainAssignment(
            department=department,
            validator_id=self._require_active_user(rule.validator_id, "validator", department),
            approver_id=self._require_active_user(rule.approver_id, "approver", department),
            dg_id=rule.dg_id,
        )

    def resolve_dg(self, department: str) -> int:
        """User bound to a dynamically inserted dg step."""
        rule = self.store.resolve_chain(department)
        return self._require_active_user(rule.dg_id if rule else None, "dg", department)

    def build_initial_chain(self, request: Request, now: datetime) -> List[ApprovalStep]:
        """
        Persist steps 1..3 and point the request at the validator.
        Must run inside the store's unit of work that created the request.
        """
        assignment = self.resolve(request.department)
        steps = [
            ApprovalStep(
                request_id=request.id,
                user_id=request.created_by,
                role=StepRole.INITIATOR.value,
                order=1,
                status=StepStatus.APPROVED,
                comments=SUBMITTED_COMMENT,
                action_date=now,
                created_at=now,
            ),
            ApprovalStep(
                request_id=request.id,
                user_id=assignment.validator_id,
                role=StepRole.VALIDATOR.value,
                order=2,
                status=StepStatus.PENDING,
                created_at=now,
            ),
            ApprovalStep(
                request_id=request.id,
                user_id=assignment.approver_id,
                role=StepRole.APPROVER.value,
                order=3,
                status=StepStatus.PENDING,
                created_at=now,
            ),
        ]
        for step in steps:
            self.store.add_step(step)

        self.store.update_request(
            request, expected_approver=None, current_approver=assignment.validator_id, updated_at=now
        )
        logger.info(
            "Approval chain created",
            extra={"request_id_db": request.id, "ticket_id": request.ticket_id},
        )
        return steps
