from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import inspect as sa_inspect

from needflow.core import config
from needflow.core.clock import utcnow
from needflow.core.exceptions import InvalidState
from needflow.models.approval_chain import ApprovalChainRule
from needflow.models.audit import AuditLog
from needflow.models.enums import RequestStatus, StepStatus
from needflow.models.request import ApprovalStep, Request
from needflow.models.user import User
from needflow.services.audit_service import AuditService
from needflow.services.request_store import ANY_APPROVER, RequestStore, format_ticket_id


def _columns(obj) -> Dict[str, Any]:
    return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(type(obj)).column_attrs}


class InMemoryRequestStore(RequestStore):
    """
    Dict-backed RequestStore holding transient ORM instances.

    Units of work are serialized by one re-entrant lock and rolled back by
    restoring a snapshot of every tracked object's column values.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._depth = 0
        self.users: Dict[int, User] = {}
        self.rules: Dict[str, ApprovalChainRule] = {}
        self.requests: Dict[int, Request] = {}
        self.steps: Dict[int, ApprovalStep] = {}
        self.sequences: Dict[int, int] = {}
        self.audit: List[AuditLog] = []

    # --- fixtures helpers ---
    def add_user(self, user: User) -> User:
        if user.id is None:
            user.id = next(self._ids)
        if user.is_active is None:
            user.is_active = True
        self.users[user.id] = user
        return user

    def add_rule(self, rule: ApprovalChainRule) -> ApprovalChainRule:
        self.rules[rule.department] = rule
        return rule

    # --- unit of work ---
    def _snapshot(self):
        objects = list(self.requests.values()) + list(self.steps.values())
        return (
            dict(self.requests),
            dict(self.steps),
            dict(self.sequences),
            list(self.audit),
            [(obj, _columns(obj)) for obj in objects],
        )

    def _restore(self, snapshot) -> None:
        requests, steps, sequences, audit, values = snapshot
        self.requests, self.steps, self.sequences, self.audit = requests, steps, sequences, audit
        for obj, cols in values:
            for key, value in cols.items():
                setattr(obj, key, value)

    @contextmanager
    def atomic(self, request_id: Optional[int] = None) -> Iterator["InMemoryRequestStore"]:
        with self._lock:
            snapshot = self._snapshot() if self._depth == 0 else None
            self._depth += 1
            try:
                yield self
            except BaseException:
                if snapshot is not None:
                    self._restore(snapshot)
                raise
            finally:
                self._depth -= 1

    # --- reads ---
    def get_request(self, request_id: int, *, lock: bool = False) -> Optional[Request]:
        return self.requests.get(request_id)

    def get_steps(self, request_id: int) -> List[ApprovalStep]:
        return sorted((s for s in self.steps.values() if s.request_id == request_id), key=lambda s: s.order)

    def get_user(self, user_id: Optional[int]) -> Optional[User]:
        return self.users.get(user_id) if user_id is not None else None

    def resolve_chain(self, department: str) -> Optional[ApprovalChainRule]:
        return self.rules.get(department) or self.rules.get(config.DEFAULT_CHAIN_DEPARTMENT)

    def list_requests(self) -> List[Request]:
        return sorted(self.requests.values(), key=lambda r: (r.created_at, r.id))

    def list_requests_by_creator(self, user_id: int) -> List[Request]:
        return [r for r in self.list_requests() if r.created_by == user_id]

    def list_requests_to_approve(self, user_id: int) -> List[Request]:
        return [
            r
            for r in self.list_requests()
            if r.current_approver == user_id and r.status == RequestStatus.PENDING_APPROVAL
        ]

    def find_stale_steps(self, cutoff: datetime) -> List[Tuple[ApprovalStep, Request]]:
        out = []
        for step in sorted(self.steps.values(), key=lambda s: (s.created_at, s.id)):
            req = self.requests.get(step.request_id)
            if req is None or step.status != StepStatus.PENDING or step.created_at >= cutoff:
                continue
            if req.status != RequestStatus.PENDING_APPROVAL or req.current_approver != step.user_id:
                continue
            if step.last_reminded_at is not None and step.last_reminded_at >= cutoff:
                continue
            out.append((step, req))
        return out

    def count_by_status(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in RequestStatus}
        for r in self.requests.values():
            counts[RequestStatus(r.status).value] += 1
        return counts

    # --- writes ---
    def next_ticket_id(self, year: int) -> str:
        self.sequences[year] = self.sequences.get(year, 0) + 1
        return format_ticket_id(year, self.sequences[year])

    def add_request(self, request: Request) -> Request:
        request.id = next(self._ids)
        if request.created_at is None:
            request.created_at = utcnow()
        request.updated_at = request.created_at
        self.requests[request.id] = request
        return request

    def add_step(self, step: ApprovalStep) -> ApprovalStep:
        if any(s.request_id == step.request_id and s.order == step.order for s in self.steps.values()):
            raise InvalidState(f"Step order {step.order} already exists for request {step.request_id}")
        step.id = next(self._ids)
        if step.created_at is None:
            step.created_at = utcnow()
        self.steps[step.id] = step
        return step

    def complete_step(self, step, status, *, comments, signature, action_date) -> None:
        current = self.steps.get(step.id)
        if current is None or current.status != StepStatus.PENDING:
            raise InvalidState("No pending approval step found")
        current.status = status
        current.comments = comments
        current.signature = signature
        current.action_date = action_date

    def update_request(self, request, *, expected_approver=ANY_APPROVER, **changes) -> None:
        current = self.requests.get(request.id)
        if current is None or current.status != RequestStatus.PENDING_APPROVAL:
            raise InvalidState("Request is no longer awaiting this approver")
        if expected_approver is not ANY_APPROVER and current.current_approver != expected_approver:
            raise InvalidState("Request is no longer awaiting this approver")
        changes.setdefault("updated_at", utcnow())
        for key, value in changes.items():
            setattr(current, key, value)

    def mark_reminded(self, step: ApprovalStep, when: datetime) -> None:
        step.last_reminded_at = when

    def add_audit_entry(self, actor, action, request, details=None) -> None:
        self.audit.append(AuditService.build_entry(actor, action, "Request", request.ticket_id, details))
