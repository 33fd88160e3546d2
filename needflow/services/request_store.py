"""
Persistence boundary for requests and approval steps.

The workflow engine only talks to a RequestStore, never to a Session directly.
SqlRequestStore backs the API and the Celery worker; InMemoryRequestStore
(needflow.services.memory_store) backs engine tests.

Both implementations guard the two state-changing writes with compare-and-set
semantics: a step is only completed while it is still pending, and a request is
only updated while it is still awaiting the expected approver. A failed
compare-and-set raises InvalidState and the surrounding unit of work rolls back.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from needflow.core import config
from needflow.core.clock import utcnow
from needflow.core.exceptions import InvalidState, StorageError
from needflow.models.approval_chain import ApprovalChainRule
from needflow.models.enums import RequestStatus, StepStatus
from needflow.models.request import ApprovalStep, Request, TicketSequence
from needflow.models.user import User
from needflow.services.audit_service import AuditService

logger = logging.getLogger(__name__)

# Sentinel for "do not check the current approver" in update_request
ANY_APPROVER = object()


def format_ticket_id(year: int, seq: int) -> str:
    return f"REQ-{year}-{seq:04d}"


class RequestStore:
    """Abstract repository used by the step sequencer, engine and reminder sweeper."""

    @contextmanager
    def atomic(self, request_id: Optional[int] = None) -> Iterator["RequestStore"]:
        raise NotImplementedError

    # --- reads ---
    def get_request(self, request_id: int, *, lock: bool = False) -> Optional[Request]:
        raise NotImplementedError

    def get_steps(self, request_id: int) -> List[ApprovalStep]:
        raise NotImplementedError

    def get_user(self, user_id: Optional[int]) -> Optional[User]:
        raise NotImplementedError

    def resolve_chain(self, department: str) -> Optional[ApprovalChainRule]:
        raise NotImplementedError

    def list_requests(self) -> List[Request]:
        raise NotImplementedError

    def list_requests_by_creator(self, user_id: int) -> List[Request]:
        raise NotImplementedError

    def list_requests_to_approve(self, user_id: int) -> List[Request]:
        raise NotImplementedError

    def find_stale_steps(self, cutoff: datetime) -> List[Tuple[ApprovalStep, Request]]:
        raise NotImplementedError

    def count_by_status(self) -> Dict[str, int]:
        raise NotImplementedError

    # --- writes (inside atomic) ---
    def next_ticket_id(self, year: int) -> str:
        raise NotImplementedError

    def add_request(self, request: Request) -> Request:
        raise NotImplementedError

    def add_step(self, step: ApprovalStep) -> ApprovalStep:
        raise NotImplementedError

    def complete_step(
        self,
        step: ApprovalStep,
        status: StepStatus,
        *,
        comments: Optional[str],
        signature: Optional[str],
        action_date: datetime,
    ) -> None:
        raise NotImplementedError

    def update_request(self, request: Request, *, expected_approver: Any = ANY_APPROVER, **changes: Any) -> None:
        raise NotImplementedError

    def mark_reminded(self, step: ApprovalStep, when: datetime) -> None:
        raise NotImplementedError

    def add_audit_entry(self, actor: Optional[User], action: str, request: Request, details: Any = None) -> None:
        raise NotImplementedError


class SqlRequestStore(RequestStore):
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _reading(self, what: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Read failed: %s", what)
            raise StorageError(f"Storage failure while reading {what}") from e

    @contextmanager
    def atomic(self, request_id: Optional[int] = None) -> Iterator["SqlRequestStore"]:
        if self.db.new or self.db.dirty or self.db.deleted:
            raise StorageError("Session has unsaved changes outside a unit of work")
        # Reads made before the unit of work must not leak stale state into it
        if self.db.in_transaction():
            self.db.rollback()
        try:
            yield self
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Unit of work failed", extra={"request_id_db": request_id})
            raise StorageError("Storage failure while saving the request") from e
        except Exception:
            self.db.rollback()
            raise

    def get_request(self, request_id: int, *, lock: bool = False) -> Optional[Request]:
        query = self.db.query(Request).filter(Request.id == request_id)
        if lock:
            # FOR UPDATE is skipped by SQLite; the CAS updates still hold there
            query = query.with_for_update().populate_existing()
        with self._reading("request"):
            return query.first()

    def get_steps(self, request_id: int) -> List[ApprovalStep]:
        with self._reading("approval steps"):
            return (
                self.db.query(ApprovalStep)
                .filter(ApprovalStep.request_id == request_id)
                .order_by(ApprovalStep.order)
                .populate_existing()
                .all()
            )

    def get_user(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        with self._reading("user"):
            return self.db.query(User).filter(User.id == user_id).first()

    def resolve_chain(self, department: str) -> Optional[ApprovalChainRule]:
        with self._reading("approval chain"):
            rule = self.db.query(ApprovalChainRule).filter(ApprovalChainRule.department == department).first()
            if rule is None:
                rule = (
                    self.db.query(ApprovalChainRule)
                    .filter(ApprovalChainRule.department == config.DEFAULT_CHAIN_DEPARTMENT)
                    .first()
                )
            return rule

    def list_requests(self) -> List[Request]:
        with self._reading("requests"):
            return self.db.query(Request).order_by(Request.created_at, Request.id).all()

    def list_requests_by_creator(self, user_id: int) -> List[Request]:
        with self._reading("requests"):
            return (
                self.db.query(Request)
                .filter(Request.created_by == user_id)
                .order_by(Request.created_at, Request.id)
                .all()
            )

    def list_requests_to_approve(self, user_id: int) -> List[Request]:
        with self._reading("requests awaiting approval"):
            return (
                self.db.query(Request)
                .filter(
                    Request.current_approver == user_id,
                    Request.status == RequestStatus.PENDING_APPROVAL,
                )
                .order_by(Request.created_at, Request.id)
                .all()
            )

    def find_stale_steps(self, cutoff: datetime) -> List[Tuple[ApprovalStep, Request]]:
        with self._reading("stale approval steps"):
            rows = (
                self.db.query(ApprovalStep, Request)
                .join(Request, Request.id == ApprovalStep.request_id)
                .filter(
                    ApprovalStep.status == StepStatus.PENDING,
                    ApprovalStep.created_at < cutoff,
                    Request.status == RequestStatus.PENDING_APPROVAL,
                    Request.current_approver == ApprovalStep.user_id,
                    or_(ApprovalStep.last_reminded_at.is_(None), ApprovalStep.last_reminded_at < cutoff),
                )
                .order_by(ApprovalStep.created_at, ApprovalStep.id)
                .all()
            )
        return [(step, req) for step, req in rows]

    def count_by_status(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in RequestStatus}
        with self._reading("request counts"):
            rows = self.db.query(Request.status, func.count(Request.id)).group_by(Request.status).all()
        for status, n in rows:
            counts[RequestStatus(status).value] = int(n)
        return counts

    def next_ticket_id(self, year: int) -> str:
        seq = (
            self.db.query(TicketSequence)
            .filter(TicketSequence.year == year)
            .with_for_update()
            .first()
        )
        if seq is None:
            seq = TicketSequence(year=year, last_value=0)
            self.db.add(seq)
        seq.last_value = int(seq.last_value or 0) + 1
        self.db.flush()
        return format_ticket_id(year, seq.last_value)

    def add_request(self, request: Request) -> Request:
        self.db.add(request)
        self.db.flush()
        return request

    def add_step(self, step: ApprovalStep) -> ApprovalStep:
        self.db.add(step)
        self.db.flush()
        return step

    def complete_step(self, step, status, *, comments, signature, action_date) -> None:
        res = self.db.execute(
            update(ApprovalStep)
            .where(ApprovalStep.id == step.id, ApprovalStep.status == StepStatus.PENDING)
            .values(status=status, comments=comments, signature=signature, action_date=action_date)
            .execution_options(synchronize_session="fetch")
        )
        if res.rowcount != 1:
            raise InvalidState("No pending approval step found")

    def update_request(self, request, *, expected_approver=ANY_APPROVER, **changes) -> None:
        stmt = update(Request).where(
            Request.id == request.id,
            Request.status == RequestStatus.PENDING_APPROVAL,
        )
        if expected_approver is not ANY_APPROVER:
            if expected_approver is None:
                stmt = stmt.where(Request.current_approver.is_(None))
            else:
                stmt = stmt.where(Request.current_approver == expected_approver)
        changes.setdefault("updated_at", utcnow())
        res = self.db.execute(stmt.values(**changes).execution_options(synchronize_session="fetch"))
        if res.rowcount != 1:
            raise InvalidState("Request is no longer awaiting this approver")

    def mark_reminded(self, step: ApprovalStep, when: datetime) -> None:
        step.last_reminded_at = when
        self.db.flush()

    def add_audit_entry(self, actor, action, request, details=None) -> None:
        self.db.add(AuditService.build_entry(actor, action, "Request", request.ticket_id, details))
