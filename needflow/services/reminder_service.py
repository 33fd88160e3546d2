from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional

from needflow.core import config
from needflow.core.clock import utcnow
from needflow.services.request_store import RequestStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reminder:
    user_id: int
    request_id: int
    ticket_id: str
    step_id: int
    message: str


class ReminderSweeper:
    """
    Finds approval steps that have been awaiting their approver longer than the
    staleness window and reminds that approver at most once per window.
    """

    def __init__(
        self,
        store: RequestStore,
        *,
        stale_after: Optional[timedelta] = None,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.stale_after = stale_after or timedelta(hours=config.REMINDER_STALE_HOURS)
        self.clock = clock

    def _message(self, ticket_id: str) -> str:
        hours = int(self.stale_after.total_seconds() // 3600)
        return f"Reminder: request {ticket_id} has been awaiting your approval for more than {hours}h"

    def sweep(self) -> List[Reminder]:
        now = self.clock()
        cutoff = now - self.stale_after
        reminders: List[Reminder] = []
        with self.store.atomic():
            for step, request in self.store.find_stale_steps(cutoff):
                self.store.mark_reminded(step, now)
                self.store.add_audit_entry(None, "REMIND", request, {"step": step.order, "user_id": step.user_id})
                reminders.append(
                    Reminder(
                        user_id=step.user_id,
                        request_id=request.id,
                        ticket_id=request.ticket_id,
                        step_id=step.id,
                        message=self._message(request.ticket_id),
                    )
                )
        return reminders

    def run(self, dispatcher) -> dict:
        reminders = self.sweep()
        for r in reminders:
            dispatcher.notify(r.user_id, r.request_id, r.message)
        logger.info("Reminder sweep completed: %d reminder(s)", len(reminders), extra={"action": "remind"})
        return {"reminded": len(reminders), "steps": [r.step_id for r in reminders]}
