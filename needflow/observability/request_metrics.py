import time

from prometheus_client import REGISTRY
from prometheus_client.core import GaugeMetricFamily
from sqlalchemy import func

from needflow.core.clock import utcnow
from needflow.db.session import SessionLocal
from needflow.models.enums import RequestStatus, StepStatus
from needflow.models.request import ApprovalStep, Request


class RequestMetricsCollector:
    def __init__(self, session_factory=SessionLocal, cache_ttl_seconds: int = 10):
        self.session_factory = session_factory
        self.cache_ttl_seconds = max(int(cache_ttl_seconds), 1)
        self._cache_expires_at = 0.0
        self._cached_families = None

    def collect(self):
        now = time.time()
        if self._cached_families is None or now >= self._cache_expires_at:
            self._cached_families = self._build_families()
            self._cache_expires_at = now + self.cache_ttl_seconds
        for fam in self._cached_families:
            yield fam

    def _build_families(self):
        db = self.session_factory()
        try:
            by_status = dict(
                db.query(Request.status, func.count(Request.id)).group_by(Request.status).all()
            )
            requests_total = GaugeMetricFamily(
                "needflow_requests_total",
                "Number of requests per workflow status.",
                labels=["status"],
            )
            for status in RequestStatus:
                requests_total.add_metric([status.value], float(by_status.get(status, 0)))

            # Steps the current approver is expected to act on
            awaited = (
                db.query(ApprovalStep.role, func.count(ApprovalStep.id), func.min(ApprovalStep.created_at))
                .join(Request, Request.id == ApprovalStep.request_id)
                .filter(
                    ApprovalStep.status == StepStatus.PENDING,
                    Request.status == RequestStatus.PENDING_APPROVAL,
                    Request.current_approver == ApprovalStep.user_id,
                )
                .group_by(ApprovalStep.role)
                .all()
            )
            awaited_steps = GaugeMetricFamily(
                "needflow_awaited_steps_total",
                "Approval steps currently awaiting their approver, per step role.",
                labels=["role"],
            )
            oldest_age = GaugeMetricFamily(
                "needflow_oldest_awaited_step_age_seconds",
                "Age of the oldest approval step awaiting its approver.",
            )
            oldest = None
            for role, count, first_created in awaited:
                awaited_steps.add_metric([str(role)], float(count))
                if first_created is not None and (oldest is None or first_created < oldest):
                    oldest = first_created
            oldest_age.add_metric([], (utcnow() - oldest).total_seconds() if oldest is not None else 0.0)

            return [requests_total, awaited_steps, oldest_age]
        finally:
            db.close()


def register_request_metrics(cache_ttl_seconds: int = 10) -> None:
    collector = RequestMetricsCollector(cache_ttl_seconds=cache_ttl_seconds)
    try:
        REGISTRY.register(collector)
    except ValueError:
        return
