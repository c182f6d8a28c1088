"""
Prometheus metrics for the slot recovery backend.

Metrics live in a dedicated registry so importing this module twice (tests,
Celery workers) never collides with the default process registry.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    generate_latest,
)

REGISTRY = CollectorRegistry()

job_lock_events_total = Counter(
    "slotback_job_lock_events_total",
    "Named job lock acquisitions and releases by outcome",
    ["lock", "outcome"],
    registry=REGISTRY,
)

job_runs_total = Counter(
    "slotback_job_runs_total",
    "Scheduled job executions by result",
    ["job", "result"],
    registry=REGISTRY,
)

slot_offer_events_total = Counter(
    "slotback_slot_offer_events_total",
    "Slot offer lifecycle events",
    ["event"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade so call sites never touch label plumbing directly."""

    @staticmethod
    def record_job_lock(lock: str, outcome: str) -> None:
        job_lock_events_total.labels(lock=lock, outcome=outcome).inc()

    @staticmethod
    def record_job_run(job: str, result: str) -> None:
        job_runs_total.labels(job=job, result=result).inc()

    @staticmethod
    def record_slot_offer(event: str) -> None:
        slot_offer_events_total.labels(event=event).inc()

    @staticmethod
    def get_metrics() -> bytes:
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
