# backend/app/services/score_recompute_service.py
"""
Recompute reliability scores and no-show statistics for every customer.

Runs under the ``recompute-scores`` job lock, shop by shop and in chunks of
customers. A score outside [0, 100] is never written; that customer is
reported and the batch continues.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import MAX_ERROR_DETAILS, RECOMPUTE_SCORES_LOCK
from ..core.lock_store import CooldownLockStore
from ..core.timezone_utils import utcnow
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .no_show_scoring import assign_no_show_risk, bucket_attendance, calculate_no_show_score
from .reliability_scoring import (
    assign_tier,
    bucket_history,
    calculate_score,
    flatten_buckets,
    validate_score,
)

logger = logging.getLogger(__name__)


@dataclass
class RecomputeScoresResult:
    processed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    skipped: bool = False
    reason: Optional[str] = None

    @property
    def error_details(self) -> List[Dict[str, str]]:
        return self.errors[:MAX_ERROR_DETAILS]


class ScoreRecomputeService(BaseService):
    def __init__(self, db: Session, lock_store: CooldownLockStore):
        super().__init__(db)
        self.lock_store = lock_store
        self.shop_repository = RepositoryFactory.create_shop_repository(db)
        self.customer_repository = RepositoryFactory.create_customer_repository(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.score_repository = RepositoryFactory.create_customer_score_repository(db)

    @BaseService.measure_operation("recompute_scores")
    def recompute_all(self, now: Optional[datetime] = None) -> RecomputeScoresResult:
        with self.lock_store.job_lock(RECOMPUTE_SCORES_LOCK) as acquired:
            if not acquired:
                self.logger.info("recompute_scores_locked", extra={"job": RECOMPUTE_SCORES_LOCK})
                prometheus_metrics.record_job_run(RECOMPUTE_SCORES_LOCK, "skipped")
                return RecomputeScoresResult(skipped=True, reason="locked")

            now = now or utcnow()
            result = RecomputeScoresResult()
            for shop_id in self.shop_repository.list_ids():
                for chunk in self.customer_repository.iter_customer_id_chunks(
                    shop_id, settings.recompute_scores_batch_size
                ):
                    for customer_id in chunk:
                        try:
                            self.recompute_customer(customer_id, shop_id, now)
                            result.processed += 1
                        except Exception as exc:
                            self.logger.warning(
                                "score_recompute_failed",
                                extra={
                                    "customer_id": customer_id,
                                    "shop_id": shop_id,
                                    "error": str(exc),
                                },
                            )
                            result.errors.append(
                                {"customer_id": customer_id, "shop_id": shop_id, "error": str(exc)}
                            )

        prometheus_metrics.record_job_run(
            RECOMPUTE_SCORES_LOCK, "partial" if result.errors else "success"
        )
        return result

    def recompute_customer(self, customer_id: str, shop_id: str, now: datetime) -> int:
        """Recompute and persist one customer's score and no-show stats. Returns the score."""
        window_days = settings.score_window_days
        rows = self.appointment_repository.list_history(
            customer_id, shop_id, since=now - timedelta(days=window_days)
        )

        history = bucket_history(rows, now)
        score = validate_score(calculate_score(history.buckets))
        tier = assign_tier(score, history.voided_last_90_days)
        totals = flatten_buckets(history.buckets)

        attendance, last_no_show_at = bucket_attendance(rows, now)
        attendance_totals = attendance.flatten()
        no_show_score = validate_score(calculate_no_show_score(attendance))
        no_show_risk = assign_no_show_risk(no_show_score, attendance.no_shows_last_90_days())

        stats = {
            **totals.to_payload(),
            "last_activity_at": (
                history.last_activity_at.isoformat() if history.last_activity_at else None
            ),
            "voided_last_90_days": history.voided_last_90_days,
        }

        with self.transaction():
            self.score_repository.upsert_score(
                customer_id=customer_id,
                shop_id=shop_id,
                score=score,
                tier=tier.value,
                window_days=window_days,
                stats=stats,
                computed_at=now,
            )
            self.score_repository.upsert_no_show_stats(
                customer_id=customer_id,
                shop_id=shop_id,
                counts={
                    "total_appointments": attendance_totals.total,
                    "no_show_count": attendance_totals.no_shows,
                    "late_cancel_count": attendance_totals.late_cancels,
                    "on_time_cancel_count": attendance_totals.on_time_cancels,
                    "completed_count": attendance_totals.completed,
                },
                no_show_score=no_show_score,
                no_show_risk=no_show_risk.value,
                last_no_show_at=last_no_show_at,
                computed_at=now,
            )
        return score
