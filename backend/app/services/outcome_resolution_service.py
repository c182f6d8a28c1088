# backend/app/services/outcome_resolution_service.py
"""
Resolve the financial outcome of appointments after they end.

Booked appointments are resolved once the shop's grace period after
``ends_at`` has passed. Cancelled appointments that never got an outcome are
backfilled. Each write only lands if the outcome is still unresolved.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import RESOLVE_OUTCOMES_LOCK
from ..core.lock_store import CooldownLockStore
from ..core.timezone_utils import utcnow
from ..models.appointment import Appointment
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .cancellation_policy import backfill_cancelled_outcome, resolve_financial_outcome

logger = logging.getLogger(__name__)

DEFAULT_GRACE_MINUTES = 30
BACKFILL_BATCH_SIZE = 50


@dataclass
class ResolveOutcomesResult:
    total: int = 0
    resolved: int = 0
    skipped: int = 0
    backfilled: int = 0
    errors: List[str] = field(default_factory=list)
    locked: bool = False


class OutcomeResolutionService(BaseService):
    def __init__(self, db: Session, lock_store: CooldownLockStore):
        super().__init__(db)
        self.lock_store = lock_store
        self.shop_repository = RepositoryFactory.create_shop_repository(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)

    @staticmethod
    def clamp_limit(limit: Optional[int]) -> int:
        if limit is None or limit <= 0:
            return settings.resolve_outcomes_limit
        return min(limit, settings.resolve_outcomes_max_limit)

    @BaseService.measure_operation("resolve_outcomes")
    def resolve_due(
        self, limit: Optional[int] = None, now: Optional[datetime] = None
    ) -> ResolveOutcomesResult:
        limit = self.clamp_limit(limit)
        with self.lock_store.job_lock(RESOLVE_OUTCOMES_LOCK) as acquired:
            if not acquired:
                self.logger.info("resolve_outcomes_locked", extra={"job": RESOLVE_OUTCOMES_LOCK})
                prometheus_metrics.record_job_run(RESOLVE_OUTCOMES_LOCK, "skipped")
                return ResolveOutcomesResult(locked=True)

            now = now or utcnow()
            result = ResolveOutcomesResult()
            self._resolve_ended(result, now, limit)
            self._backfill_cancelled(result, now)

        prometheus_metrics.record_job_run(
            RESOLVE_OUTCOMES_LOCK, "partial" if result.errors else "success"
        )
        self.logger.info(
            "resolve_outcomes_completed",
            extra={
                "job": RESOLVE_OUTCOMES_LOCK,
                "total": result.total,
                "resolved": result.resolved,
                "skipped": result.skipped,
                "backfilled": result.backfilled,
            },
        )
        return result

    def _resolve_ended(self, result: ResolveOutcomesResult, now: datetime, limit: int) -> None:
        remaining = limit
        for shop_id in self.shop_repository.list_ids():
            if remaining <= 0:
                break
            policy = self.shop_repository.get_policy(shop_id)
            grace = policy.resolution_grace_minutes if policy is not None else DEFAULT_GRACE_MINUTES
            due = self.appointment_repository.find_unresolved_ended_before(
                shop_id, now - timedelta(minutes=grace), remaining
            )
            remaining -= len(due)
            result.total += len(due)

            for appointment in due:
                self._resolve_one(result, appointment, now)

    def _resolve_one(
        self, result: ResolveOutcomesResult, appointment: Appointment, now: datetime
    ) -> None:
        payment_status = appointment.payment.status if appointment.payment else None
        outcome = resolve_financial_outcome(appointment.payment_required, payment_status)
        try:
            with self.transaction():
                updated = self.appointment_repository.resolve_outcome(
                    appointment.id, outcome.financial_outcome, outcome.resolution_reason, now
                )
        except Exception as exc:
            self.logger.error(
                "outcome_resolution_failed",
                extra={"appointment_id": appointment.id, "error": str(exc)},
            )
            result.errors.append(f"Appointment {appointment.id}: {exc}")
            return

        if updated:
            result.resolved += 1
        else:
            result.skipped += 1

    def _backfill_cancelled(self, result: ResolveOutcomesResult, now: datetime) -> None:
        for appointment in self.appointment_repository.find_cancelled_unresolved(
            BACKFILL_BATCH_SIZE
        ):
            payment = appointment.payment
            outcome = backfill_cancelled_outcome(
                payment.refunded_amount_cents if payment else 0,
                payment.refund_id if payment else None,
                payment.status if payment else None,
            )
            try:
                with self.transaction():
                    updated = self.appointment_repository.resolve_outcome(
                        appointment.id, outcome.financial_outcome, outcome.resolution_reason, now
                    )
            except Exception as exc:
                self.logger.error(
                    "outcome_backfill_failed",
                    extra={"appointment_id": appointment.id, "error": str(exc)},
                )
                result.errors.append(f"Appointment {appointment.id}: {exc}")
                continue
            if updated:
                result.backfilled += 1
