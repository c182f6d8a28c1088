# backend/app/services/slot_recovery_jobs.py
"""
Scheduled slot recovery job: the offer expiry sweep.

The sweep runs under the ``expire-offers`` job lock. Inside it, each due
offer is expired with a compare-and-swap and the next offer is triggered for
its opening. One offer's failure is recorded and the batch carries on.
"""

from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import EXPIRE_OFFERS_LOCK
from ..core.lock_store import CooldownLockStore
from ..core.timezone_utils import utcnow
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .offer_loop_trigger import OfferLoopTrigger

logger = logging.getLogger(__name__)


@dataclass
class ExpirySweepResult:
    total: int = 0
    expired: int = 0
    triggered: int = 0
    errors: List[str] = field(default_factory=list)
    skipped: bool = False
    reason: Optional[str] = None


class SlotRecoveryJobService(BaseService):
    def __init__(self, db: Session, lock_store: CooldownLockStore, trigger: OfferLoopTrigger):
        super().__init__(db)
        self.lock_store = lock_store
        self.trigger = trigger
        self.offer_repository = RepositoryFactory.create_slot_offer_repository(db)

    @BaseService.measure_operation("expire_offers")
    def run_expiry_sweep(
        self, now: Optional[datetime] = None, batch_size: Optional[int] = None
    ) -> ExpirySweepResult:
        with self.lock_store.job_lock(EXPIRE_OFFERS_LOCK) as acquired:
            if not acquired:
                self.logger.info("expire_offers_locked", extra={"job": EXPIRE_OFFERS_LOCK})
                prometheus_metrics.record_job_run(EXPIRE_OFFERS_LOCK, "skipped")
                return ExpirySweepResult(skipped=True, reason="locked")

            result = self._sweep(now or utcnow(), batch_size or settings.expire_offers_batch_size)

        prometheus_metrics.record_job_run(
            EXPIRE_OFFERS_LOCK, "partial" if result.errors else "success"
        )
        self.logger.info(
            "expire_offers_completed",
            extra={
                "job": EXPIRE_OFFERS_LOCK,
                "total": result.total,
                "expired": result.expired,
                "triggered": result.triggered,
                "errors": len(result.errors),
            },
        )
        return result

    def _sweep(self, now: datetime, batch_size: int) -> ExpirySweepResult:
        due = self.offer_repository.find_expired_sent(now, limit=batch_size)
        result = ExpirySweepResult(total=len(due))

        for offer in due:
            offer_id = offer.id
            slot_opening_id = offer.slot_opening_id
            try:
                with self.transaction():
                    expired = self.offer_repository.mark_expired(offer_id)
            except Exception as exc:
                self.logger.error(
                    "offer_expire_failed",
                    extra={"offer_id": offer_id, "error": str(exc)},
                )
                result.errors.append(f"Offer {offer_id}: {exc}")
                continue

            if not expired:
                self.logger.debug("offer_already_resolved", extra={"offer_id": offer_id})
                continue

            result.expired += 1
            prometheus_metrics.record_slot_offer("expired")

            trigger = self.trigger.trigger(slot_opening_id)
            if trigger.ok:
                result.triggered += 1
            else:
                result.errors.append(f"Slot {slot_opening_id}: {trigger.error}")

        return result
