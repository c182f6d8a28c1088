"""
Celery tasks for the periodic slot recovery jobs.

Each task opens its own session, wires the job service with the shared
Redis-backed lock store and offer-loop trigger, and runs the same driver the
HTTP job endpoints run. Beat retries by running the next tick, so tasks do
not retry themselves.
"""

from __future__ import annotations

from dataclasses import asdict
import logging
from typing import Any, Callable, Dict, Optional, TypeVar, cast

from app.core.lock_store import CooldownLockStore
from app.core.redis import get_redis_client
from app.database import SessionLocal
from app.services.offer_loop_trigger import OfferLoopTrigger
from app.services.outcome_resolution_service import OutcomeResolutionService
from app.services.score_recompute_service import ScoreRecomputeService
from app.services.slot_recovery_jobs import SlotRecoveryJobService
from app.tasks.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)

TaskCallable = TypeVar("TaskCallable", bound=Callable[..., Any])


def typed_task(*task_args: Any, **task_kwargs: Any) -> Callable[[TaskCallable], TaskCallable]:
    return cast(Callable[[TaskCallable], TaskCallable], celery_app.task(*task_args, **task_kwargs))


def _lock_store() -> CooldownLockStore:
    return CooldownLockStore(get_redis_client())


@typed_task(base=BaseTask, name="app.tasks.slot_recovery_tasks.expire_offers")
def expire_offers(batch_size: Optional[int] = None) -> Dict[str, Any]:
    """Expire due offers and trigger the next offer for each slot."""
    db = SessionLocal()
    trigger = OfferLoopTrigger()
    try:
        service = SlotRecoveryJobService(db, _lock_store(), trigger)
        result = service.run_expiry_sweep(batch_size=batch_size)
        return asdict(result)
    finally:
        trigger.close()
        db.close()


@typed_task(base=BaseTask, name="app.tasks.slot_recovery_tasks.recompute_scores")
def recompute_scores() -> Dict[str, Any]:
    """Recompute reliability scores and no-show stats for every customer."""
    db = SessionLocal()
    try:
        result = ScoreRecomputeService(db, _lock_store()).recompute_all()
        return {
            "processed": result.processed,
            "errors": len(result.errors),
            "error_details": result.error_details,
            "skipped": result.skipped,
        }
    finally:
        db.close()


@typed_task(base=BaseTask, name="app.tasks.slot_recovery_tasks.resolve_outcomes")
def resolve_outcomes(limit: Optional[int] = None) -> Dict[str, Any]:
    """Resolve financial outcomes for appointments past their grace period."""
    db = SessionLocal()
    try:
        result = OutcomeResolutionService(db, _lock_store()).resolve_due(limit=limit)
        if result.locked:
            logger.info("resolve_outcomes task skipped: job locked")
        return asdict(result)
    finally:
        db.close()
