"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. Process-wide clients
(Redis, Twilio, the offer-loop HTTP client) are created once and shared.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.lock_store import CooldownLockStore
from ...core.redis import get_redis_client
from ...services.offer_loop_trigger import OfferLoopTrigger
from ...services.outcome_resolution_service import OutcomeResolutionService
from ...services.score_recompute_service import ScoreRecomputeService
from ...services.slot_recovery_jobs import SlotRecoveryJobService
from ...services.slot_recovery_service import SlotRecoveryService
from ...services.sms_service import SMSService
from .database import get_db

logger = logging.getLogger(__name__)


def get_lock_store() -> CooldownLockStore:
    """Cooldown & lock store over the shared Redis client."""
    return CooldownLockStore(get_redis_client())


@lru_cache(maxsize=1)
def get_sms_service() -> SMSService:
    """Get singleton SMS service instance."""
    return SMSService()


@lru_cache(maxsize=1)
def get_offer_loop_trigger() -> OfferLoopTrigger:
    """Get singleton offer-loop trigger instance."""
    return OfferLoopTrigger()


def get_slot_recovery_service(
    db: Session = Depends(get_db),
    lock_store: CooldownLockStore = Depends(get_lock_store),
    sms_service: SMSService = Depends(get_sms_service),
    trigger: OfferLoopTrigger = Depends(get_offer_loop_trigger),
) -> SlotRecoveryService:
    return SlotRecoveryService(db, lock_store, sms_service, trigger)


def get_slot_recovery_job_service(
    db: Session = Depends(get_db),
    lock_store: CooldownLockStore = Depends(get_lock_store),
    trigger: OfferLoopTrigger = Depends(get_offer_loop_trigger),
) -> SlotRecoveryJobService:
    return SlotRecoveryJobService(db, lock_store, trigger)


def get_score_recompute_service(
    db: Session = Depends(get_db),
    lock_store: CooldownLockStore = Depends(get_lock_store),
) -> ScoreRecomputeService:
    return ScoreRecomputeService(db, lock_store)


def get_outcome_resolution_service(
    db: Session = Depends(get_db),
    lock_store: CooldownLockStore = Depends(get_lock_store),
) -> OutcomeResolutionService:
    return OutcomeResolutionService(db, lock_store)
