# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .database import get_db
from .services import (
    get_lock_store,
    get_offer_loop_trigger,
    get_outcome_resolution_service,
    get_score_recompute_service,
    get_slot_recovery_job_service,
    get_slot_recovery_service,
    get_sms_service,
)

__all__ = [
    # Database
    "get_db",
    # Clients
    "get_lock_store",
    "get_offer_loop_trigger",
    "get_sms_service",
    # Services
    "get_outcome_resolution_service",
    "get_score_recompute_service",
    "get_slot_recovery_job_service",
    "get_slot_recovery_service",
]
