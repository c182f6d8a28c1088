# backend/app/tasks/__init__.py
"""
Celery tasks package for the slot recovery backend.

This package contains the periodic jobs:
- Offer expiry sweep
- Financial outcome resolution
- Reliability score recompute
"""

from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.slot_recovery_tasks import expire_offers, recompute_scores, resolve_outcomes

__all__ = [
    "BaseTask",
    "celery_app",
    "expire_offers",
    "recompute_scores",
    "resolve_outcomes",
]
