# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for the slot recovery backend.

Each job takes its own named lock, so a beat tick that overlaps a slow
previous run is skipped rather than double-processing a batch.
"""

from celery.schedules import crontab

CELERYBEAT_SCHEDULE = {
    # Retire unanswered offers and move their slots to the next customer
    "expire-slot-offers": {
        "task": "app.tasks.slot_recovery_tasks.expire_offers",
        "schedule": crontab(minute="*"),
        "options": {"expires": 55},
    },
    # Settle or void appointments once their grace period has passed
    "resolve-appointment-outcomes": {
        "task": "app.tasks.slot_recovery_tasks.resolve_outcomes",
        "schedule": crontab(minute="*/15"),
    },
    # Nightly reliability score and no-show stats refresh
    "recompute-customer-scores": {
        "task": "app.tasks.slot_recovery_tasks.recompute_scores",
        "schedule": crontab(hour=3, minute=0),
    },
}
