"""
Unit tests for the Celery slot recovery tasks and the beat schedule.

Tasks are called directly (no broker); services and the session factory are
patched.
"""

from unittest.mock import MagicMock, patch

import pytest

from app.services.outcome_resolution_service import ResolveOutcomesResult
from app.services.score_recompute_service import RecomputeScoresResult
from app.services.slot_recovery_jobs import ExpirySweepResult
from app.tasks.beat_schedule import CELERYBEAT_SCHEDULE
from app.tasks.celery_app import celery_app
from app.tasks.slot_recovery_tasks import expire_offers, recompute_scores, resolve_outcomes

MODULE = "app.tasks.slot_recovery_tasks"


class TestExpireOffersTask:
    def test_runs_sweep_and_cleans_up(self):
        db = MagicMock()
        trigger = MagicMock()
        with patch(f"{MODULE}.SessionLocal", return_value=db), patch(
            f"{MODULE}.OfferLoopTrigger", return_value=trigger
        ), patch(f"{MODULE}._lock_store"), patch(f"{MODULE}.SlotRecoveryJobService") as service_cls:
            service_cls.return_value.run_expiry_sweep.return_value = ExpirySweepResult(
                total=1, expired=1, triggered=1
            )
            result = expire_offers(batch_size=10)

        assert result == {
            "total": 1,
            "expired": 1,
            "triggered": 1,
            "errors": [],
            "skipped": False,
            "reason": None,
        }
        service_cls.return_value.run_expiry_sweep.assert_called_once_with(batch_size=10)
        trigger.close.assert_called_once()
        db.close.assert_called_once()

    def test_closes_session_on_failure(self):
        db = MagicMock()
        with patch(f"{MODULE}.SessionLocal", return_value=db), patch(
            f"{MODULE}.OfferLoopTrigger"
        ), patch(f"{MODULE}._lock_store"), patch(f"{MODULE}.SlotRecoveryJobService") as service_cls:
            service_cls.return_value.run_expiry_sweep.side_effect = RuntimeError("boom")
            with pytest.raises(RuntimeError):
                expire_offers()

        db.close.assert_called_once()


class TestRecomputeScoresTask:
    def test_returns_summary(self):
        with patch(f"{MODULE}.SessionLocal", return_value=MagicMock()), patch(
            f"{MODULE}._lock_store"
        ), patch(f"{MODULE}.ScoreRecomputeService") as service_cls:
            service_cls.return_value.recompute_all.return_value = RecomputeScoresResult(processed=4)
            result = recompute_scores()

        assert result == {"processed": 4, "errors": 0, "error_details": [], "skipped": False}


class TestResolveOutcomesTask:
    def test_passes_limit(self):
        with patch(f"{MODULE}.SessionLocal", return_value=MagicMock()), patch(
            f"{MODULE}._lock_store"
        ), patch(f"{MODULE}.OutcomeResolutionService") as service_cls:
            service_cls.return_value.resolve_due.return_value = ResolveOutcomesResult(locked=True)
            result = resolve_outcomes(limit=25)

        assert result["locked"] is True
        service_cls.return_value.resolve_due.assert_called_once_with(limit=25)


class TestBeatSchedule:
    def test_every_job_is_scheduled(self):
        tasks = {entry["task"] for entry in CELERYBEAT_SCHEDULE.values()}
        assert tasks == {
            f"{MODULE}.expire_offers",
            f"{MODULE}.recompute_scores",
            f"{MODULE}.resolve_outcomes",
        }

    def test_scheduled_tasks_are_registered(self):
        for entry in CELERYBEAT_SCHEDULE.values():
            assert entry["task"] in celery_app.tasks

    def test_only_slot_recovery_tasks_are_registered(self):
        registered = {name for name in celery_app.tasks if name.startswith("app.")}
        assert registered == {entry["task"] for entry in CELERYBEAT_SCHEDULE.values()}

    def test_celery_uses_json(self):
        assert celery_app.conf.task_serializer == "json"
        assert celery_app.conf.beat_schedule == CELERYBEAT_SCHEDULE
