"""
Route tests for /api/v1/jobs.

Services are replaced through app.dependency_overrides; these tests cover
authentication, request validation and response shapes only.
"""

from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from pydantic import SecretStr
import pytest

from app.api.dependencies.services import (
    get_outcome_resolution_service,
    get_score_recompute_service,
    get_slot_recovery_job_service,
    get_slot_recovery_service,
)
from app.core.config import settings
from app.core.exceptions import NotFoundException
from app.main import app
from app.services.outcome_resolution_service import ResolveOutcomesResult
from app.services.score_recompute_service import RecomputeScoresResult
from app.services.slot_recovery_jobs import ExpirySweepResult
from app.services.slot_recovery_service import OfferLoopOutcome

CRON = {"X-Cron-Secret": "cron-s3cret"}
INTERNAL = {"X-Internal-Secret": "internal-s3cret"}


@pytest.fixture(autouse=True)
def secrets(monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", SecretStr("cron-s3cret"))
    monkeypatch.setattr(settings, "internal_secret", SecretStr("internal-s3cret"))


@pytest.fixture
def services():
    mocks = {
        get_slot_recovery_service: MagicMock(),
        get_slot_recovery_job_service: MagicMock(),
        get_score_recompute_service: MagicMock(),
        get_outcome_resolution_service: MagicMock(),
    }
    for dependency, mock in mocks.items():
        app.dependency_overrides[dependency] = (lambda m: lambda: m)(mock)
    yield mocks
    app.dependency_overrides.clear()


@pytest.fixture
def client(services):
    return TestClient(app)


class TestSharedSecrets:
    def test_missing_header_is_unauthorized(self, client):
        response = client.post("/api/v1/jobs/expire-offers")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_JOB_SECRET"

    def test_wrong_secret_is_unauthorized(self, client):
        response = client.post("/api/v1/jobs/expire-offers", headers={"X-Cron-Secret": "nope"})
        assert response.status_code == 401

    def test_unconfigured_secret_fails_closed(self, client, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", None)

        response = client.post("/api/v1/jobs/recompute-scores", headers=CRON)

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "SECRET_NOT_CONFIGURED"

    def test_offer_loop_rejects_cron_secret(self, client):
        response = client.post(
            "/api/v1/jobs/offer-loop", json={"slot_opening_id": "SLOT1"}, headers=CRON
        )
        assert response.status_code == 401

    def test_service_not_called_when_unauthorized(self, client, services):
        client.post("/api/v1/jobs/resolve-outcomes")
        services[get_outcome_resolution_service].resolve_due.assert_not_called()


class TestOfferLoop:
    def test_advances_slot(self, client, services):
        service = services[get_slot_recovery_service]
        service.run_offer_loop_step.return_value = OfferLoopOutcome(
            success=True, customer_id="C1", customer_phone="+15551234567", offer_id="O1"
        )

        response = client.post(
            "/api/v1/jobs/offer-loop", json={"slot_opening_id": "SLOT1"}, headers=INTERNAL
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "customer_id": "C1",
            "customer_phone": "+15551234567",
            "offer_id": "O1",
        }
        service.run_offer_loop_step.assert_called_once_with("SLOT1")

    def test_skipped_response(self, client, services):
        services[get_slot_recovery_service].run_offer_loop_step.return_value = OfferLoopOutcome(
            success=True, skipped=True, reason="slot_status_filled"
        )

        response = client.post(
            "/api/v1/jobs/offer-loop", json={"slot_opening_id": "SLOT1"}, headers=INTERNAL
        )

        assert response.json() == {
            "success": True,
            "skipped": True,
            "reason": "slot_status_filled",
        }

    def test_completed_response(self, client, services):
        services[get_slot_recovery_service].run_offer_loop_step.return_value = OfferLoopOutcome(
            success=True, completed=True, reason="no_eligible_customers"
        )

        response = client.post(
            "/api/v1/jobs/offer-loop", json={"slot_opening_id": "SLOT1"}, headers=INTERNAL
        )

        assert response.json()["completed"] is True

    @pytest.mark.parametrize("body", [None, {}, {"slot_opening_id": "  "}])
    def test_missing_slot_id(self, client, services, body):
        response = client.post("/api/v1/jobs/offer-loop", json=body, headers=INTERNAL)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "MISSING_SLOT_OPENING_ID"
        services[get_slot_recovery_service].run_offer_loop_step.assert_not_called()

    def test_unknown_slot(self, client, services):
        services[get_slot_recovery_service].run_offer_loop_step.side_effect = NotFoundException(
            "Slot opening not found"
        )

        response = client.post(
            "/api/v1/jobs/offer-loop", json={"slot_opening_id": "SLOT1"}, headers=INTERNAL
        )

        assert response.status_code == 404


class TestScheduledJobs:
    def test_expire_offers(self, client, services):
        services[get_slot_recovery_job_service].run_expiry_sweep.return_value = ExpirySweepResult(
            total=2, expired=2, triggered=1, errors=["Slot S2: Offer loop failed: 500"]
        )

        response = client.post("/api/v1/jobs/expire-offers", headers=CRON)

        assert response.status_code == 200
        assert response.json() == {
            "total": 2,
            "expired": 2,
            "triggered": 1,
            "errors": ["Slot S2: Offer loop failed: 500"],
        }

    def test_expire_offers_locked(self, client, services):
        services[get_slot_recovery_job_service].run_expiry_sweep.return_value = ExpirySweepResult(
            skipped=True, reason="locked"
        )

        response = client.post("/api/v1/jobs/expire-offers", headers=CRON)

        assert response.status_code == 200
        assert response.json() == {"skipped": True, "reason": "locked"}

    def test_recompute_scores(self, client, services):
        result = RecomputeScoresResult(
            processed=3, errors=[{"customer_id": "C1", "shop_id": "S1", "error": "bad"}]
        )
        services[get_score_recompute_service].recompute_all.return_value = result

        response = client.post("/api/v1/jobs/recompute-scores", headers=CRON)

        assert response.json() == {
            "processed": 3,
            "errors": 1,
            "error_details": [{"customer_id": "C1", "shop_id": "S1", "error": "bad"}],
        }

    def test_recompute_scores_locked(self, client, services):
        services[get_score_recompute_service].recompute_all.return_value = RecomputeScoresResult(
            skipped=True, reason="locked"
        )

        response = client.post("/api/v1/jobs/recompute-scores", headers=CRON)

        assert response.json() == {"skipped": True, "reason": "locked"}

    def test_resolve_outcomes_passes_limit(self, client, services):
        service = services[get_outcome_resolution_service]
        service.resolve_due.return_value = ResolveOutcomesResult(
            total=4, resolved=3, skipped=1, backfilled=2
        )

        response = client.post("/api/v1/jobs/resolve-outcomes?limit=5", headers=CRON)

        assert response.json() == {
            "total": 4,
            "resolved": 3,
            "skipped": 1,
            "backfilled": 2,
            "errors": [],
        }
        service.resolve_due.assert_called_once_with(limit=5)

    def test_resolve_outcomes_locked(self, client, services):
        services[get_outcome_resolution_service].resolve_due.return_value = ResolveOutcomesResult(
            locked=True
        )

        response = client.post("/api/v1/jobs/resolve-outcomes", headers=CRON)

        assert response.json() == {"skipped": True, "reason": "locked"}
