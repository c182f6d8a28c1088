"""Tests for the offer expiry sweep."""

from datetime import timedelta

import pytest

from app.core.constants import EXPIRE_OFFERS_LOCK
from app.core.enums import SlotOfferStatus
from app.services.offer_loop_trigger import TriggerResult
from app.services.slot_recovery_jobs import SlotRecoveryJobService


@pytest.fixture
def job_service(db, lock_store, mock_trigger):
    return SlotRecoveryJobService(db, lock_store, mock_trigger)


class TestExpirySweep:
    def test_expires_due_offer_and_triggers_next(self, job_service, seed, db, mock_trigger, now):
        shop = seed.shop()
        opening = seed.opening(shop)
        offer = seed.offer(opening, seed.customer(shop), sent_at=now - timedelta(minutes=20))

        result = job_service.run_expiry_sweep(now=now)

        assert result.skipped is False
        assert (result.total, result.expired, result.triggered) == (1, 1, 1)
        assert result.errors == []
        db.refresh(offer)
        assert offer.status == SlotOfferStatus.EXPIRED.value
        mock_trigger.trigger.assert_called_once_with(opening.id)

    def test_offer_on_filled_slot_is_left_alone(self, job_service, seed, db, mock_trigger, now):
        shop = seed.shop()
        filled = seed.opening(shop, status="filled")
        offer = seed.offer(filled, seed.customer(shop), sent_at=now - timedelta(minutes=20))

        result = job_service.run_expiry_sweep(now=now)

        assert result.total == 0
        db.refresh(offer)
        assert offer.status == SlotOfferStatus.SENT.value
        mock_trigger.trigger.assert_not_called()

    def test_unexpired_offer_is_left_alone(self, job_service, seed, now):
        shop = seed.shop()
        seed.offer(seed.opening(shop), seed.customer(shop), sent_at=now - timedelta(minutes=5))

        assert job_service.run_expiry_sweep(now=now).total == 0

    def test_trigger_failure_is_reported(self, job_service, seed, mock_trigger, now):
        shop = seed.shop()
        opening = seed.opening(shop)
        seed.offer(opening, seed.customer(shop), sent_at=now - timedelta(minutes=20))
        mock_trigger.trigger.return_value = TriggerResult(ok=False, error="Offer loop failed: 502")

        result = job_service.run_expiry_sweep(now=now)

        assert result.expired == 1
        assert result.triggered == 0
        assert result.errors == [f"Slot {opening.id}: Offer loop failed: 502"]

    def test_batch_size_limits_work(self, job_service, seed, now):
        shop = seed.shop()
        customer = seed.customer(shop)
        for day in range(3):
            opening = seed.opening(shop, starts_at=now + timedelta(days=day + 2))
            seed.offer(opening, customer, sent_at=now - timedelta(minutes=30 + day))

        result = job_service.run_expiry_sweep(now=now, batch_size=2)

        assert result.total == 2
        assert result.expired == 2

    def test_held_lock_skips_the_run(self, job_service, seed, db, lock_store, mock_trigger, now):
        shop = seed.shop()
        offer = seed.offer(
            seed.opening(shop), seed.customer(shop), sent_at=now - timedelta(minutes=20)
        )
        lock_store.try_acquire_lock(EXPIRE_OFFERS_LOCK)

        result = job_service.run_expiry_sweep(now=now)

        assert result.skipped is True
        assert result.reason == "locked"
        db.refresh(offer)
        assert offer.status == SlotOfferStatus.SENT.value
        mock_trigger.trigger.assert_not_called()

    def test_lock_released_after_run(self, job_service, lock_store, now):
        job_service.run_expiry_sweep(now=now)
        assert lock_store.try_acquire_lock(EXPIRE_OFFERS_LOCK) is True
