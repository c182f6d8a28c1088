"""
Unit tests for cancellation_policy.py.

Eligibility compares absolute instants; the shop timezone only changes the
formatted cutoff.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.constants import (
    RESOLUTION_CANCELLED_NO_PAYMENT,
    RESOLUTION_CANCELLED_NO_REFUND,
    RESOLUTION_CANCELLED_REFUNDED,
    RESOLUTION_NO_PAYMENT_REQUIRED,
    RESOLUTION_PAYMENT_CAPTURED,
    RESOLUTION_PAYMENT_NOT_CAPTURED,
)
from app.core.enums import FinancialOutcome
from app.services.cancellation_policy import (
    backfill_cancelled_outcome,
    calculate_cancellation_eligibility,
    resolve_financial_outcome,
)

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def _eligibility(starts_in, **kwargs):
    params = dict(
        cancel_cutoff_minutes=1440,
        shop_timezone="UTC",
        payment_status="succeeded",
        appointment_status="booked",
        refund_before_cutoff=True,
    )
    params.update(kwargs)
    return calculate_cancellation_eligibility(NOW + starts_in, now=NOW, **params)


class TestCancellationEligibility:
    def test_well_before_cutoff_is_refundable(self):
        result = _eligibility(timedelta(days=7))
        assert result.is_eligible_for_refund is True
        assert result.is_before_cutoff is True
        assert result.time_until_cutoff == timedelta(days=6)

    def test_inside_cutoff_is_not_refundable(self):
        result = _eligibility(timedelta(hours=12))
        assert result.is_eligible_for_refund is False
        assert result.is_before_cutoff is False
        assert result.time_until_cutoff == timedelta(hours=-12)

    def test_policy_without_refunds(self):
        result = _eligibility(timedelta(days=7), refund_before_cutoff=False)
        assert result.is_before_cutoff is True
        assert result.refund_allowed_by_policy is False
        assert result.is_eligible_for_refund is False

    def test_unpaid_appointment_is_not_refundable(self):
        result = _eligibility(timedelta(days=7), payment_status=None)
        assert result.payment_succeeded is False
        assert result.is_eligible_for_refund is False

    def test_only_booked_appointments_are_refundable(self):
        result = _eligibility(timedelta(days=7), appointment_status="cancelled")
        assert result.is_eligible_for_refund is False

    def test_cutoff_formatted_in_shop_timezone_across_dst(self):
        result = _eligibility(timedelta(days=7), shop_timezone="America/New_York")
        assert result.cutoff_time == datetime(2026, 3, 8, 15, 0, tzinfo=timezone.utc)
        assert result.cutoff_time_formatted == "Mar 8, 2026 at 11:00 AM EDT"

    def test_unknown_timezone_formats_in_utc(self):
        result = _eligibility(timedelta(days=7), shop_timezone="Not/AZone")
        assert result.cutoff_time_formatted.endswith("UTC")

    def test_payload_is_json_friendly(self):
        payload = _eligibility(timedelta(days=2)).to_payload()
        assert payload["time_until_cutoff_seconds"] == 86400.0
        assert payload["cutoff_time"] == "2026-03-03T15:00:00+00:00"


class TestResolveFinancialOutcome:
    @pytest.mark.parametrize(
        "payment_required,payment_status,outcome,reason",
        [
            (False, None, FinancialOutcome.VOIDED, RESOLUTION_NO_PAYMENT_REQUIRED),
            (False, "succeeded", FinancialOutcome.VOIDED, RESOLUTION_NO_PAYMENT_REQUIRED),
            (True, "succeeded", FinancialOutcome.SETTLED, RESOLUTION_PAYMENT_CAPTURED),
            (True, "requires_payment_method", FinancialOutcome.VOIDED, RESOLUTION_PAYMENT_NOT_CAPTURED),
            (True, None, FinancialOutcome.VOIDED, RESOLUTION_PAYMENT_NOT_CAPTURED),
        ],
    )
    def test_outcome(self, payment_required, payment_status, outcome, reason):
        resolved = resolve_financial_outcome(payment_required, payment_status)
        assert resolved.financial_outcome is outcome
        assert resolved.resolution_reason == reason


class TestBackfillCancelledOutcome:
    def test_refund_amount_wins(self):
        resolved = backfill_cancelled_outcome(500, None, "succeeded")
        assert resolved.financial_outcome is FinancialOutcome.REFUNDED
        assert resolved.resolution_reason == RESOLUTION_CANCELLED_REFUNDED

    def test_refund_id_alone_counts_as_refunded(self):
        resolved = backfill_cancelled_outcome(0, "re_123", None)
        assert resolved.financial_outcome is FinancialOutcome.REFUNDED

    def test_captured_without_refund_is_settled(self):
        resolved = backfill_cancelled_outcome(0, None, "succeeded")
        assert resolved.financial_outcome is FinancialOutcome.SETTLED
        assert resolved.resolution_reason == RESOLUTION_CANCELLED_NO_REFUND

    def test_nothing_captured_is_voided(self):
        resolved = backfill_cancelled_outcome(0, None, None)
        assert resolved.financial_outcome is FinancialOutcome.VOIDED
        assert resolved.resolution_reason == RESOLUTION_CANCELLED_NO_PAYMENT
