"""Cancellation eligibility and financial outcome resolution."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.core.constants import (
    PAYMENT_SUCCEEDED,
    RESOLUTION_CANCELLED_NO_PAYMENT,
    RESOLUTION_CANCELLED_NO_REFUND,
    RESOLUTION_CANCELLED_REFUNDED,
    RESOLUTION_NO_PAYMENT_REQUIRED,
    RESOLUTION_PAYMENT_CAPTURED,
    RESOLUTION_PAYMENT_NOT_CAPTURED,
)
from app.core.enums import AppointmentStatus, FinancialOutcome
from app.core.timezone_utils import ensure_utc, format_display_time, utcnow


@dataclass(frozen=True)
class CancellationEligibility:
    cutoff_time: datetime
    is_eligible_for_refund: bool
    is_before_cutoff: bool
    refund_allowed_by_policy: bool
    payment_succeeded: bool
    time_until_cutoff: timedelta
    cutoff_time_formatted: str

    def to_payload(self) -> dict[str, object]:
        return {
            "cutoff_time": self.cutoff_time.isoformat(),
            "is_eligible_for_refund": self.is_eligible_for_refund,
            "is_before_cutoff": self.is_before_cutoff,
            "refund_allowed_by_policy": self.refund_allowed_by_policy,
            "payment_succeeded": self.payment_succeeded,
            "time_until_cutoff_seconds": self.time_until_cutoff.total_seconds(),
            "cutoff_time_formatted": self.cutoff_time_formatted,
        }


@dataclass(frozen=True)
class ResolvedOutcome:
    financial_outcome: FinancialOutcome
    resolution_reason: str


def calculate_cancellation_eligibility(
    starts_at: datetime,
    cancel_cutoff_minutes: int,
    shop_timezone: Optional[str],
    payment_status: Optional[str],
    appointment_status: str,
    refund_before_cutoff: bool,
    now: Optional[datetime] = None,
) -> CancellationEligibility:
    """
    Decide whether cancelling now earns a refund.

    The shop timezone only affects the formatted cutoff; the comparison is
    on absolute instants.
    """
    now = ensure_utc(now) if now is not None else utcnow()
    cutoff_time = ensure_utc(starts_at) - timedelta(minutes=cancel_cutoff_minutes)
    is_before_cutoff = now < cutoff_time
    payment_succeeded = payment_status == PAYMENT_SUCCEEDED

    eligible = (
        refund_before_cutoff
        and is_before_cutoff
        and payment_succeeded
        and appointment_status == AppointmentStatus.BOOKED.value
    )

    return CancellationEligibility(
        cutoff_time=cutoff_time,
        is_eligible_for_refund=eligible,
        is_before_cutoff=is_before_cutoff,
        refund_allowed_by_policy=refund_before_cutoff,
        payment_succeeded=payment_succeeded,
        time_until_cutoff=cutoff_time - now,
        cutoff_time_formatted=format_display_time(cutoff_time, shop_timezone),
    )


def resolve_financial_outcome(
    payment_required: bool, payment_status: Optional[str]
) -> ResolvedOutcome:
    """Outcome of a booked appointment once it has ended."""
    if not payment_required:
        return ResolvedOutcome(FinancialOutcome.VOIDED, RESOLUTION_NO_PAYMENT_REQUIRED)
    if payment_status == PAYMENT_SUCCEEDED:
        return ResolvedOutcome(FinancialOutcome.SETTLED, RESOLUTION_PAYMENT_CAPTURED)
    return ResolvedOutcome(FinancialOutcome.VOIDED, RESOLUTION_PAYMENT_NOT_CAPTURED)


def backfill_cancelled_outcome(
    refunded_amount_cents: int,
    refund_id: Optional[str],
    payment_status: Optional[str],
) -> ResolvedOutcome:
    """Outcome of a cancelled appointment: refunded, else settled, else voided."""
    if (refunded_amount_cents or 0) > 0 or refund_id:
        return ResolvedOutcome(FinancialOutcome.REFUNDED, RESOLUTION_CANCELLED_REFUNDED)
    if payment_status == PAYMENT_SUCCEEDED:
        return ResolvedOutcome(FinancialOutcome.SETTLED, RESOLUTION_CANCELLED_NO_REFUND)
    return ResolvedOutcome(FinancialOutcome.VOIDED, RESOLUTION_CANCELLED_NO_PAYMENT)
