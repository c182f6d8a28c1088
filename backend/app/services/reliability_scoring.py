"""Reliability scoring: appointment outcome history -> 0-100 score -> tier."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import math
from typing import Iterable

from app.core.constants import RESOLUTION_CANCELLED_NO_REFUND, RESOLUTION_CANCELLED_REFUNDED
from app.core.enums import AppointmentStatus, FinancialOutcome, Tier
from app.core.exceptions import ScoreComputationError
from app.core.timezone_utils import ensure_utc

BASE_SCORE = 50
SETTLED_POINTS = 10
SETTLED_CAP = 50
VOIDED_PENALTY = -20
REFUNDED_PENALTY = -5
LATE_CANCEL_PENALTY = -10

LAST_30_DAYS_MULTIPLIER = 2.0
DAYS_31_TO_90_MULTIPLIER = 1.0
OVER_90_DAYS_MULTIPLIER = 0.5

TOP_MIN_SCORE = 80
TOP_MAX_VOIDS_IN_90_DAYS = 0
RISK_MAX_SCORE = 39
RISK_MIN_VOIDS_IN_90_DAYS = 2

MIN_SCORE = 0
MAX_SCORE = 100


@dataclass
class AppointmentCounts:
    settled: int = 0
    voided: int = 0
    refunded: int = 0
    late_cancels: int = 0

    def to_payload(self) -> dict[str, int]:
        return {
            "settled": self.settled,
            "voided": self.voided,
            "refunded": self.refunded,
            "late_cancels": self.late_cancels,
        }


@dataclass
class RecencyBuckets:
    last_30_days: AppointmentCounts = field(default_factory=AppointmentCounts)
    days_31_to_90: AppointmentCounts = field(default_factory=AppointmentCounts)
    over_90_days: AppointmentCounts = field(default_factory=AppointmentCounts)

    def weighted(self) -> tuple[tuple[AppointmentCounts, float], ...]:
        return (
            (self.last_30_days, LAST_30_DAYS_MULTIPLIER),
            (self.days_31_to_90, DAYS_31_TO_90_MULTIPLIER),
            (self.over_90_days, OVER_90_DAYS_MULTIPLIER),
        )


@dataclass(frozen=True)
class ScoringHistory:
    """Bucketed history of one customer at one shop, plus the facts the tier needs."""

    buckets: RecencyBuckets
    voided_last_90_days: int
    last_activity_at: datetime | None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_score(buckets: RecencyBuckets) -> int:
    """
    Recency-weighted reliability score.

    Settled appointments earn a bonus capped at +50 in total; voids, refunds
    and late cancellations subtract directly. The result is rounded and
    clamped to [0, 100].
    """
    score = float(BASE_SCORE)
    settled_bonus = 0.0

    for counts, multiplier in buckets.weighted():
        settled_bonus += counts.settled * SETTLED_POINTS * multiplier
        score += counts.voided * VOIDED_PENALTY * multiplier
        score += counts.refunded * REFUNDED_PENALTY * multiplier
        score += counts.late_cancels * LATE_CANCEL_PENALTY * multiplier

    score += min(settled_bonus, SETTLED_CAP)
    return max(MIN_SCORE, min(MAX_SCORE, _round_half_up(score)))


def assign_tier(score: int, voided_last_90_days: int) -> Tier:
    if score >= TOP_MIN_SCORE and voided_last_90_days <= TOP_MAX_VOIDS_IN_90_DAYS:
        return Tier.TOP
    if score <= RISK_MAX_SCORE or voided_last_90_days >= RISK_MIN_VOIDS_IN_90_DAYS:
        return Tier.RISK
    return Tier.NEUTRAL


def validate_score(score: float) -> int:
    """Reject a score that must not be persisted."""
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ScoreComputationError(f"Invalid score type: {type(score).__name__}")
    if not math.isfinite(score) or score < MIN_SCORE or score > MAX_SCORE:
        raise ScoreComputationError(f"Invalid score computed: {score}", details={"score": score})
    return int(score)


def flatten_buckets(buckets: RecencyBuckets) -> AppointmentCounts:
    total = AppointmentCounts()
    for counts, _ in buckets.weighted():
        total.settled += counts.settled
        total.voided += counts.voided
        total.refunded += counts.refunded
        total.late_cancels += counts.late_cancels
    return total


def bucket_history(rows: Iterable, now: datetime) -> ScoringHistory:
    """
    Bucket appointment rows by ``created_at`` age.

    Each row needs ``status``, ``financial_outcome``, ``resolution_reason`` and
    ``created_at``. Rows are expected to be pre-filtered to the scoring window.
    """
    last_30_start = now - timedelta(days=30)
    last_90_start = now - timedelta(days=90)
    buckets = RecencyBuckets()
    voided_last_90_days = 0
    last_activity_at: datetime | None = None

    for row in rows:
        created_at = ensure_utc(row.created_at)
        if created_at >= last_30_start:
            bucket = buckets.last_30_days
        elif created_at >= last_90_start:
            bucket = buckets.days_31_to_90
        else:
            bucket = buckets.over_90_days

        if (
            row.status == AppointmentStatus.BOOKED.value
            and row.financial_outcome == FinancialOutcome.SETTLED.value
        ):
            bucket.settled += 1
        elif row.financial_outcome == FinancialOutcome.VOIDED.value:
            bucket.voided += 1
            if created_at >= last_90_start:
                voided_last_90_days += 1
        elif row.resolution_reason == RESOLUTION_CANCELLED_REFUNDED:
            bucket.refunded += 1
        elif row.resolution_reason == RESOLUTION_CANCELLED_NO_REFUND:
            bucket.late_cancels += 1

        if last_activity_at is None or created_at > last_activity_at:
            last_activity_at = created_at

    return ScoringHistory(
        buckets=buckets,
        voided_last_90_days=voided_last_90_days,
        last_activity_at=last_activity_at,
    )
