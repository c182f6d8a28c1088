"""No-show risk scoring: attendance history (+ optional booking context) -> score -> risk."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import math
from typing import Iterable, Optional

from app.core.constants import RESOLUTION_CANCELLED_NO_REFUND, RESOLUTION_CANCELLED_REFUNDED
from app.core.enums import AppointmentStatus, FinancialOutcome, NoShowRisk
from app.core.timezone_utils import ensure_utc

BASE_SCORE = 75
COMPLETED_POINTS = 5
COMPLETED_CAP = 25
NO_SHOW_PENALTY = -15
LATE_CANCEL_PENALTY = -5
ON_TIME_CANCEL_PENALTY = -2

SHORT_LEAD_TIME_HOURS = 24
SHORT_LEAD_TIME_PENALTY = -10
EARLY_MORNING_START_HOUR = 6
EARLY_MORNING_END_HOUR = 9
EARLY_MORNING_PENALTY = -5
NO_PAYMENT_PENALTY = -5

LOW_MIN_SCORE = 70
LOW_MAX_NO_SHOWS_IN_90_DAYS = 0
HIGH_MAX_SCORE = 39
HIGH_MIN_NO_SHOWS_IN_90_DAYS = 2


@dataclass
class AttendanceCounts:
    completed: int = 0
    no_shows: int = 0
    late_cancels: int = 0
    on_time_cancels: int = 0

    @property
    def total(self) -> int:
        return self.completed + self.no_shows + self.late_cancels + self.on_time_cancels


@dataclass
class AttendanceBuckets:
    last_30_days: AttendanceCounts = field(default_factory=AttendanceCounts)
    days_31_to_90: AttendanceCounts = field(default_factory=AttendanceCounts)
    days_91_to_180: AttendanceCounts = field(default_factory=AttendanceCounts)

    def weighted(self) -> tuple[tuple[AttendanceCounts, float], ...]:
        return (
            (self.last_30_days, 1.5),
            (self.days_31_to_90, 1.0),
            (self.days_91_to_180, 0.5),
        )

    def no_shows_last_90_days(self) -> int:
        return self.last_30_days.no_shows + self.days_31_to_90.no_shows

    def flatten(self) -> AttendanceCounts:
        total = AttendanceCounts()
        for counts, _ in self.weighted():
            total.completed += counts.completed
            total.no_shows += counts.no_shows
            total.late_cancels += counts.late_cancels
            total.on_time_cancels += counts.on_time_cancels
        return total


@dataclass(frozen=True)
class BookingContext:
    lead_time_hours: float
    appointment_hour: int
    payment_required: bool


def calculate_no_show_score(
    buckets: AttendanceBuckets, context: Optional[BookingContext] = None
) -> int:
    score = float(BASE_SCORE)
    completed_points = 0.0

    for counts, multiplier in buckets.weighted():
        completed_points += counts.completed * COMPLETED_POINTS * multiplier
        score += counts.no_shows * NO_SHOW_PENALTY * multiplier
        score += counts.late_cancels * LATE_CANCEL_PENALTY * multiplier
        score += counts.on_time_cancels * ON_TIME_CANCEL_PENALTY * multiplier

    score += min(completed_points, COMPLETED_CAP)

    if context is not None:
        if context.lead_time_hours < SHORT_LEAD_TIME_HOURS:
            score += SHORT_LEAD_TIME_PENALTY
        if EARLY_MORNING_START_HOUR <= context.appointment_hour < EARLY_MORNING_END_HOUR:
            score += EARLY_MORNING_PENALTY
        if not context.payment_required:
            score += NO_PAYMENT_PENALTY

    return max(0, min(100, int(math.floor(score + 0.5))))


def assign_no_show_risk(score: int, no_shows_last_90_days: int) -> NoShowRisk:
    if score >= LOW_MIN_SCORE and no_shows_last_90_days <= LOW_MAX_NO_SHOWS_IN_90_DAYS:
        return NoShowRisk.LOW
    if score <= HIGH_MAX_SCORE or no_shows_last_90_days >= HIGH_MIN_NO_SHOWS_IN_90_DAYS:
        return NoShowRisk.HIGH
    return NoShowRisk.MEDIUM


def bucket_attendance(
    rows: Iterable, now: datetime
) -> tuple[AttendanceBuckets, Optional[datetime]]:
    """
    Bucket appointment rows by ``created_at`` age.

    A booked appointment that ended without a resolved outcome counts as a
    no-show. Returns the buckets and the end time of the latest no-show.
    """
    last_30_start = now - timedelta(days=30)
    last_90_start = now - timedelta(days=90)
    buckets = AttendanceBuckets()
    last_no_show_at: Optional[datetime] = None

    for row in rows:
        created_at = ensure_utc(row.created_at)
        if created_at >= last_30_start:
            bucket = buckets.last_30_days
        elif created_at >= last_90_start:
            bucket = buckets.days_31_to_90
        else:
            bucket = buckets.days_91_to_180

        booked = row.status == AppointmentStatus.BOOKED.value
        cancelled = row.status == AppointmentStatus.CANCELLED.value
        ends_at = ensure_utc(row.ends_at)

        if booked and row.financial_outcome == FinancialOutcome.SETTLED.value:
            bucket.completed += 1
        elif booked and row.financial_outcome == FinancialOutcome.UNRESOLVED.value and ends_at < now:
            bucket.no_shows += 1
            if last_no_show_at is None or ends_at > last_no_show_at:
                last_no_show_at = ends_at
        elif cancelled and row.resolution_reason == RESOLUTION_CANCELLED_NO_REFUND:
            bucket.late_cancels += 1
        elif cancelled and row.resolution_reason == RESOLUTION_CANCELLED_REFUNDED:
            bucket.on_time_cancels += 1

    return buckets, last_no_show_at
