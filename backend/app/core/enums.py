# backend/app/core/enums.py
"""
Core enums for the slot recovery backend.

Values are stored verbatim in the database, so renaming a member is a
migration.
"""

from enum import Enum


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING = "pending"
    BOOKED = "booked"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class FinancialOutcome(str, Enum):
    UNRESOLVED = "unresolved"
    SETTLED = "settled"
    VOIDED = "voided"
    REFUNDED = "refunded"


class CancellationSource(str, Enum):
    CUSTOMER = "customer"
    SYSTEM = "system"
    ADMIN = "admin"


class PaymentMode(str, Enum):
    DEPOSIT = "deposit"
    FULL_PREPAY = "full_prepay"
    NONE = "none"


class Tier(str, Enum):
    """Reliability tier derived from the customer score."""

    TOP = "top"
    NEUTRAL = "neutral"
    RISK = "risk"


class NoShowRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SlotOpeningStatus(str, Enum):
    OPEN = "open"
    FILLED = "filled"
    EXPIRED = "expired"


class SlotOfferStatus(str, Enum):
    SENT = "sent"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    DECLINED = "declined"


class MessageChannel(str, Enum):
    SMS = "sms"


class MessageStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"
