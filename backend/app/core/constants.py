"""Application-wide constants for the slot recovery backend."""

from __future__ import annotations

BRAND_NAME = "Slotback"
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Slot recovery backend: reliability scoring, deposits and cancelled-slot offers"
API_VERSION = "1.0.0"

# Header names used by the external scheduler / trigger
CRON_SECRET_HEADER = "X-Cron-Secret"
INTERNAL_SECRET_HEADER = "X-Internal-Secret"

# Named job locks in the cooldown & lock store
EXPIRE_OFFERS_LOCK = "expire-offers"
RECOMPUTE_SCORES_LOCK = "recompute-scores"
RESOLVE_OUTCOMES_LOCK = "resolve-outcomes"

# Resolution reasons written on appointments
RESOLUTION_NO_PAYMENT_REQUIRED = "no_payment_required"
RESOLUTION_PAYMENT_CAPTURED = "payment_captured"
RESOLUTION_PAYMENT_NOT_CAPTURED = "payment_not_captured"
RESOLUTION_CANCELLED_REFUNDED = "cancelled_refunded_before_cutoff"
RESOLUTION_CANCELLED_NO_REFUND = "cancelled_no_refund_after_cutoff"
RESOLUTION_CANCELLED_NO_PAYMENT = "cancelled_no_payment_captured"

# Payment status reported by the payment processor once a charge has cleared
PAYMENT_SUCCEEDED = "succeeded"

# Error detail returned in job responses is capped to keep payloads small
MAX_ERROR_DETAILS = 25
