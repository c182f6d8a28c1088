"""
Tier pricing: resolve the effective payment requirement for a customer tier.

An unscored customer (``tier=None``) is priced exactly like a neutral one but
reported as ``neutral_default`` so callers can tell the two apart.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.core.enums import PaymentMode, Tier

NEUTRAL_DEFAULT = "neutral_default"


@dataclass(frozen=True)
class BasePolicy:
    payment_mode: PaymentMode
    deposit_amount_cents: Optional[int]


@dataclass(frozen=True)
class TierOverrides:
    risk_payment_mode: Optional[PaymentMode] = None
    risk_deposit_amount_cents: Optional[int] = None
    top_deposit_waived: bool = False
    top_deposit_amount_cents: Optional[int] = None


@dataclass(frozen=True)
class TierPricingResult:
    payment_mode: PaymentMode
    deposit_amount_cents: Optional[int]
    applied_tier: str
    tier_override_applied: bool


@dataclass(frozen=True)
class PaymentRequirement:
    payment_required: bool
    amount_cents: int


def apply_tier_pricing_override(
    tier: Optional[Tier], base: BasePolicy, overrides: TierOverrides
) -> TierPricingResult:
    payment_mode = base.payment_mode
    amount = base.deposit_amount_cents
    override_applied = False

    if tier is Tier.RISK and overrides.risk_deposit_amount_cents is not None:
        amount = overrides.risk_deposit_amount_cents
        override_applied = True
        if overrides.risk_payment_mode is not None:
            payment_mode = overrides.risk_payment_mode
    elif tier is Tier.TOP and overrides.top_deposit_waived:
        # Waiver wins over any configured top amount
        amount = 0
        override_applied = True
    elif tier is Tier.TOP and overrides.top_deposit_amount_cents is not None:
        amount = overrides.top_deposit_amount_cents
        override_applied = True

    return TierPricingResult(
        payment_mode=payment_mode,
        deposit_amount_cents=amount,
        applied_tier=tier.value if tier is not None else NEUTRAL_DEFAULT,
        tier_override_applied=override_applied,
    )


def derive_payment_requirement(
    payment_mode: PaymentMode, deposit_amount_cents: Optional[int]
) -> PaymentRequirement:
    """No charge for mode ``none`` or a non-positive amount; never an error."""
    if payment_mode is PaymentMode.NONE:
        return PaymentRequirement(payment_required=False, amount_cents=0)
    amount = deposit_amount_cents or 0
    if amount <= 0:
        return PaymentRequirement(payment_required=False, amount_cents=0)
    return PaymentRequirement(payment_required=True, amount_cents=amount)


def resolve_for_policy(tier: Optional[Tier], policy) -> PaymentRequirement:
    """Price a customer of ``tier`` under a stored ``ShopPolicy`` row."""
    base = BasePolicy(
        payment_mode=PaymentMode(policy.payment_mode),
        deposit_amount_cents=policy.deposit_amount_cents,
    )
    overrides = TierOverrides(
        risk_payment_mode=PaymentMode(policy.risk_payment_mode)
        if policy.risk_payment_mode
        else None,
        risk_deposit_amount_cents=policy.risk_deposit_amount_cents,
        top_deposit_waived=bool(policy.top_deposit_waived),
        top_deposit_amount_cents=policy.top_deposit_amount_cents,
    )
    result = apply_tier_pricing_override(tier, base, overrides)
    return derive_payment_requirement(result.payment_mode, result.deposit_amount_cents)
