"""Unit tests for tier_pricing.py."""

from types import SimpleNamespace

import pytest

from app.core.enums import PaymentMode, Tier
from app.services.tier_pricing import (
    NEUTRAL_DEFAULT,
    BasePolicy,
    PaymentRequirement,
    TierOverrides,
    apply_tier_pricing_override,
    derive_payment_requirement,
    resolve_for_policy,
)

BASE = BasePolicy(payment_mode=PaymentMode.DEPOSIT, deposit_amount_cents=2000)


class TestApplyTierPricingOverride:
    def test_top_waiver_wins_over_top_amount(self):
        overrides = TierOverrides(top_deposit_waived=True, top_deposit_amount_cents=500)
        result = apply_tier_pricing_override(Tier.TOP, BASE, overrides)

        assert result.deposit_amount_cents == 0
        assert result.tier_override_applied is True
        assert result.applied_tier == "top"
        assert derive_payment_requirement(
            result.payment_mode, result.deposit_amount_cents
        ) == PaymentRequirement(payment_required=False, amount_cents=0)

    def test_top_amount_override(self):
        overrides = TierOverrides(top_deposit_amount_cents=500)
        result = apply_tier_pricing_override(Tier.TOP, BASE, overrides)
        assert result.deposit_amount_cents == 500
        assert result.payment_mode is PaymentMode.DEPOSIT

    def test_risk_override_changes_mode_and_amount(self):
        overrides = TierOverrides(
            risk_payment_mode=PaymentMode.FULL_PREPAY, risk_deposit_amount_cents=5000
        )
        result = apply_tier_pricing_override(Tier.RISK, BASE, overrides)
        assert result.payment_mode is PaymentMode.FULL_PREPAY
        assert result.deposit_amount_cents == 5000
        assert result.tier_override_applied is True

    def test_risk_mode_without_amount_is_not_applied(self):
        overrides = TierOverrides(risk_payment_mode=PaymentMode.FULL_PREPAY)
        result = apply_tier_pricing_override(Tier.RISK, BASE, overrides)
        assert result.payment_mode is PaymentMode.DEPOSIT
        assert result.tier_override_applied is False

    def test_unscored_customer_is_priced_as_neutral_default(self):
        overrides = TierOverrides(top_deposit_waived=True, risk_deposit_amount_cents=5000)
        result = apply_tier_pricing_override(None, BASE, overrides)
        assert result.applied_tier == NEUTRAL_DEFAULT
        assert result.deposit_amount_cents == 2000
        assert result.tier_override_applied is False

    def test_neutral_tier_keeps_base(self):
        result = apply_tier_pricing_override(Tier.NEUTRAL, BASE, TierOverrides())
        assert result.applied_tier == "neutral"
        assert result.deposit_amount_cents == 2000


class TestDerivePaymentRequirement:
    @pytest.mark.parametrize(
        "mode,amount,expected",
        [
            (PaymentMode.DEPOSIT, 2500, PaymentRequirement(True, 2500)),
            (PaymentMode.FULL_PREPAY, 9000, PaymentRequirement(True, 9000)),
            (PaymentMode.DEPOSIT, -100, PaymentRequirement(False, 0)),
            (PaymentMode.DEPOSIT, 0, PaymentRequirement(False, 0)),
            (PaymentMode.DEPOSIT, None, PaymentRequirement(False, 0)),
            (PaymentMode.NONE, 2000, PaymentRequirement(False, 0)),
        ],
    )
    def test_requirement(self, mode, amount, expected):
        assert derive_payment_requirement(mode, amount) == expected


class TestResolveForPolicy:
    def _policy(self, **overrides):
        values = dict(
            payment_mode="deposit",
            deposit_amount_cents=2000,
            risk_payment_mode=None,
            risk_deposit_amount_cents=None,
            top_deposit_waived=False,
            top_deposit_amount_cents=None,
        )
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_reads_stored_policy_row(self):
        policy = self._policy(risk_payment_mode="full_prepay", risk_deposit_amount_cents=4000)
        assert resolve_for_policy(Tier.RISK, policy) == PaymentRequirement(True, 4000)
        assert resolve_for_policy(None, policy) == PaymentRequirement(True, 2000)

    def test_top_waived_policy(self):
        policy = self._policy(top_deposit_waived=True)
        assert resolve_for_policy(Tier.TOP, policy) == PaymentRequirement(False, 0)

    def test_no_payment_mode(self):
        policy = self._policy(payment_mode="none")
        assert resolve_for_policy(Tier.NEUTRAL, policy) == PaymentRequirement(False, 0)
