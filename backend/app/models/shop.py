# backend/app/models/shop.py
"""
Shop and shop policy models.

A ShopPolicy row carries everything the slot recovery core reads about a
shop: the base payment requirement, per-tier overrides, the cancellation
cutoff, and which customers may be offered freed slots.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
import ulid

from app.core.enums import PaymentMode
from app.core.timezone_utils import utcnow

from ..database import Base


class Shop(Base):
    __tablename__ = "shops"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    policy = relationship("ShopPolicy", back_populates="shop", uselist=False)

    def __repr__(self) -> str:
        return f"<Shop {self.slug}>"


class ShopPolicy(Base):
    """Payment, cancellation and offer-eligibility policy for one shop."""

    __tablename__ = "shop_policies"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    shop_id = Column(
        String(26), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    currency = Column(String(3), nullable=False, default="usd")

    # Base payment requirement
    payment_mode = Column(String(20), nullable=False, default=PaymentMode.DEPOSIT.value)
    deposit_amount_cents = Column(Integer, nullable=True)

    # Tier overrides
    risk_payment_mode = Column(String(20), nullable=True)
    risk_deposit_amount_cents = Column(Integer, nullable=True)
    top_deposit_waived = Column(Boolean, nullable=False, default=False)
    top_deposit_amount_cents = Column(Integer, nullable=True)

    # Slot offer eligibility
    exclude_risk_from_offers = Column(Boolean, nullable=False, default=False)
    exclude_high_no_show_from_offers = Column(Boolean, nullable=False, default=False)
    exclude_top_from_offers = Column(Boolean, nullable=False, default=False)

    # Cancellation
    cancel_cutoff_minutes = Column(Integer, nullable=False, default=1440)
    refund_before_cutoff = Column(Boolean, nullable=False, default=True)
    resolution_grace_minutes = Column(Integer, nullable=False, default=30)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    shop = relationship("Shop", back_populates="policy")

    def __repr__(self) -> str:
        return f"<ShopPolicy shop={self.shop_id} mode={self.payment_mode}>"
