# backend/app/models/customer.py
"""
Customer models: identity, contact consent, and the per-shop scoring
snapshots written by the recompute job.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from app.core.timezone_utils import utcnow

from ..database import Base


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("shop_id", "phone", name="uq_customers_shop_phone"),
        Index("ix_customers_shop_id", "shop_id"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    shop_id = Column(String(26), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    contact_prefs = relationship("CustomerContactPref", uselist=False, back_populates="customer")

    def __repr__(self) -> str:
        return f"<Customer {self.id} shop={self.shop_id}>"


class CustomerContactPref(Base):
    """Messaging consent. No row means the customer never opted in."""

    __tablename__ = "customer_contact_prefs"

    customer_id = Column(
        String(26), ForeignKey("customers.id", ondelete="CASCADE"), primary_key=True
    )
    sms_opt_in = Column(Boolean, nullable=False, default=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="contact_prefs")


class CustomerScore(Base):
    """Reliability score and tier for a customer within one shop."""

    __tablename__ = "customer_scores"
    __table_args__ = (
        UniqueConstraint("customer_id", "shop_id", name="uq_customer_scores_customer_shop"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    customer_id = Column(
        String(26), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    shop_id = Column(String(26), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    score = Column(Integer, nullable=False)
    tier = Column(String(10), nullable=False)
    window_days = Column(Integer, nullable=False, default=180)
    # settled / voided / refunded / late_cancels totals, last_activity_at, voided_last_90_days
    stats = Column(JSON, nullable=False, default=dict)
    computed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<CustomerScore customer={self.customer_id} score={self.score} tier={self.tier}>"


class CustomerNoShowStats(Base):
    """No-show history and derived risk for a customer within one shop."""

    __tablename__ = "customer_no_show_stats"
    __table_args__ = (
        UniqueConstraint("customer_id", "shop_id", name="uq_customer_no_show_stats_customer_shop"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    customer_id = Column(
        String(26), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    shop_id = Column(String(26), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    total_appointments = Column(Integer, nullable=False, default=0)
    no_show_count = Column(Integer, nullable=False, default=0)
    late_cancel_count = Column(Integer, nullable=False, default=0)
    on_time_cancel_count = Column(Integer, nullable=False, default=0)
    completed_count = Column(Integer, nullable=False, default=0)
    no_show_score = Column(Integer, nullable=True)
    no_show_risk = Column(String(10), nullable=True)
    last_no_show_at = Column(DateTime(timezone=True), nullable=True)
    computed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
