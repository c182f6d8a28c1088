# backend/app/models/appointment.py
"""
Appointment and payment models.

Appointments are written by the booking/cancellation surface; the core only
sets the financial outcome and resolution reason once an appointment is
resolved. Payments mirror what the payment processor reported.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import ulid

from app.core.enums import AppointmentStatus, FinancialOutcome
from app.core.timezone_utils import utcnow

from ..database import Base


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_shop_customer", "shop_id", "customer_id"),
        Index("ix_appointments_financial_outcome", "financial_outcome"),
        Index("ix_appointments_shop_ends", "shop_id", "ends_at"),
        CheckConstraint(
            "cancellation_source IS NULL OR cancellation_source IN ('customer', 'system', 'admin')",
            name="ck_appointments_cancellation_source",
        ),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    shop_id = Column(String(26), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(
        String(26), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(20), nullable=False, default=AppointmentStatus.BOOKED.value)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_source = Column(String(20), nullable=True)

    payment_status = Column(String(20), nullable=False, default="unpaid")
    payment_required = Column(Boolean, nullable=False, default=False)
    financial_outcome = Column(
        String(20), nullable=False, default=FinancialOutcome.UNRESOLVED.value
    )
    resolution_reason = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    # Set when the appointment was created by accepting a slot offer
    source_slot_opening_id = Column(
        String(26),
        ForeignKey(
            "slot_openings.id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_appointments_source_slot_opening",
        ),
        nullable=True,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    payment = relationship("Payment", back_populates="appointment", uselist=False)

    def __repr__(self) -> str:
        return f"<Appointment {self.id} status={self.status} outcome={self.financial_outcome}>"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    shop_id = Column(String(26), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    appointment_id = Column(
        String(26),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    provider = Column(String(20), nullable=False, default="stripe")
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String(30), nullable=False)
    refunded_amount_cents = Column(Integer, nullable=False, default=0)
    refund_id = Column(String(255), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    appointment = relationship("Appointment", back_populates="payment")

    def __repr__(self) -> str:
        return f"<Payment {self.id} status={self.status} amount={self.amount_cents}>"
