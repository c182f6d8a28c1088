# backend/app/models/slot_recovery.py
"""
Slot recovery models.

A SlotOpening is a resellable vacancy created from a cancelled, paid,
still-future appointment. SlotOffers invite one customer at a time to claim
it. The partial unique index on ``slot_offers`` is the storage-level guard
for "at most one sent offer per opening".
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
import ulid

from app.core.enums import MessageChannel, SlotOpeningStatus
from app.core.timezone_utils import utcnow

from ..database import Base


class SlotOpening(Base):
    __tablename__ = "slot_openings"
    __table_args__ = (
        UniqueConstraint(
            "shop_id",
            "starts_at",
            "ends_at",
            "source_appointment_id",
            name="uq_slot_openings_slot",
        ),
        Index("ix_slot_openings_shop_status", "shop_id", "status"),
        CheckConstraint(
            "status IN ('open', 'filled', 'expired')", name="ck_slot_openings_status"
        ),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    shop_id = Column(String(26), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    source_appointment_id = Column(
        String(26), ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    status = Column(String(10), nullable=False, default=SlotOpeningStatus.OPEN.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    offers = relationship("SlotOffer", back_populates="slot_opening")

    def __repr__(self) -> str:
        return f"<SlotOpening {self.id} status={self.status}>"


class SlotOffer(Base):
    __tablename__ = "slot_offers"
    __table_args__ = (
        UniqueConstraint("slot_opening_id", "customer_id", name="uq_slot_offers_customer"),
        Index(
            "uq_slot_offers_one_sent_per_opening",
            "slot_opening_id",
            unique=True,
            postgresql_where=text("status = 'sent'"),
            sqlite_where=text("status = 'sent'"),
        ),
        Index("ix_slot_offers_status_expires", "status", "expires_at"),
        Index("ix_slot_offers_customer", "customer_id"),
        CheckConstraint(
            "status IN ('sent', 'accepted', 'expired', 'declined')",
            name="ck_slot_offers_status",
        ),
        CheckConstraint("channel IN ('sms')", name="ck_slot_offers_channel"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    slot_opening_id = Column(
        String(26), ForeignKey("slot_openings.id", ondelete="CASCADE"), nullable=False
    )
    customer_id = Column(
        String(26), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    channel = Column(String(10), nullable=False, default=MessageChannel.SMS.value)
    status = Column(String(10), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    slot_opening = relationship("SlotOpening", back_populates="offers")
    customer = relationship("Customer")

    def __repr__(self) -> str:
        return f"<SlotOffer {self.id} opening={self.slot_opening_id} status={self.status}>"
