# backend/app/models/message.py
"""Outbound message log: one row per attempted SMS."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
import ulid

from app.core.enums import MessageChannel
from app.core.timezone_utils import utcnow

from ..database import Base


class MessageLog(Base):
    __tablename__ = "message_log"
    __table_args__ = (Index("ix_message_log_customer", "customer_id"),)

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    shop_id = Column(String(26), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(
        String(26), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
    )
    slot_offer_id = Column(
        String(26), ForeignKey("slot_offers.id", ondelete="SET NULL"), nullable=True
    )
    channel = Column(String(10), nullable=False, default=MessageChannel.SMS.value)
    purpose = Column(String(40), nullable=False)
    to_phone = Column(String(32), nullable=False)
    body = Column(Text, nullable=False)
    status = Column(String(10), nullable=False)
    provider_message_id = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
