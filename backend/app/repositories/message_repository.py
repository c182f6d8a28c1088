# backend/app/repositories/message_repository.py
"""Repository for the outbound message log."""

from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.enums import MessageChannel
from app.models.message import MessageLog

from .base_repository import BaseRepository


class MessageRepository(BaseRepository[MessageLog]):
    def __init__(self, db: Session):
        super().__init__(db, MessageLog)

    def log_outbound(
        self,
        *,
        shop_id: str,
        customer_id: Optional[str],
        to_phone: str,
        body: str,
        purpose: str,
        status: str,
        slot_offer_id: Optional[str] = None,
        provider_message_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> MessageLog:
        return self.create(
            shop_id=shop_id,
            customer_id=customer_id,
            slot_offer_id=slot_offer_id,
            channel=MessageChannel.SMS.value,
            purpose=purpose,
            to_phone=to_phone,
            body=body,
            status=status,
            provider_message_id=provider_message_id,
            error_message=error_message,
        )

    def list_for_offer(self, slot_offer_id: str) -> List[MessageLog]:
        return self.find_by(slot_offer_id=slot_offer_id)
