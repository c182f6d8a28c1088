# backend/app/repositories/slot_offer_repository.py
"""
Repository for slot offers.

The table carries a partial unique index allowing a single ``sent`` offer
per opening. ``create_sent`` surfaces a collision with that index (or with
an earlier offer to the same customer) as ALREADY_EXISTS instead of raising.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.enums import MessageChannel, SlotOfferStatus, SlotOpeningStatus
from app.core.exceptions import RepositoryException
from app.models.customer import Customer
from app.models.slot_recovery import SlotOffer, SlotOpening

from .base_repository import BaseRepository, InsertResult

logger = logging.getLogger(__name__)


class SlotOfferRepository(BaseRepository[SlotOffer]):
    def __init__(self, db: Session):
        super().__init__(db, SlotOffer)

    def create_sent(
        self,
        *,
        slot_opening_id: str,
        customer_id: str,
        sent_at: datetime,
        expires_at: datetime,
    ) -> InsertResult[SlotOffer]:
        return self.insert_unique(
            slot_opening_id=slot_opening_id,
            customer_id=customer_id,
            channel=MessageChannel.SMS.value,
            status=SlotOfferStatus.SENT.value,
            sent_at=sent_at,
            expires_at=expires_at,
        )

    def get_outstanding_for_opening(self, slot_opening_id: str) -> Optional[SlotOffer]:
        """
        The sent offer for an opening, if any.

        Lapsed offers count until the expiry sweep retires them.
        """
        try:
            return (
                self.db.query(SlotOffer)
                .filter(
                    SlotOffer.slot_opening_id == slot_opening_id,
                    SlotOffer.status == SlotOfferStatus.SENT.value,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading outstanding offer: {str(e)}")
            raise RepositoryException(f"Failed to load outstanding offer: {str(e)}")

    def find_expired_sent(self, now: datetime, limit: int) -> List[SlotOffer]:
        """
        Sent offers past their deadline whose opening is still open.

        Offers on filled or expired openings are left alone; the acceptance
        path or a later cascade owns them.
        """
        query = (
            self.db.query(SlotOffer)
            .join(SlotOpening, SlotOpening.id == SlotOffer.slot_opening_id)
            .filter(
                SlotOffer.status == SlotOfferStatus.SENT.value,
                SlotOffer.expires_at <= now,
                SlotOpening.status == SlotOpeningStatus.OPEN.value,
            )
            .order_by(SlotOffer.expires_at.asc(), SlotOffer.id.asc())
            .limit(limit)
        )
        return self._execute_query(query)

    def find_latest_open_for_phone(self, phone: str, now: datetime) -> Optional[SlotOffer]:
        """Newest unexpired sent offer on an open opening addressed to this phone."""
        try:
            return (
                self.db.query(SlotOffer)
                .options(joinedload(SlotOffer.slot_opening), joinedload(SlotOffer.customer))
                .join(Customer, Customer.id == SlotOffer.customer_id)
                .join(SlotOpening, SlotOpening.id == SlotOffer.slot_opening_id)
                .filter(
                    Customer.phone == phone,
                    SlotOffer.status == SlotOfferStatus.SENT.value,
                    SlotOffer.expires_at > now,
                    SlotOpening.status == SlotOpeningStatus.OPEN.value,
                )
                .order_by(SlotOffer.sent_at.desc(), SlotOffer.id.desc())
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding open offer by phone: {str(e)}")
            raise RepositoryException(f"Failed to find open offer: {str(e)}")

    def mark_expired(self, offer_id: str) -> bool:
        return self.transition_status(
            offer_id, SlotOfferStatus.SENT.value, SlotOfferStatus.EXPIRED.value
        )

    def mark_accepted(self, offer_id: str, accepted_at: datetime) -> bool:
        return self.transition_status(
            offer_id,
            SlotOfferStatus.SENT.value,
            SlotOfferStatus.ACCEPTED.value,
            accepted_at=accepted_at,
        )

    def mark_declined(self, offer_id: str) -> bool:
        return self.transition_status(
            offer_id, SlotOfferStatus.SENT.value, SlotOfferStatus.DECLINED.value
        )
