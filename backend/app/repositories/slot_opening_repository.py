# backend/app/repositories/slot_opening_repository.py
"""
Repository for slot openings.

Status changes go through ``transition_status`` so two jobs racing on the
same opening cannot both move it.
"""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.enums import SlotOpeningStatus
from app.models.slot_recovery import SlotOpening

from .base_repository import BaseRepository, InsertResult

logger = logging.getLogger(__name__)


class SlotOpeningRepository(BaseRepository[SlotOpening]):
    def __init__(self, db: Session):
        super().__init__(db, SlotOpening)

    def create_open(
        self,
        *,
        shop_id: str,
        starts_at: datetime,
        ends_at: datetime,
        source_appointment_id: str,
    ) -> InsertResult[SlotOpening]:
        """Insert an open slot; a second insert for the same slot reports ALREADY_EXISTS."""
        return self.insert_unique(
            shop_id=shop_id,
            starts_at=starts_at,
            ends_at=ends_at,
            source_appointment_id=source_appointment_id,
            status=SlotOpeningStatus.OPEN.value,
        )

    def get_for_source_appointment(self, appointment_id: str) -> Optional[SlotOpening]:
        return self.find_one_by(source_appointment_id=appointment_id)

    def mark_filled(self, slot_opening_id: str) -> bool:
        return self.transition_status(
            slot_opening_id, SlotOpeningStatus.OPEN.value, SlotOpeningStatus.FILLED.value
        )

    def mark_expired(self, slot_opening_id: str) -> bool:
        return self.transition_status(
            slot_opening_id, SlotOpeningStatus.OPEN.value, SlotOpeningStatus.EXPIRED.value
        )
