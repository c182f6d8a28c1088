# backend/app/repositories/factory.py
"""
Repository Factory for the slot recovery backend.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .appointment_repository import AppointmentRepository
    from .customer_repository import CustomerRepository
    from .customer_score_repository import CustomerScoreRepository
    from .message_repository import MessageRepository
    from .shop_repository import ShopRepository
    from .slot_offer_repository import SlotOfferRepository
    from .slot_opening_repository import SlotOpeningRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        """Create a generic base repository for any model."""
        return BaseRepository(db, model)

    @staticmethod
    def create_slot_opening_repository(db: Session) -> "SlotOpeningRepository":
        """Create repository for slot opening lifecycle operations."""
        from .slot_opening_repository import SlotOpeningRepository

        return SlotOpeningRepository(db)

    @staticmethod
    def create_slot_offer_repository(db: Session) -> "SlotOfferRepository":
        """Create repository for slot offer lifecycle operations."""
        from .slot_offer_repository import SlotOfferRepository

        return SlotOfferRepository(db)

    @staticmethod
    def create_customer_repository(db: Session) -> "CustomerRepository":
        """Create repository for customers and offer candidate selection."""
        from .customer_repository import CustomerRepository

        return CustomerRepository(db)

    @staticmethod
    def create_customer_score_repository(db: Session) -> "CustomerScoreRepository":
        """Create repository for reliability and no-show snapshots."""
        from .customer_score_repository import CustomerScoreRepository

        return CustomerScoreRepository(db)

    @staticmethod
    def create_appointment_repository(db: Session) -> "AppointmentRepository":
        from .appointment_repository import AppointmentRepository

        return AppointmentRepository(db)

    @staticmethod
    def create_shop_repository(db: Session) -> "ShopRepository":
        from .shop_repository import ShopRepository

        return ShopRepository(db)

    @staticmethod
    def create_message_repository(db: Session) -> "MessageRepository":
        from .message_repository import MessageRepository

        return MessageRepository(db)
