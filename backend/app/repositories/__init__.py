# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the slot recovery backend.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: shared reads, tagged unique inserts, status compare-and-swap
- RepositoryFactory: Factory for creating repository instances
- SlotOpeningRepository / SlotOfferRepository: slot recovery state
- CustomerRepository: offer candidate ranking
- CustomerScoreRepository: reliability and no-show snapshots
- AppointmentRepository: outcome resolution and scoring history

Usage:
    from app.repositories import RepositoryFactory

    offers = RepositoryFactory.create_slot_offer_repository(db)
    due = offers.find_expired_sent(now, limit=25)
"""

from .appointment_repository import AppointmentRepository
from .base_repository import BaseRepository, InsertOutcome, InsertResult
from .customer_repository import CustomerRepository, OfferCandidate
from .customer_score_repository import CustomerScoreRepository
from .factory import RepositoryFactory
from .message_repository import MessageRepository
from .shop_repository import ShopRepository
from .slot_offer_repository import SlotOfferRepository
from .slot_opening_repository import SlotOpeningRepository

__all__ = [
    "AppointmentRepository",
    "BaseRepository",
    "CustomerRepository",
    "CustomerScoreRepository",
    "InsertOutcome",
    "InsertResult",
    "MessageRepository",
    "OfferCandidate",
    "RepositoryFactory",
    "ShopRepository",
    "SlotOfferRepository",
    "SlotOpeningRepository",
]
