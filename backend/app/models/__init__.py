"""
Database models for the slot recovery backend.

The models are organized by functionality:
- Shops and their payment/cancellation/offer policy
- Customers, contact consent and scoring snapshots
- Appointments and payments
- Slot openings and slot offers
- Outbound message log
"""

from .appointment import Appointment, Payment
from .customer import Customer, CustomerContactPref, CustomerNoShowStats, CustomerScore
from .message import MessageLog
from .shop import Shop, ShopPolicy
from .slot_recovery import SlotOffer, SlotOpening

__all__ = [
    "Appointment",
    "Customer",
    "CustomerContactPref",
    "CustomerNoShowStats",
    "CustomerScore",
    "MessageLog",
    "Payment",
    "Shop",
    "ShopPolicy",
    "SlotOffer",
    "SlotOpening",
]
