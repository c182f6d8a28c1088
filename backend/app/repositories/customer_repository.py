# backend/app/repositories/customer_repository.py
"""
Customer Repository

Candidate selection for slot offers lives here: the whole ranking and every
storage-side exclusion is one query, so the state machine only has to apply
the cooldown check (which lives in Redis) on top of it.
"""

from dataclasses import dataclass
import logging
from typing import Iterator, List, Optional

from sqlalchemy import and_, case, exists, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.enums import AppointmentStatus, NoShowRisk, Tier
from app.core.exceptions import RepositoryException
from app.models.appointment import Appointment
from app.models.customer import (
    Customer,
    CustomerContactPref,
    CustomerNoShowStats,
    CustomerScore,
)
from app.models.shop import ShopPolicy
from app.models.slot_recovery import SlotOffer, SlotOpening

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Unscored customers rank with neutral ones at this score
DEFAULT_SCORE = 50

_TIER_PRIORITY = case(
    (CustomerScore.tier == Tier.TOP.value, 1),
    (CustomerScore.tier == Tier.RISK.value, 3),
    else_=2,
)


@dataclass(frozen=True)
class OfferCandidate:
    customer_id: str
    phone: str
    full_name: str
    tier: Optional[str]
    score: Optional[int]
    no_show_risk: Optional[str]


class CustomerRepository(BaseRepository[Customer]):
    def __init__(self, db: Session):
        super().__init__(db, Customer)

    def get_offer_candidates(
        self,
        opening: SlotOpening,
        policy: Optional[ShopPolicy],
        limit: int,
    ) -> List[OfferCandidate]:
        """
        Ranked customers of the opening's shop who may be offered it.

        Excludes customers without SMS consent or a phone, customers already
        offered this opening, tiers the shop excluded, and customers holding a
        booked or pending appointment overlapping the opening. Ordered by tier
        priority, score (unscored as 50), most recent computation, then id.
        """
        already_offered = exists().where(
            SlotOffer.slot_opening_id == opening.id,
            SlotOffer.customer_id == Customer.id,
        )
        overlapping = exists().where(
            Appointment.customer_id == Customer.id,
            Appointment.shop_id == opening.shop_id,
            Appointment.status.in_(
                [AppointmentStatus.BOOKED.value, AppointmentStatus.PENDING.value]
            ),
            Appointment.starts_at < opening.ends_at,
            Appointment.ends_at > opening.starts_at,
        )

        query = (
            self.db.query(
                Customer.id,
                Customer.phone,
                Customer.full_name,
                CustomerScore.tier,
                CustomerScore.score,
                CustomerNoShowStats.no_show_risk,
            )
            .join(CustomerContactPref, CustomerContactPref.customer_id == Customer.id)
            .outerjoin(
                CustomerScore,
                and_(
                    CustomerScore.customer_id == Customer.id,
                    CustomerScore.shop_id == opening.shop_id,
                ),
            )
            .outerjoin(
                CustomerNoShowStats,
                and_(
                    CustomerNoShowStats.customer_id == Customer.id,
                    CustomerNoShowStats.shop_id == opening.shop_id,
                ),
            )
            .filter(
                Customer.shop_id == opening.shop_id,
                CustomerContactPref.sms_opt_in.is_(True),
                Customer.phone.isnot(None),
                Customer.phone != "",
                ~already_offered,
                ~overlapping,
            )
        )

        if policy is not None:
            if policy.exclude_risk_from_offers:
                query = query.filter(
                    func.coalesce(CustomerScore.tier, Tier.NEUTRAL.value) != Tier.RISK.value
                )
            if policy.exclude_top_from_offers:
                query = query.filter(
                    func.coalesce(CustomerScore.tier, Tier.NEUTRAL.value) != Tier.TOP.value
                )
            if policy.exclude_high_no_show_from_offers:
                query = query.filter(
                    func.coalesce(CustomerNoShowStats.no_show_risk, NoShowRisk.MEDIUM.value)
                    != NoShowRisk.HIGH.value
                )

        query = query.order_by(
            _TIER_PRIORITY.asc(),
            func.coalesce(CustomerScore.score, DEFAULT_SCORE).desc(),
            CustomerScore.computed_at.desc().nulls_last(),
            Customer.id.asc(),
        ).limit(limit)

        try:
            rows = query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error selecting offer candidates: {str(e)}")
            raise RepositoryException(f"Failed to select offer candidates: {str(e)}")

        return [
            OfferCandidate(
                customer_id=row.id,
                phone=row.phone,
                full_name=row.full_name,
                tier=row.tier,
                score=row.score,
                no_show_risk=row.no_show_risk,
            )
            for row in rows
        ]

    def iter_customer_id_chunks(self, shop_id: str, chunk_size: int) -> Iterator[List[str]]:
        """Yield the shop's customer ids in stable keyset-paginated chunks."""
        last_id = ""
        while True:
            query = (
                self.db.query(Customer.id)
                .filter(Customer.shop_id == shop_id, Customer.id > last_id)
                .order_by(Customer.id.asc())
                .limit(chunk_size)
            )
            ids = [row.id for row in query.all()]
            if not ids:
                return
            yield ids
            last_id = ids[-1]

