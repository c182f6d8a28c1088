# backend/app/services/slot_recovery_service.py
"""
Slot Recovery Service

Owns the lifecycle of a slot opening (open -> filled | expired) and of its
offers (sent -> expired | accepted | declined):

- create an opening when a paid, still-future appointment is cancelled
- rank the customers who may be offered it
- offer it to the best candidate, one sent offer per opening at a time
- accept or decline an offer when the customer replies

Every status change is a compare-and-swap in the database. The per-customer
cooldown and the per-slot acceptance lock live in the cooldown & lock store.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import PAYMENT_SUCCEEDED
from ..core.enums import AppointmentStatus, MessageStatus, SlotOpeningStatus, Tier
from ..core.exceptions import ConflictException, NotFoundException
from ..core.lock_store import CooldownLockStore, slot_lock_name
from ..core.timezone_utils import ensure_utc, to_timezone, utcnow
from ..models.appointment import Appointment, Payment
from ..models.shop import ShopPolicy
from ..models.slot_recovery import SlotOffer, SlotOpening
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.customer_repository import OfferCandidate
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .offer_loop_trigger import OfferLoopTrigger
from .sms_service import SMSService, SMSStatus
from .sms_templates import (
    DEPOSIT_REQUIRED_NOTE,
    SLOT_OFFER,
    SLOT_OFFER_ACCEPTED,
    format_offer_time,
    render_sms,
)
from .tier_pricing import resolve_for_policy

logger = logging.getLogger(__name__)

REASON_NO_ELIGIBLE_CUSTOMERS = "no_eligible_customers"
REASON_OFFER_OUTSTANDING = "offer_outstanding"


@dataclass(frozen=True)
class OfferLoopOutcome:
    success: bool
    skipped: bool = False
    completed: bool = False
    reason: Optional[str] = None
    customer_id: Optional[str] = None
    customer_phone: Optional[str] = None
    offer_id: Optional[str] = None


@dataclass(frozen=True)
class AcceptedOffer:
    appointment_id: str
    slot_opening_id: str
    payment_required: bool
    amount_cents: int


class SlotRecoveryService(BaseService):
    def __init__(
        self,
        db: Session,
        lock_store: CooldownLockStore,
        sms_service: SMSService,
        trigger: OfferLoopTrigger,
    ):
        super().__init__(db)
        self.lock_store = lock_store
        self.sms_service = sms_service
        self.trigger = trigger
        self.opening_repository = RepositoryFactory.create_slot_opening_repository(db)
        self.offer_repository = RepositoryFactory.create_slot_offer_repository(db)
        self.customer_repository = RepositoryFactory.create_customer_repository(db)
        self.score_repository = RepositoryFactory.create_customer_score_repository(db)
        self.shop_repository = RepositoryFactory.create_shop_repository(db)
        self.message_repository = RepositoryFactory.create_message_repository(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)

    # Opening creation

    def create_opening_from_cancellation(
        self,
        appointment: Appointment,
        payment: Optional[Payment],
        now: Optional[datetime] = None,
    ) -> Optional[SlotOpening]:
        """
        Create the opening for a cancelled appointment and kick off the first offer.

        No-op unless the appointment was paid and has not started yet. A
        concurrent creation of the same opening is not an error. The first
        offer is triggered best-effort; the expiry sweep retries later.
        """
        now = now or utcnow()
        if payment is None or payment.status != PAYMENT_SUCCEEDED:
            return None
        if ensure_utc(appointment.starts_at) <= now:
            return None

        with self.transaction():
            result = self.opening_repository.create_open(
                shop_id=appointment.shop_id,
                starts_at=appointment.starts_at,
                ends_at=appointment.ends_at,
                source_appointment_id=appointment.id,
            )

        if not result.created:
            self.logger.info(
                "slot_opening_already_exists",
                extra={"appointment_id": appointment.id, "shop_id": appointment.shop_id},
            )
            return None

        opening = result.entity
        self.logger.info(
            "slot_opening_created",
            extra={"slot_opening_id": opening.id, "appointment_id": appointment.id},
        )
        self.trigger.trigger(opening.id)
        return opening

    # Candidate selection

    def get_eligible_customers(
        self, opening: SlotOpening, policy: Optional[ShopPolicy] = None
    ) -> List[OfferCandidate]:
        """Ranked candidates for ``opening``, minus anyone in cooldown. Read-only."""
        if policy is None:
            policy = self.shop_repository.get_policy(opening.shop_id)
        candidates = self.customer_repository.get_offer_candidates(
            opening, policy, limit=settings.offer_candidate_limit
        )
        return [c for c in candidates if not self.lock_store.is_in_cooldown(c.customer_id)]

    # Offers

    def send_offer(
        self,
        opening: SlotOpening,
        candidate: OfferCandidate,
        policy: Optional[ShopPolicy] = None,
        now: Optional[datetime] = None,
    ) -> Optional[SlotOffer]:
        """
        Offer ``opening`` to ``candidate``.

        Returns None when another offer is already outstanding for the opening.
        A failed SMS leaves the offer in ``sent`` so the sweep retires it.
        """
        now = now or utcnow()

        with self.transaction():
            result = self.offer_repository.create_sent(
                slot_opening_id=opening.id,
                customer_id=candidate.customer_id,
                sent_at=now,
                expires_at=now + timedelta(minutes=settings.offer_expiry_minutes),
            )
        if not result.created:
            self.logger.debug(
                "slot_offer_not_created",
                extra={"slot_opening_id": opening.id, "customer_id": candidate.customer_id},
            )
            return None

        offer = result.entity
        self.lock_store.set_cooldown(candidate.customer_id)
        body = self._render_offer(opening, candidate, policy)
        status, provider_message_id, error = self._deliver(candidate.phone, body, offer)

        with self.transaction():
            self.message_repository.log_outbound(
                shop_id=opening.shop_id,
                customer_id=candidate.customer_id,
                slot_offer_id=offer.id,
                to_phone=candidate.phone,
                body=body,
                purpose=SLOT_OFFER.purpose,
                status=status.value,
                provider_message_id=provider_message_id,
                error_message=error,
            )

        prometheus_metrics.record_slot_offer("sent")
        self.logger.info(
            "slot_offer_sent",
            extra={
                "slot_opening_id": opening.id,
                "offer_id": offer.id,
                "customer_id": candidate.customer_id,
                "message_status": status.value,
            },
        )
        return offer

    def _render_offer(
        self,
        opening: SlotOpening,
        candidate: OfferCandidate,
        policy: Optional[ShopPolicy],
    ) -> str:
        if policy is None:
            policy = self.shop_repository.get_policy(opening.shop_id)
        shop = self.shop_repository.get_by_id(opening.shop_id)
        local_start = to_timezone(opening.starts_at, shop.timezone if shop else None)

        payment_note = ""
        if policy is not None:
            tier = Tier(candidate.tier) if candidate.tier else None
            if resolve_for_policy(tier, policy).payment_required:
                payment_note = DEPOSIT_REQUIRED_NOTE
        return render_sms(SLOT_OFFER, time=format_offer_time(local_start), payment_note=payment_note)

    def _deliver(
        self, to_phone: str, body: str, offer: SlotOffer
    ) -> Tuple[MessageStatus, Optional[str], Optional[str]]:
        try:
            sms = self.sms_service.send(to_phone, body)
        except Exception as exc:
            prometheus_metrics.record_slot_offer("send_failed")
            self.logger.error(
                "slot_offer_sms_failed",
                extra={"offer_id": offer.id, "error": str(exc), "error_type": type(exc).__name__},
            )
            return MessageStatus.FAILED, None, str(exc)
        if sms.status is SMSStatus.DISABLED:
            return MessageStatus.SKIPPED, None, None
        return MessageStatus.SENT, sms.provider_message_id, None

    # Offer loop step

    @BaseService.measure_operation("offer_loop_step")
    def run_offer_loop_step(
        self, slot_opening_id: str, now: Optional[datetime] = None
    ) -> OfferLoopOutcome:
        """
        Offer an open slot to the next eligible customer, or retire it.

        Safe to call repeatedly: a slot that is no longer open, or that
        already has a sent offer awaiting a reply or the expiry sweep, is skipped.
        """
        now = now or utcnow()
        opening = self.opening_repository.get_by_id(slot_opening_id)
        if opening is None:
            raise NotFoundException(
                "Slot opening not found", details={"slot_opening_id": slot_opening_id}
            )

        if opening.status != SlotOpeningStatus.OPEN.value:
            return OfferLoopOutcome(
                success=True, skipped=True, reason=f"slot_status_{opening.status}"
            )

        if self.offer_repository.get_outstanding_for_opening(opening.id) is not None:
            return OfferLoopOutcome(success=True, skipped=True, reason=REASON_OFFER_OUTSTANDING)

        policy = self.shop_repository.get_policy(opening.shop_id)
        candidates = self.get_eligible_customers(opening, policy)

        if not candidates:
            with self.transaction():
                expired = self.opening_repository.mark_expired(opening.id)
            if expired:
                self.logger.info(
                    "slot_opening_expired",
                    extra={"slot_opening_id": opening.id, "reason": REASON_NO_ELIGIBLE_CUSTOMERS},
                )
            return OfferLoopOutcome(
                success=True, completed=True, reason=REASON_NO_ELIGIBLE_CUSTOMERS
            )

        candidate = candidates[0]
        offer = self.send_offer(opening, candidate, policy=policy, now=now)
        if offer is None:
            return OfferLoopOutcome(success=True, skipped=True, reason=REASON_OFFER_OUTSTANDING)

        return OfferLoopOutcome(
            success=True,
            customer_id=candidate.customer_id,
            customer_phone=candidate.phone,
            offer_id=offer.id,
        )

    # Replies

    def find_latest_open_offer(
        self, phone: str, now: Optional[datetime] = None
    ) -> Optional[SlotOffer]:
        return self.offer_repository.find_latest_open_for_phone(phone, now or utcnow())

    def accept_offer(self, offer: SlotOffer, now: Optional[datetime] = None) -> AcceptedOffer:
        """
        Claim the offered slot for the customer.

        Runs under the per-slot lock; the opening and the offer are each moved
        with a compare-and-swap, and losing either means the slot is gone.
        """
        now = now or utcnow()
        opening = offer.slot_opening
        lock_name = slot_lock_name(opening.shop_id, ensure_utc(opening.starts_at).isoformat())

        with self.lock_store.job_lock(lock_name, ttl_s=settings.slot_lock_ttl_seconds) as acquired:
            if not acquired:
                raise ConflictException("Slot is being booked by another customer", code="SLOT_TAKEN")

            with self.transaction():
                if not self.opening_repository.mark_filled(opening.id):
                    raise ConflictException(
                        "Slot is no longer available", code="SLOT_NO_LONGER_AVAILABLE"
                    )
                if not self.offer_repository.mark_accepted(offer.id, accepted_at=now):
                    raise ConflictException(
                        "Slot is no longer available", code="SLOT_NO_LONGER_AVAILABLE"
                    )

                policy = self.shop_repository.get_policy(opening.shop_id)
                score = self.score_repository.get_for_customer(offer.customer_id, opening.shop_id)
                tier = Tier(score.tier) if score is not None else None
                requirement = resolve_for_policy(tier, policy) if policy is not None else None
                payment_required = bool(requirement and requirement.payment_required)

                appointment = self.appointment_repository.create(
                    shop_id=opening.shop_id,
                    customer_id=offer.customer_id,
                    starts_at=opening.starts_at,
                    ends_at=opening.ends_at,
                    status=(
                        AppointmentStatus.PENDING.value
                        if payment_required
                        else AppointmentStatus.BOOKED.value
                    ),
                    payment_required=payment_required,
                    source_slot_opening_id=opening.id,
                )

        prometheus_metrics.record_slot_offer("accepted")
        self.logger.info(
            "slot_offer_accepted",
            extra={
                "slot_opening_id": opening.id,
                "offer_id": offer.id,
                "appointment_id": appointment.id,
            },
        )

        self.lock_store.set_cooldown(offer.customer_id)
        self._send_confirmation(offer, opening)

        return AcceptedOffer(
            appointment_id=appointment.id,
            slot_opening_id=opening.id,
            payment_required=payment_required,
            amount_cents=requirement.amount_cents if requirement else 0,
        )

    def _send_confirmation(self, offer: SlotOffer, opening: SlotOpening) -> None:
        customer = self.customer_repository.get_by_id(offer.customer_id)
        if customer is None:
            return
        shop = self.shop_repository.get_by_id(opening.shop_id)
        local_start = to_timezone(opening.starts_at, shop.timezone if shop else None)
        body = render_sms(SLOT_OFFER_ACCEPTED, time=format_offer_time(local_start))
        try:
            self.sms_service.send(customer.phone, body)
        except Exception as exc:
            self.logger.error(
                "slot_offer_confirmation_failed",
                extra={"offer_id": offer.id, "error": str(exc)},
            )

    def decline_offer(self, offer: SlotOffer) -> bool:
        """Mark the offer declined and move the slot on to the next candidate."""
        with self.transaction():
            declined = self.offer_repository.mark_declined(offer.id)
        if not declined:
            return False

        prometheus_metrics.record_slot_offer("declined")
        self.logger.info(
            "slot_offer_declined",
            extra={"slot_opening_id": offer.slot_opening_id, "offer_id": offer.id},
        )
        self.trigger.trigger(offer.slot_opening_id)
        return True
