# backend/app/services/cancellation_service.py
"""
Cancellation Service

Cancels a booked appointment, refunds it when the shop's cutoff policy
allows, records the financial outcome, and hands a paid future slot to slot
recovery. Refund execution belongs to the payment processor, reached through
the injected ``RefundProcessor``.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ..core.enums import AppointmentStatus, CancellationSource
from ..core.exceptions import BusinessRuleException, NotFoundException
from ..core.timezone_utils import utcnow
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .cancellation_policy import (
    CancellationEligibility,
    backfill_cancelled_outcome,
    calculate_cancellation_eligibility,
)
from .slot_recovery_service import SlotRecoveryService

logger = logging.getLogger(__name__)


class RefundProcessor(Protocol):
    def refund(self, payment_id: str, amount_cents: int, *, idempotency_key: str) -> str:
        """Refund ``amount_cents`` of a payment and return the processor's refund id."""


@dataclass(frozen=True)
class CancellationResult:
    refunded: bool
    amount_cents: int
    message: str
    refund_id: Optional[str]
    eligibility: CancellationEligibility


class CancellationService(BaseService):
    def __init__(
        self,
        db: Session,
        refund_processor: RefundProcessor,
        slot_recovery: SlotRecoveryService,
    ):
        super().__init__(db)
        self.refund_processor = refund_processor
        self.slot_recovery = slot_recovery
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.shop_repository = RepositoryFactory.create_shop_repository(db)

    @BaseService.measure_operation("cancel_appointment")
    def cancel_appointment(
        self,
        appointment_id: str,
        source: CancellationSource = CancellationSource.CUSTOMER,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        now = now or utcnow()
        appointment = self.appointment_repository.get_with_payment(appointment_id)
        if appointment is None:
            raise NotFoundException(
                "Appointment not found", details={"appointment_id": appointment_id}
            )
        if appointment.status != AppointmentStatus.BOOKED.value:
            raise BusinessRuleException(
                f"Cannot cancel an appointment with status '{appointment.status}'",
                code="APPOINTMENT_NOT_CANCELLABLE",
            )

        shop = self.shop_repository.get_by_id(appointment.shop_id)
        policy = self.shop_repository.get_policy(appointment.shop_id)
        payment = appointment.payment

        eligibility = calculate_cancellation_eligibility(
            appointment.starts_at,
            policy.cancel_cutoff_minutes if policy else 1440,
            shop.timezone if shop else None,
            payment.status if payment else None,
            appointment.status,
            policy.refund_before_cutoff if policy else True,
            now=now,
        )

        refund_id: Optional[str] = None
        amount_cents = 0
        if eligibility.is_eligible_for_refund and payment is not None:
            amount_cents = payment.amount_cents
            # Refund first; nothing local is written if the processor fails
            refund_id = self.refund_processor.refund(
                payment.id, amount_cents, idempotency_key=f"refund-{appointment.id}"
            )

        with self.transaction():
            if refund_id is not None:
                payment.refunded_amount_cents = amount_cents
                payment.refund_id = refund_id
                payment.refunded_at = now
            outcome = backfill_cancelled_outcome(
                payment.refunded_amount_cents if payment else 0,
                payment.refund_id if payment else None,
                payment.status if payment else None,
            )
            cancelled = self.appointment_repository.mark_cancelled(
                appointment.id,
                cancelled_at=now,
                source=source.value,
                outcome=outcome.financial_outcome,
                reason=outcome.resolution_reason,
            )
            if not cancelled:
                raise BusinessRuleException(
                    "Appointment was changed by another request",
                    code="APPOINTMENT_NOT_CANCELLABLE",
                )

        self.logger.info(
            "appointment_cancelled",
            extra={
                "appointment_id": appointment.id,
                "refunded": refund_id is not None,
                "financial_outcome": outcome.financial_outcome.value,
            },
        )

        self.slot_recovery.create_opening_from_cancellation(appointment, payment, now=now)

        if refund_id is not None:
            message = "Appointment cancelled. Your deposit will be refunded."
        elif payment is not None and eligibility.payment_succeeded:
            message = (
                "Appointment cancelled after the cutoff "
                f"({eligibility.cutoff_time_formatted}); the deposit is kept."
            )
        else:
            message = "Appointment cancelled."

        return CancellationResult(
            refunded=refund_id is not None,
            amount_cents=amount_cents,
            message=message,
            refund_id=refund_id,
            eligibility=eligibility,
        )
