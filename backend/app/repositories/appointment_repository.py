# backend/app/repositories/appointment_repository.py
"""
Appointment Repository

Reads for outcome resolution and scoring, plus the conditional writes the
cancellation and resolution paths use. Appointment rows are owned by the
booking surface; here we only set status on cancellation and the financial
outcome once it is known.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.enums import AppointmentStatus, FinancialOutcome
from app.core.exceptions import RepositoryException
from app.models.appointment import Appointment, Payment

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppointmentHistoryRow:
    status: str
    financial_outcome: str
    resolution_reason: Optional[str]
    ends_at: datetime
    created_at: datetime


class AppointmentRepository(BaseRepository[Appointment]):
    def __init__(self, db: Session):
        super().__init__(db, Appointment)

    def get_with_payment(self, appointment_id: str) -> Optional[Appointment]:
        try:
            return (
                self.db.query(Appointment)
                .options(joinedload(Appointment.payment))
                .filter(Appointment.id == appointment_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading appointment {appointment_id}: {str(e)}")
            raise RepositoryException(f"Failed to load appointment: {str(e)}")

    def get_payment(self, appointment_id: str) -> Optional[Payment]:
        return self.db.query(Payment).filter(Payment.appointment_id == appointment_id).first()

    def find_unresolved_ended_before(
        self, shop_id: str, cutoff: datetime, limit: int
    ) -> List[Appointment]:
        """Booked, unresolved appointments of one shop that ended at or before ``cutoff``, oldest first."""
        query = (
            self.db.query(Appointment)
            .options(joinedload(Appointment.payment))
            .filter(
                Appointment.shop_id == shop_id,
                Appointment.status == AppointmentStatus.BOOKED.value,
                Appointment.financial_outcome == FinancialOutcome.UNRESOLVED.value,
                Appointment.ends_at <= cutoff,
            )
            .order_by(Appointment.ends_at.asc(), Appointment.id.asc())
            .limit(limit)
        )
        return self._execute_query(query)

    def find_cancelled_unresolved(self, limit: int) -> List[Appointment]:
        query = (
            self.db.query(Appointment)
            .options(joinedload(Appointment.payment))
            .filter(
                Appointment.status == AppointmentStatus.CANCELLED.value,
                Appointment.financial_outcome == FinancialOutcome.UNRESOLVED.value,
            )
            .order_by(Appointment.cancelled_at.asc(), Appointment.id.asc())
            .limit(limit)
        )
        return self._execute_query(query)

    def resolve_outcome(
        self,
        appointment_id: str,
        outcome: FinancialOutcome,
        reason: str,
        resolved_at: datetime,
    ) -> bool:
        """Set the financial outcome only if it is still unresolved."""
        try:
            result = self.db.execute(
                update(Appointment)
                .where(
                    Appointment.id == appointment_id,
                    Appointment.financial_outcome == FinancialOutcome.UNRESOLVED.value,
                )
                .values(
                    financial_outcome=outcome.value,
                    resolution_reason=reason,
                    resolved_at=resolved_at,
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error resolving appointment {appointment_id}: {str(e)}")
            raise RepositoryException(f"Failed to resolve appointment: {str(e)}")
        return result.rowcount == 1

    def mark_cancelled(
        self,
        appointment_id: str,
        *,
        cancelled_at: datetime,
        source: str,
        outcome: FinancialOutcome,
        reason: str,
    ) -> bool:
        """booked -> cancelled, recording the financial outcome in the same write."""
        return self.transition_status(
            appointment_id,
            AppointmentStatus.BOOKED.value,
            AppointmentStatus.CANCELLED.value,
            cancelled_at=cancelled_at,
            cancellation_source=source,
            financial_outcome=outcome.value,
            resolution_reason=reason,
            resolved_at=cancelled_at,
        )

    def list_history(
        self, customer_id: str, shop_id: str, since: datetime
    ) -> List[AppointmentHistoryRow]:
        """Appointments of one customer at one shop created on or after ``since``."""
        try:
            rows = (
                self.db.query(
                    Appointment.status,
                    Appointment.financial_outcome,
                    Appointment.resolution_reason,
                    Appointment.ends_at,
                    Appointment.created_at,
                )
                .filter(
                    Appointment.customer_id == customer_id,
                    Appointment.shop_id == shop_id,
                    Appointment.created_at >= since,
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading appointment history: {str(e)}")
            raise RepositoryException(f"Failed to load appointment history: {str(e)}")
        return [
            AppointmentHistoryRow(
                status=row.status,
                financial_outcome=row.financial_outcome,
                resolution_reason=row.resolution_reason,
                ends_at=row.ends_at,
                created_at=row.created_at,
            )
            for row in rows
        ]
