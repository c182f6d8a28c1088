# backend/app/repositories/customer_score_repository.py
"""
Repository for the per-(customer, shop) scoring snapshots.

Both tables are written idempotently with INSERT ... ON CONFLICT DO UPDATE
keyed by (customer_id, shop_id), so a rerun of the recompute job overwrites
rather than duplicates.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import ulid

from app.core.exceptions import RepositoryException
from app.models.customer import CustomerNoShowStats, CustomerScore

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CustomerScoreRepository(BaseRepository[CustomerScore]):
    def __init__(self, db: Session):
        super().__init__(db, CustomerScore)

    def _upsert(self, model: Any, values: Dict[str, Any], update_values: Dict[str, Any]) -> None:
        insert_fn = sqlite_insert if self.dialect_name == "sqlite" else pg_insert
        stmt = (
            insert_fn(model)
            .values(id=str(ulid.ULID()), **values)
            .on_conflict_do_update(
                index_elements=[model.customer_id, model.shop_id],
                set_=update_values,
            )
        )
        try:
            self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error upserting {model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to upsert {model.__name__}: {str(e)}")

    def upsert_score(
        self,
        *,
        customer_id: str,
        shop_id: str,
        score: int,
        tier: str,
        window_days: int,
        stats: Dict[str, Any],
        computed_at: datetime,
    ) -> None:
        changes = {
            "score": score,
            "tier": tier,
            "window_days": window_days,
            "stats": stats,
            "computed_at": computed_at,
            "updated_at": computed_at,
        }
        self._upsert(
            CustomerScore, {"customer_id": customer_id, "shop_id": shop_id, **changes}, changes
        )

    def upsert_no_show_stats(
        self,
        *,
        customer_id: str,
        shop_id: str,
        counts: Dict[str, int],
        no_show_score: int,
        no_show_risk: str,
        last_no_show_at: Optional[datetime],
        computed_at: datetime,
    ) -> None:
        changes = {
            "total_appointments": counts["total_appointments"],
            "no_show_count": counts["no_show_count"],
            "late_cancel_count": counts["late_cancel_count"],
            "on_time_cancel_count": counts["on_time_cancel_count"],
            "completed_count": counts["completed_count"],
            "no_show_score": no_show_score,
            "no_show_risk": no_show_risk,
            "last_no_show_at": last_no_show_at,
            "computed_at": computed_at,
            "updated_at": computed_at,
        }
        self._upsert(
            CustomerNoShowStats,
            {"customer_id": customer_id, "shop_id": shop_id, **changes},
            changes,
        )

    def get_for_customer(self, customer_id: str, shop_id: str) -> Optional[CustomerScore]:
        return self.find_one_by(customer_id=customer_id, shop_id=shop_id)

    def get_no_show_stats(self, customer_id: str, shop_id: str) -> Optional[CustomerNoShowStats]:
        return (
            self.db.query(CustomerNoShowStats)
            .filter(
                CustomerNoShowStats.customer_id == customer_id,
                CustomerNoShowStats.shop_id == shop_id,
            )
            .first()
        )
