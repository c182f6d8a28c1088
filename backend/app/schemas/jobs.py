"""Request and response models for the scheduled job endpoints."""

from typing import Dict, List, Optional

from pydantic import Field

from .base import StandardizedModel


class OfferLoopRequest(StandardizedModel):
    slot_opening_id: Optional[str] = Field(default=None, description="Slot opening to advance")


class OfferLoopResponse(StandardizedModel):
    success: bool
    skipped: Optional[bool] = None
    completed: Optional[bool] = None
    reason: Optional[str] = None
    customer_id: Optional[str] = None
    customer_phone: Optional[str] = None
    offer_id: Optional[str] = None


class JobSkippedResponse(StandardizedModel):
    skipped: bool = True
    reason: str = "locked"


class ExpireOffersResponse(StandardizedModel):
    total: int
    expired: int
    triggered: int
    errors: List[str] = Field(default_factory=list)


class RecomputeScoresResponse(StandardizedModel):
    processed: int
    errors: int
    error_details: List[Dict[str, str]] = Field(default_factory=list)


class ResolveOutcomesResponse(StandardizedModel):
    total: int
    resolved: int
    skipped: int
    backfilled: int
    errors: List[str] = Field(default_factory=list)
