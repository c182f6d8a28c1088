# backend/app/schemas/__init__.py
"""
Pydantic schemas for the slot recovery backend.
"""

from .base import StandardizedModel, StrictModel
from .jobs import (
    ExpireOffersResponse,
    JobSkippedResponse,
    OfferLoopRequest,
    OfferLoopResponse,
    RecomputeScoresResponse,
    ResolveOutcomesResponse,
)
from .main_responses import ReadyProbeResponse

__all__ = [
    "ExpireOffersResponse",
    "JobSkippedResponse",
    "OfferLoopRequest",
    "OfferLoopResponse",
    "ReadyProbeResponse",
    "RecomputeScoresResponse",
    "ResolveOutcomesResponse",
    "StandardizedModel",
    "StrictModel",
]
