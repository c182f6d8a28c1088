"""
Response models for the unversioned infrastructure endpoints.
"""

from typing import Literal

from pydantic import Field

from .base import StrictModel


class ReadyProbeResponse(StrictModel):
    """Response body for /ready endpoint."""

    status: Literal["ok", "db_not_ready", "lock_store_not_ready"] = Field(
        description="Overall readiness status"
    )
