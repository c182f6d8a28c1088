"""
Best-effort trigger of the offer-loop job over HTTP.

Used after a slot opening is created, after an offer expires and after an
offer is declined. The trigger never raises: the result says whether the
call went through, and the expiry sweep is the backstop when it did not.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

import httpx

from app.core.config import settings
from app.core.constants import INTERNAL_SECRET_HEADER

logger = logging.getLogger(__name__)

OFFER_LOOP_PATH = "/api/v1/jobs/offer-loop"


@dataclass(frozen=True)
class TriggerResult:
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class OfferLoopTrigger:
    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        *,
        app_url: Optional[str] = None,
        internal_secret: Optional[str] = None,
    ) -> None:
        self.app_url = app_url if app_url is not None else settings.app_url
        self.internal_secret = (
            internal_secret
            if internal_secret is not None
            else settings.secret_value("internal_secret")
        )
        self._client = client

    def _http(self) -> httpx.Client:
        if self._client is None:
            timeout = httpx.Timeout(settings.trigger_timeout_seconds, connect=5.0)
            self._client = httpx.Client(timeout=timeout)
        return self._client

    def trigger(self, slot_opening_id: str) -> TriggerResult:
        if not self.app_url or not self.internal_secret:
            logger.warning(
                "offer_loop_trigger_not_configured",
                extra={"slot_opening_id": slot_opening_id},
            )
            return TriggerResult(ok=False, error="APP_URL or INTERNAL_SECRET not configured")

        try:
            response = self._http().post(
                f"{self.app_url}{OFFER_LOOP_PATH}",
                json={"slot_opening_id": slot_opening_id},
                headers={INTERNAL_SECRET_HEADER: self.internal_secret},
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "offer_loop_trigger_failed",
                extra={"slot_opening_id": slot_opening_id, "error": str(exc)},
            )
            return TriggerResult(ok=False, error=str(exc))

        if response.is_success:
            return TriggerResult(ok=True, status_code=response.status_code)

        logger.warning(
            "offer_loop_trigger_rejected",
            extra={"slot_opening_id": slot_opening_id, "status_code": response.status_code},
        )
        return TriggerResult(
            ok=False,
            status_code=response.status_code,
            error=f"Offer loop failed: {response.status_code}",
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
