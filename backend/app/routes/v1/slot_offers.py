# backend/app/routes/v1/slot_offers.py
"""
Slot offer reply webhook - API v1

Mounted under /api/v1/slot-offers. Twilio posts inbound SMS replies here
as form data; the reply is answered with TwiML.

Endpoints:
    POST /reply → YES accepts, NO declines the customer's latest open offer
"""

import asyncio
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse

from ...api.dependencies.services import get_slot_recovery_service
from ...core.config import settings
from ...core.exceptions import ConflictException
from ...services.slot_recovery_service import SlotRecoveryService
from ...services.sms_templates import (
    SLOT_OFFER_DECLINED,
    SLOT_OFFER_HINT,
    SLOT_OFFER_NO_OPEN_OFFER,
    SLOT_OFFER_UNAVAILABLE,
    render_sms,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["slot-offers-v1"])

TWILIO_SIGNATURE_HEADER = "X-Twilio-Signature"
ACCEPT_WORDS = frozenset({"YES", "Y"})
DECLINE_WORDS = frozenset({"NO", "N"})


def _verify_twilio_signature(request: Request, params: Dict[str, str]) -> None:
    """Verify the request was signed by Twilio with our auth token."""
    auth_token = settings.secret_value("twilio_auth_token")
    if auth_token is None:
        logger.error("Twilio auth token not configured; rejecting inbound SMS")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook authentication not configured",
        )

    signature = request.headers.get(TWILIO_SIGNATURE_HEADER, "")
    if not signature:
        logger.warning("Missing Twilio signature header")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    # Twilio signs the public URL, which differs from request.url behind a proxy
    url = f"{settings.app_url}{request.url.path}" if settings.app_url else str(request.url)
    if not RequestValidator(auth_token).validate(url, params, signature):
        logger.warning("Twilio signature mismatch", extra={"evt": "twilio_invalid_signature"})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")


def handle_reply(service: SlotRecoveryService, phone: str, body: str) -> Optional[str]:
    """
    Apply a customer's reply to their latest open offer.

    Returns the text to answer with, or None when the acceptance confirmation
    has already been sent as its own SMS.
    """
    command = body.strip().upper()
    if command not in ACCEPT_WORDS and command not in DECLINE_WORDS:
        return render_sms(SLOT_OFFER_HINT)

    offer = service.find_latest_open_offer(phone)
    if offer is None:
        return render_sms(SLOT_OFFER_NO_OPEN_OFFER)

    if command in DECLINE_WORDS:
        service.decline_offer(offer)
        return render_sms(SLOT_OFFER_DECLINED)

    try:
        service.accept_offer(offer)
    except ConflictException as exc:
        logger.info(
            "slot_offer_accept_conflict",
            extra={"offer_id": offer.id, "code": exc.code},
        )
        return render_sms(SLOT_OFFER_UNAVAILABLE)
    return None


@router.post("/reply", response_class=Response, response_model=None)
async def receive_reply(
    request: Request,
    service: SlotRecoveryService = Depends(get_slot_recovery_service),
) -> Response:
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}
    _verify_twilio_signature(request, params)

    phone = params.get("From", "").strip()
    if not phone:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing sender")

    reply = await asyncio.to_thread(handle_reply, service, phone, params.get("Body", ""))

    twiml = MessagingResponse()
    if reply:
        twiml.message(reply)
    return Response(content=str(twiml), media_type="application/xml")
