"""Service for sending SMS via Twilio."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import math
from typing import Any, Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from app.core.config import settings
from app.core.exceptions import MessageDeliveryError

logger = logging.getLogger(__name__)

MAX_BODY_LENGTH = 1600


class SMSStatus(str, Enum):
    SUCCESS = "success"
    DISABLED = "disabled"


@dataclass(frozen=True)
class SMSResult:
    status: SMSStatus
    provider_message_id: Optional[str] = None


class SMSService:
    """
    Outbound SMS over Twilio.

    ``send`` raises MessageDeliveryError when the provider rejects or fails the
    message; callers treat that as a recorded, non-fatal error. When SMS is
    switched off or credentials are missing, ``send`` returns DISABLED instead.
    """

    def __init__(self, client: Optional[Client] = None) -> None:
        self.messaging_service_sid = settings.twilio_messaging_service_sid
        self.from_number = settings.twilio_phone_number

        auth_token = settings.secret_value("twilio_auth_token") or ""
        configured = bool(
            settings.twilio_account_sid
            and auth_token
            and (self.from_number or self.messaging_service_sid)
        )

        if client is not None:
            self.client: Optional[Client] = client
        elif settings.sms_enabled and configured:
            self.client = Client(settings.twilio_account_sid, auth_token)
        else:
            self.client = None
            logger.info("SMS service disabled - Twilio credentials not configured")

        self.enabled = bool(settings.sms_enabled and self.client is not None)

    def send(self, to_number: str, body: str) -> SMSResult:
        """
        Send an SMS message.

        Args:
            to_number: Recipient phone number in E.164 format (+1234567890)
            body: Message body (max 1600 chars, truncated if longer)
        """
        if not self.enabled:
            logger.debug("SMS disabled, would send to %s", to_number[-4:] if to_number else "")
            return SMSResult(SMSStatus.DISABLED)

        if not to_number or not to_number.startswith("+"):
            raise MessageDeliveryError(
                "Invalid phone number format", details={"to": to_number or ""}
            )

        if len(body) > MAX_BODY_LENGTH:
            body = body[: MAX_BODY_LENGTH - 3] + "..."

        segments = self._count_sms_segments(body)
        if segments > 1:
            logger.info("SMS to %s: %s chars, %s segments", to_number[-4:], len(body), segments)

        payload: dict[str, Any] = {"body": body, "to": to_number}
        if self.messaging_service_sid:
            payload["messaging_service_sid"] = self.messaging_service_sid
        elif self.from_number:
            payload["from_"] = self.from_number
        else:
            raise MessageDeliveryError("No messaging service SID or from number set")

        try:
            message = self.client.messages.create(**payload)
        except TwilioRestException as exc:
            logger.error("Twilio error sending SMS to %s: %s", to_number[-4:], exc)
            raise MessageDeliveryError(
                f"Twilio rejected message: {exc.msg}", details={"twilio_code": exc.code}
            ) from exc

        logger.info("SMS sent to %s, SID: %s", to_number[-4:], message.sid)
        return SMSResult(SMSStatus.SUCCESS, provider_message_id=message.sid)

    @staticmethod
    def _count_sms_segments(message: str) -> int:
        if not message:
            return 1
        is_ascii = all(ord(ch) < 128 for ch in message)
        if is_ascii:
            if len(message) <= 160:
                return 1
            return math.ceil(len(message) / 153)
        if len(message) <= 70:
            return 1
        return math.ceil(len(message) / 67)
