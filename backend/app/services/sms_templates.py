"""SMS message templates for slot recovery."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SMSTemplate:
    purpose: str
    template: str


SLOT_OFFER = SMSTemplate(
    purpose="slot_offer",
    template="A slot opened: {time}. Reply YES to book.{payment_note}",
)

SLOT_OFFER_ACCEPTED = SMSTemplate(
    purpose="slot_offer_accepted",
    template="You're booked for {time}. See you then!",
)

SLOT_OFFER_UNAVAILABLE = SMSTemplate(
    purpose="slot_offer_reply",
    template="Sorry, that slot is no longer available.",
)

SLOT_OFFER_DECLINED = SMSTemplate(
    purpose="slot_offer_reply",
    template="No problem, we won't hold that slot for you.",
)

SLOT_OFFER_NO_OPEN_OFFER = SMSTemplate(
    purpose="slot_offer_reply",
    template="You have no open slot offers right now.",
)

SLOT_OFFER_HINT = SMSTemplate(
    purpose="slot_offer_reply",
    template="Reply YES to book the offered slot or NO to pass.",
)

DEPOSIT_REQUIRED_NOTE = " Deposit required."


def render_sms(template: SMSTemplate, **kwargs: str) -> str:
    """Render SMS template with provided values."""
    try:
        return template.template.format(**kwargs)
    except KeyError as exc:
        raise ValueError(f"Missing template variable: {exc}") from exc


def format_offer_time(local_start) -> str:
    """``Tue, Mar 4, 9:05 AM EST`` for a datetime already in the shop's timezone."""
    hour = local_start.hour % 12 or 12
    return f"{local_start:%a, %b} {local_start.day}, {hour}:{local_start:%M %p %Z}"


__all__ = [
    "DEPOSIT_REQUIRED_NOTE",
    "SLOT_OFFER",
    "SLOT_OFFER_ACCEPTED",
    "SLOT_OFFER_DECLINED",
    "SLOT_OFFER_HINT",
    "SLOT_OFFER_NO_OPEN_OFFER",
    "SLOT_OFFER_UNAVAILABLE",
    "SMSTemplate",
    "format_offer_time",
    "render_sms",
]
