"""Outbound notifications (registration emails)."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from django.core.mail import EmailMultiAlternatives
from django.utils.html import format_html, strip_tags

logger = logging.getLogger(__name__)

CHECK_PENDING = "registration_check_pending"
PAYMENT_RECEIVED = "payment_received"


@dataclass(frozen=True)
class NotificationResult:
    sent: bool
    subject: str
    error: str | None = None


class Notifier(ABC):
    """Interface for sending templated notifications."""

    @abstractmethod
    def send(self, template_id: str, recipient: str, data: dict[str, Any]) -> NotificationResult:
        ...


def _check_pending(data: dict[str, Any]) -> tuple[str, str]:
    subject = f"Registration received - {data['event_name']}"
    body = format_html(
        "<p>Hi {},</p>"
        "<p>Your registration for <strong>{}</strong> is reserved. "
        "Confirmation code: <strong>{}</strong>.</p>"
        "<p>Total: ${}<br>Due now: ${}</p>"
        "<p>Please make your check payable to <strong>{}</strong>"
        " and mail it to:<br>{}</p>"
        "<p>{}</p>",
        data["registrant_name"],
        data["event_name"],
        data["confirmation_code"],
        data["total_amount"],
        data["amount_due"],
        data["payable_to"],
        data.get("mailing_address") or "the event organizer",
        data.get("instructions") or "",
    )
    return subject, body


def _payment_received(data: dict[str, Any]) -> tuple[str, str]:
    subject = f"Payment received - {data['event_name']}"
    body = format_html(
        "<p>Hi {},</p>"
        "<p>We received your payment of ${} for <strong>{}</strong>.</p>"
        "<p>Confirmation code: <strong>{}</strong><br>Remaining balance: ${}</p>",
        data["registrant_name"],
        data["amount"],
        data["event_name"],
        data["confirmation_code"],
        data["amount_remaining"],
    )
    return subject, body


TEMPLATES = {
    CHECK_PENDING: _check_pending,
    PAYMENT_RECEIVED: _payment_received,
}


def render(template_id: str, data: dict[str, Any]) -> tuple[str, str]:
    """Return (subject, html body) for a template."""
    try:
        template = TEMPLATES[template_id]
    except KeyError:
        raise ValueError(f"Unknown notification template: {template_id}") from None
    return template(data)


class DjangoEmailNotifier(Notifier):
    """Sends multipart email through Django's configured mail backend."""

    def __init__(self, from_email: str) -> None:
        self._from_email = from_email

    def send(self, template_id: str, recipient: str, data: dict[str, Any]) -> NotificationResult:
        subject, body = render(template_id, data)
        message = EmailMultiAlternatives(subject, strip_tags(body), self._from_email, [recipient])
        message.attach_alternative(body, "text/html")
        try:
            message.send()
        except OSError as exc:
            logger.warning("Email %s to %s failed: %s", template_id, recipient, exc)
            return NotificationResult(sent=False, subject=subject, error=str(exc))
        return NotificationResult(sent=True, subject=subject)
