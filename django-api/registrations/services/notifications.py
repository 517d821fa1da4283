"""Notification dispatch that never unwinds the caller.

Every attempt, sent or failed, is written to the email log. A failure to
send or to write the log is logged and reported as `False`.
"""

import logging
from typing import Any

from registrations.domain import EventId, RegistrationId
from registrations.integrations.notifier import NotificationResult, Notifier
from registrations.stores.interfaces import NotificationLogEntry, NotificationLogStore

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, notifier: Notifier, log_store: NotificationLogStore) -> None:
        self._notifier = notifier
        self._log_store = log_store

    def dispatch(
        self,
        template_id: str,
        recipient: str,
        data: dict[str, Any],
        *,
        organization_id: str,
        event_id: EventId,
        registration_id: RegistrationId,
    ) -> bool:
        try:
            result = self._notifier.send(template_id, recipient, data)
        except Exception as exc:
            logger.exception(
                "Notification %s for registration %s could not be sent",
                template_id,
                registration_id,
            )
            result = NotificationResult(sent=False, subject=template_id, error=str(exc))

        entry = NotificationLogEntry(
            organization_id=organization_id,
            event_id=event_id,
            registration_id=registration_id,
            recipient=recipient,
            template_id=template_id,
            subject=result.subject,
            sent=result.sent,
            error_message=result.error,
        )
        try:
            self._log_store.record(entry)
        except Exception:
            logger.exception(
                "Email log for registration %s not written (sent=%s)",
                registration_id,
                result.sent,
            )
        return result.sent
