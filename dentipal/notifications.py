"""Outbound notifications to marketplace participants.

Delivery (email, SMS, push) lives outside this package. Engines hand events
to a ``Notifier`` and never wait on or fail because of it.
"""

import logging
from typing import Any, Dict, Protocol

logger = logging.getLogger(__name__)

# Event names
JOB_INVITATION = "job_invitation"
INVITATION_RESPONSE = "invitation_response"
APPLICATION_SUBMITTED = "application_submitted"
APPLICATION_STATUS = "application_status"
NEGOTIATION_UPDATE = "negotiation_update"
JOB_SCHEDULED = "job_scheduled"


class Notifier(Protocol):
    def notify(self, recipient_sub: str, event: str, payload: Dict[str, Any]) -> None:
        """Deliver one event to one recipient."""
        ...


class LoggingNotifier:
    """Notifier that only records events in the log."""

    def notify(self, recipient_sub: str, event: str, payload: Dict[str, Any]) -> None:
        logger.info(f"notify {event} -> {recipient_sub}: {sorted(payload)}")


def send_quietly(notifier: Notifier, recipient_sub: str, event: str, payload: Dict[str, Any]) -> bool:
    """Fire-and-forget delivery. Returns False (and logs) if the notifier raised."""
    try:
        notifier.notify(recipient_sub, event, payload)
        return True
    except Exception as e:
        logger.warning(f"Notification {event} to {recipient_sub} failed: {e}")
        return False
