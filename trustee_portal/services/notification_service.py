"""
Invitation delivery.

The core never knows how an invitation reaches its recipient; it hands an
``InvitationMessage`` to whichever notifier is configured. The accept URL
embeds the plaintext token, so notifiers must not log it.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvitationMessage:
    """Payload for one invitation delivery."""

    recipient: str
    accept_url: str
    role: str  # display name
    tenant_name: str


class InvitationNotifier:
    """Outbound notification contract."""

    def send_invitation(self, message: InvitationMessage) -> None:
        raise NotImplementedError


class LoggingInvitationNotifier(InvitationNotifier):
    """
    Default notifier: records that a delivery was requested.

    Email delivery is provided by a separate integration; this keeps the
    service runnable without one.
    """

    def send_invitation(self, message: InvitationMessage) -> None:
        logger.info(
            "Invitation for %s to join %s as %s queued for delivery",
            message.recipient,
            message.tenant_name,
            message.role,
        )
