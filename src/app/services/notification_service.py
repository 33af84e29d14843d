"""Notification Service Interface

Defines the contract for dispatching lifecycle events to users.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

logger = logging.getLogger(__name__)


class NotificationService(ABC):
    """
    Abstract notification dispatcher

    Implementations fan events out to channels such as:
    - Real-time socket (in-app)
    - Email / SMS through the delivery collaborator (HTTP webhook)
    - Logs

    Delivery is best-effort: callers never roll back state because a
    notification failed.
    """

    @abstractmethod
    async def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> bool:
        """
        Dispatch an event to a user

        Args:
            user_id: Recipient user ID
            event_type: Domain event name (see src.domain.events.EventType)
            payload: JSON-serialisable event data

        Returns:
            True if at least one channel accepted the event, False otherwise
        """
        pass


async def dispatch_notification(
    notifier: NotificationService,
    user_id: str,
    event_type: str,
    payload: Dict[str, Any],
) -> bool:
    """
    Best-effort dispatch that never raises

    Financial state is already committed when this runs; a delivery
    failure is logged and otherwise ignored.
    """
    try:
        return await notifier.notify(user_id, event_type, payload)
    except Exception as e:
        logger.error(f"Failed to dispatch {event_type} to user {user_id}: {e}")
        return False
