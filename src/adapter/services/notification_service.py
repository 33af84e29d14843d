"""Notification Service Implementations

Provides concrete channels for dispatching domain events to users.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional
import httpx
from src.app.services.notification_service import NotificationService
from src.adapter.services.realtime_broker import RealtimeBroker

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    """
    Notification service that logs events

    Useful for development and testing, or as a fallback.
    """

    async def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> bool:
        """
        Log the event

        Returns:
            Always True (logging never fails)
        """
        logger.info(f"[EVENT] User: {user_id}, Type: {event_type}, Payload: {payload}")
        return True


class RealtimeNotificationService(NotificationService):
    """Pushes events to the user's open sockets through the RealtimeBroker"""

    def __init__(self, broker: RealtimeBroker):
        self.broker = broker

    async def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> bool:
        return self.broker.publish(user_id, event_type, payload) > 0


class WebhookNotificationService(NotificationService):
    """
    Notification service that forwards events via HTTP webhook

    The receiving delivery service turns them into email/SMS.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        """
        Initialize webhook notification service

        Args:
            webhook_url: URL to POST events to
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> bool:
        """
        Send the event via webhook

        Returns:
            True if webhook call succeeded, False otherwise
        """
        body = {
            "type": event_type,
            "user_id": user_id,
            "payload": payload,
            "occurred_at": datetime.utcnow().isoformat(),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.webhook_url,
                    json=body,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                logger.info(f"Webhook notification {event_type} sent for user {user_id}")
                return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to send webhook notification {event_type} for user {user_id}: {e}")
            return False


class CompositeNotificationService(NotificationService):
    """
    Notification service that delegates to multiple services

    Useful for sending to multiple channels (e.g., log + socket + webhook).
    """

    def __init__(self, services: list[NotificationService]):
        self.services = services

    async def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> bool:
        """
        Send the event to all configured services

        Returns:
            True if at least one service succeeded, False otherwise
        """
        success = False
        for service in self.services:
            try:
                if await service.notify(user_id, event_type, payload):
                    success = True
            except Exception as e:
                logger.error(f"Notification service {type(service).__name__} failed: {e}")
        return success


def create_notification_service(
    webhook_url: Optional[str] = None,
    broker: Optional[RealtimeBroker] = None,
) -> NotificationService:
    """
    Factory function to create appropriate notification service

    Args:
        webhook_url: Optional delivery-service URL (email/SMS)
        broker: Optional real-time broker for socket push

    Returns:
        Configured NotificationService
    """
    services: list[NotificationService] = [LoggingNotificationService()]

    if broker is not None:
        services.append(RealtimeNotificationService(broker))

    if webhook_url:
        services.append(WebhookNotificationService(webhook_url))

    if len(services) == 1:
        return services[0]

    return CompositeNotificationService(services)
