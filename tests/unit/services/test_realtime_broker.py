"""Unit tests for RealtimeBroker and notification channels"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from src.adapter.services.realtime_broker import RealtimeBroker
from src.adapter.services.notification_service import (
    CompositeNotificationService,
    LoggingNotificationService,
    RealtimeNotificationService,
    create_notification_service,
)


@pytest.mark.asyncio
class TestRealtimeBroker:

    async def test_publish_reaches_every_subscriber_of_the_user(self):
        broker = RealtimeBroker()
        first = broker.subscribe("user_1")
        second = broker.subscribe("user_1")
        other = broker.subscribe("user_2")

        delivered = broker.publish("user_1", "wallet.deducted", {"amount": 500})

        assert delivered == 2
        message = first.get_nowait()
        assert message["event"] == "wallet.deducted"
        assert message["payload"] == {"amount": 500}
        assert "occurred_at" in message
        assert second.qsize() == 1
        assert other.qsize() == 0

    async def test_publish_without_subscribers_delivers_nothing(self):
        assert RealtimeBroker().publish("nobody", "wallet.credited", {}) == 0

    async def test_unsubscribe_stops_delivery(self):
        broker = RealtimeBroker()
        queue = broker.subscribe("user_1")

        broker.unsubscribe("user_1", queue)

        assert broker.subscriber_count("user_1") == 0
        assert broker.publish("user_1", "wallet.credited", {}) == 0

    async def test_full_queue_drops_event_without_raising(self):
        broker = RealtimeBroker(max_queue_size=1)
        queue = broker.subscribe("user_1")

        assert broker.publish("user_1", "a", {}) == 1
        assert broker.publish("user_1", "b", {}) == 0
        assert queue.get_nowait()["event"] == "a"


@pytest.mark.asyncio
class TestNotificationChannels:

    async def test_realtime_channel_reports_delivery(self):
        broker = RealtimeBroker()
        broker.subscribe("user_1")
        service = RealtimeNotificationService(broker)

        assert await service.notify("user_1", "subscription.activated", {}) is True
        assert await service.notify("user_2", "subscription.activated", {}) is False

    async def test_composite_survives_failing_channel(self):
        """
        Given: One channel raising and one succeeding
        When: An event is dispatched
        Then: The composite reports success
        """
        failing = MagicMock()
        failing.notify = AsyncMock(side_effect=RuntimeError("smtp down"))
        service = CompositeNotificationService([failing, LoggingNotificationService()])

        assert await service.notify("user_1", "payment.failed", {"error_reason": "declined"}) is True

    async def test_factory_without_extras_returns_logging_service(self):
        assert isinstance(create_notification_service(), LoggingNotificationService)

    async def test_factory_with_broker_fans_out(self):
        service = create_notification_service(broker=RealtimeBroker())

        assert isinstance(service, CompositeNotificationService)
        assert len(service.services) == 2
