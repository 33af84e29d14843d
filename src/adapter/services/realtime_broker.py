"""In-process real-time event broker

Each connected socket subscribes to its user's channel and receives every
domain event published for that user.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)


class RealtimeBroker:
    """
    Per-user fan-out over asyncio queues

    Usage:
        queue = broker.subscribe(user_id)
        try:
            message = await queue.get()
        finally:
            broker.unsubscribe(user_id, queue)
    """

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._channels: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._channels[user_id].add(queue)
        logger.debug(f"Realtime subscriber added for user {user_id}")
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        subscribers = self._channels.get(user_id)
        if not subscribers:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._channels[user_id]

    def subscriber_count(self, user_id: str) -> int:
        return len(self._channels.get(user_id, ()))

    def publish(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> int:
        """
        Push an event to every subscriber of the user

        Returns:
            Number of subscribers that received the event
        """
        message = {
            "event": event_type,
            "payload": payload,
            "occurred_at": datetime.utcnow().isoformat(),
        }
        delivered = 0
        for queue in list(self._channels.get(user_id, ())):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Realtime queue full for user {user_id}, dropping {event_type}")
        return delivered

    def close(self) -> None:
        self._channels.clear()
