"""
Event broadcaster for observable market state.

Each subscriber (an SSE client, a test) gets its own bounded queue.
Publishing never blocks a producer: a full queue loses its oldest event.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from cryptosage.schemas.market import utc_now

logger = logging.getLogger(__name__)

TOPIC_COINS = "market.coins"
TOPIC_GLOBAL = "market.global"
TOPIC_PRICE = "price"
TOPIC_ORDER_BOOK = "order_book"

ALL_TOPICS = frozenset({TOPIC_COINS, TOPIC_GLOBAL, TOPIC_PRICE, TOPIC_ORDER_BOOK})


@dataclass
class Event:
    topic: str
    data: Any
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "data": self.data,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class _Subscriber:
    queue: asyncio.Queue
    topics: Optional[frozenset]
    dropped: int = 0

    def wants(self, topic: str) -> bool:
        return self.topics is None or topic in self.topics


class EventBroadcaster:
    """
    Fan-out of state change events to subscriber queues.

    Usage:
        queue = broadcaster.subscribe("client-1", topics=["price"])
        event = await queue.get()
        broadcaster.unsubscribe("client-1")
    """

    def __init__(self, queue_size: int = 100):
        self._queue_size = queue_size
        self._subscribers: Dict[str, _Subscriber] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def dropped_count(self, client_id: str) -> int:
        """Events a slow subscriber lost to a full queue."""
        subscriber = self._subscribers.get(client_id)
        return subscriber.dropped if subscriber is not None else 0

    def subscribe(self, client_id: str, topics: Optional[Iterable[str]] = None) -> asyncio.Queue:
        """Create a queue for a client. `topics=None` receives everything."""
        wanted = frozenset(topics) if topics is not None else None
        if wanted is not None:
            unknown = wanted - ALL_TOPICS
            if unknown:
                raise ValueError(f"Unknown topics: {sorted(unknown)}")

        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[client_id] = _Subscriber(queue, wanted)
        logger.debug(f"Subscriber {client_id} added ({len(self._subscribers)} total)")
        return queue

    def unsubscribe(self, client_id: str) -> None:
        """Remove a client queue."""
        if self._subscribers.pop(client_id, None) is not None:
            logger.debug(f"Subscriber {client_id} removed")

    def publish(self, topic: str, data: Any) -> Event:
        """Deliver an event to every interested subscriber without waiting."""
        event = Event(topic=topic, data=data)
        for client_id, subscriber in self._subscribers.items():
            if not subscriber.wants(topic):
                continue
            queue = subscriber.queue
            if queue.full():
                # Oldest event is lost; counted so the client can tell it missed updates
                queue.get_nowait()
                subscriber.dropped += 1
                logger.debug(f"Subscriber {client_id} queue full, dropped oldest event")
            queue.put_nowait(event)
        return event
