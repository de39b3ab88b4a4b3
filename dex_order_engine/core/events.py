"""Lifecycle events and the per-order event broadcaster."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from loguru import logger

from dex_order_engine.models import OrderStatus


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class LifecycleEvent:
    """Status change notification for one order."""

    order_id: str
    status: OrderStatus
    data: Mapping[str, Any] | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready payload handed to transport connections."""
        return {
            "orderId": self.order_id,
            "status": self.status.value,
            "data": dict(self.data) if self.data is not None else None,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class DiagnosticEvent:
    """Telemetry message for instrumentation warnings/info."""

    level: str
    message: str
    timestamp: datetime
    context: dict[str, object] | None = None

    @property
    def component(self) -> str:
        """Owning component, the part of ``message`` before the first dot."""
        return self.message.partition(".")[0]


class Subscriber(Protocol):
    """Anything that can receive lifecycle events."""

    async def send(self, event: LifecycleEvent) -> None: ...


class EventSubscription:
    """Queue-backed subscriber exposing events as an async iterator.

    Closing the subscription ends iteration once the already delivered events
    have been consumed, including for a consumer that is waiting right now.
    """

    def __init__(self, broadcaster: EventBroadcaster, order_id: str) -> None:
        self._broadcaster = broadcaster
        self._order_id = order_id
        # None marks the end of the stream.
        self._queue: asyncio.Queue[LifecycleEvent | None] = asyncio.Queue()
        self._active = True
        self._end_queued = False
        broadcaster.subscribe(order_id, self)

    @property
    def order_id(self) -> str:
        return self._order_id

    @property
    def active(self) -> bool:
        return self._active

    async def send(self, event: LifecycleEvent) -> None:
        await self._queue.put(event)

    def __aiter__(self) -> AsyncIterator[LifecycleEvent]:
        return self

    async def __anext__(self) -> LifecycleEvent:
        if not self._active and self._queue.empty():
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            self._end_queued = False
            raise StopAsyncIteration
        return event

    async def get(self) -> LifecycleEvent:
        """Retrieve the next event."""
        return await self.__anext__()

    def pending(self) -> int:
        """Number of delivered events not yet consumed."""
        return self._queue.qsize() - int(self._end_queued)

    def close(self) -> None:
        """Unsubscribe from the broadcaster and wake any waiting consumer."""
        if self._active:
            self._active = False
            self._broadcaster.unsubscribe(self._order_id, self)
            self._queue.put_nowait(None)
            self._end_queued = True

    async def __aenter__(self) -> EventSubscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class EventBroadcaster:
    """Per-order publish/subscribe registry.

    Events for one order are fanned out under that order's lock, so two
    publishes for the same order never interleave their sends. Registry entries
    are dropped as soon as their last subscriber leaves.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def subscribe(self, order_id: str, subscriber: Subscriber) -> None:
        """Register ``subscriber`` for events of ``order_id``."""
        subscribers = self._subscribers.setdefault(order_id, [])
        if subscriber not in subscribers:
            subscribers.append(subscriber)
            logger.debug("[BROADCAST] Client subscribed to order {}", order_id)

    def unsubscribe(self, order_id: str, subscriber: Subscriber) -> None:
        """Remove ``subscriber``; unknown subscribers are ignored."""
        subscribers = self._subscribers.get(order_id)
        if not subscribers:
            return
        try:
            subscribers.remove(subscriber)
        except ValueError:
            return
        if not subscribers:
            self._subscribers.pop(order_id, None)
            lock = self._locks.get(order_id)
            if lock is not None and not lock.locked():
                self._locks.pop(order_id, None)

    def listen(self, order_id: str) -> EventSubscription:
        """Create a queue-backed subscription for ``order_id``."""
        return EventSubscription(self, order_id)

    def subscriber_count(self, order_id: str) -> int:
        return len(self._subscribers.get(order_id, ()))

    def has_entry(self, order_id: str) -> bool:
        return order_id in self._subscribers

    async def publish(self, order_id: str, event: LifecycleEvent) -> int:
        """Deliver ``event`` to the subscribers registered right now.

        Returns the number of subscribers the event was delivered to.
        """
        subscribers = list(self._subscribers.get(order_id, ()))
        if not subscribers:
            logger.debug("[BROADCAST] No active subscribers for order {}", order_id)
            return 0

        lock = self._locks.setdefault(order_id, asyncio.Lock())
        delivered = 0
        async with lock:
            for subscriber in subscribers:
                try:
                    await subscriber.send(event)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.warning(
                        "[BROADCAST] Dropping subscriber for order {}: {}", order_id, exc
                    )
                    self.unsubscribe(order_id, subscriber)
                else:
                    delivered += 1

        if order_id not in self._subscribers and not lock.locked():
            self._locks.pop(order_id, None)

        logger.debug(
            "[BROADCAST] Emitted {} to {} client(s) for order {}",
            event.status.value,
            delivered,
            order_id,
        )
        return delivered

    def close(self) -> None:
        """Tear down every subscription."""
        for order_id, subscribers in list(self._subscribers.items()):
            for subscriber in list(subscribers):
                if isinstance(subscriber, EventSubscription):
                    subscriber.close()
                else:
                    self.unsubscribe(order_id, subscriber)
        self._subscribers.clear()
        self._locks.clear()
