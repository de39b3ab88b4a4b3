"""Order intake and lookup facade used by transport adapters."""

from __future__ import annotations

from typing import Any

from loguru import logger
from pydantic import ValidationError

from dex_order_engine.core.constants import MAX_PAGE_SIZE
from dex_order_engine.core.events import EventBroadcaster, EventSubscription
from dex_order_engine.errors import OrderNotFoundError, SchedulerClosedError
from dex_order_engine.models import CreateOrderRequest, Order, OrderHistoryEntry, OrderStatus
from dex_order_engine.scheduler import Scheduler
from dex_order_engine.store import OrderStore


class OrderService:
    """Turn external requests into store, scheduler and broadcaster calls."""

    def __init__(
        self,
        *,
        store: OrderStore,
        scheduler: Scheduler,
        broadcaster: EventBroadcaster,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._broadcaster = broadcaster

    async def submit(self, request: CreateOrderRequest | dict[str, Any]) -> Order:
        """Validate, persist and enqueue a new order.

        Raises:
            pydantic.ValidationError: If a raw payload fails validation.
            SchedulerClosedError: If the scheduler no longer accepts orders.
                Nothing is stored in that case.
        """
        if not isinstance(request, CreateOrderRequest):
            try:
                request = CreateOrderRequest.model_validate(request)
            except ValidationError:
                logger.warning("Rejected invalid order request")
                raise
        if not self._scheduler.accepting:
            logger.warning("Rejected order request: scheduler is shut down")
            raise SchedulerClosedError("Scheduler is not accepting new orders")

        order = Order.from_request(request)
        await self._store.create(order)
        logger.info("Created order {}", order.id)
        try:
            await self._scheduler.submit(order.id)
        except SchedulerClosedError as exc:
            # Closed between the check and the enqueue.
            await self._store.update(order.id, OrderStatus.FAILED, error_reason=str(exc))
            raise
        return order

    async def get_order(self, order_id: str) -> Order:
        order = await self._store.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def list_orders(self, limit: int = 50, offset: int = 0) -> tuple[list[Order], int]:
        """Return a page of orders; the page size is capped."""
        limit = max(0, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        return await self._store.list_orders(limit=limit, offset=offset)

    async def history(self, order_id: str) -> list[OrderHistoryEntry]:
        await self.get_order(order_id)
        return await self._store.history(order_id)

    async def statistics(self) -> dict[str, dict[str, int]]:
        return {
            "orders": await self._store.count_by_status(),
            "queue": self._scheduler.stats().as_dict(),
        }

    def subscribe(self, order_id: str) -> EventSubscription:
        """Open a live event subscription for ``order_id``."""
        return self._broadcaster.listen(order_id)

    def unsubscribe(self, subscription: EventSubscription) -> None:
        subscription.close()
