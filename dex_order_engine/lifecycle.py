"""Order state machine driving one order from routing to settlement."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from dex_order_engine.core.events import EventBroadcaster, LifecycleEvent
from dex_order_engine.core.telemetry import TelemetryReporter
from dex_order_engine.errors import (
    BusinessFailure,
    ExecutionUnavailable,
    InfrastructureFault,
    InvalidOrder,
    OrderNotFoundError,
    UnexpectedFault,
    UnsupportedOrderKind,
)
from dex_order_engine.gate import GateAttempt, PriceGate
from dex_order_engine.models import Order, OrderKind, OrderStatus, RoutingDecision
from dex_order_engine.store import OrderStore
from dex_order_engine.venues.execution import ExecutionVenue


class OrderLifecycle:
    """Sequence routing, the price gate, execution and outcome recording.

    Every transition is persisted to the store and then broadcast before the
    next stage starts. Business failures end the order in ``failed``.
    Infrastructure faults end it in ``failed`` only on the final attempt;
    earlier attempts re-raise them so the scheduler can re-run the order.
    """

    def __init__(
        self,
        *,
        store: OrderStore,
        broadcaster: EventBroadcaster,
        gate: PriceGate,
        executor: ExecutionVenue,
        build_delay: float = 0.5,
        execution_timeout: float = 30.0,
        telemetry: TelemetryReporter | None = None,
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._gate = gate
        self._executor = executor
        self._build_delay = build_delay
        self._execution_timeout = execution_timeout
        self._telemetry = telemetry

    async def run(self, order_id: str, *, final_attempt: bool = True) -> Order:
        """Drive ``order_id`` to a terminal status.

        Raises:
            OrderNotFoundError: If the store has no such order.
            InfrastructureFault: On a retry-eligible fault when ``final_attempt`` is False.
        """
        order = await self._store.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.status.is_terminal:
            logger.warning(
                "Order {} already {}; ignoring duplicate run", order_id, order.status.value
            )
            return order

        order = await self._store.increment_attempts(order_id)
        try:
            return await self._process(order)
        except asyncio.CancelledError:
            raise
        except BusinessFailure as exc:
            return await self._fail(order_id, str(exc))
        except InfrastructureFault as exc:
            return await self._handle_fault(order_id, exc, final_attempt)
        except Exception as exc:
            fault = UnexpectedFault(str(exc) or type(exc).__name__)
            logger.exception("Unexpected error while processing order {}", order_id)
            if not final_attempt:
                raise fault from exc
            return await self._fail(order_id, str(fault))

    async def _process(self, order: Order) -> Order:
        if order.kind != OrderKind.LIMIT:
            raise UnsupportedOrderKind(order.kind.value)
        if order.limit_price is None:
            raise InvalidOrder(order.id, "limit order has no limit price")

        await self._transition(
            order.id,
            OrderStatus.ROUTING,
            {"message": "Fetching quotes from venues..."},
        )

        async def report_attempt(attempt: GateAttempt) -> None:
            await self._transition(
                order.id,
                OrderStatus.LIMIT_CHECK,
                {
                    "venue": attempt.decision.venue.value,
                    "price": attempt.decision.effective_price,
                    "limit_price": attempt.limit_price,
                    "attempt": attempt.attempt,
                    "max_attempts": attempt.max_attempts,
                },
            )

        decision = await self._gate.satisfy(
            order.pair,
            order.amount_in,
            order.limit_price,
            on_attempt=report_attempt,
            order_id=order.id,
        )

        await self._transition(
            order.id, OrderStatus.BUILDING, {"message": "Building transaction..."}
        )
        await asyncio.sleep(self._build_delay)

        await self._transition(
            order.id, OrderStatus.SUBMITTED, {"message": "Submitting to network..."}
        )
        return await self._execute(order.id, decision)

    async def _execute(self, order_id: str, decision: RoutingDecision) -> Order:
        try:
            receipt = await asyncio.wait_for(
                self._executor.execute(decision.venue, order_id),
                timeout=self._execution_timeout,
            )
        except TimeoutError as exc:
            raise ExecutionUnavailable(
                decision.venue.value, f"timed out after {self._execution_timeout}s"
            ) from exc

        updated = await self._transition(
            order_id,
            OrderStatus.CONFIRMED,
            {
                "venue": receipt.venue.value,
                "price": receipt.executed_price,
                "settlement_id": receipt.settlement_id,
            },
            venue=receipt.venue,
            executed_price=receipt.executed_price,
            settlement_id=receipt.settlement_id,
        )
        if self._telemetry is not None:
            self._telemetry.info(
                "lifecycle.confirmed",
                context={
                    "order_id": order_id,
                    "venue": receipt.venue.value,
                    "price": receipt.executed_price,
                    "settlement_id": receipt.settlement_id,
                },
            )
        return updated

    async def _handle_fault(
        self, order_id: str, exc: InfrastructureFault, final_attempt: bool
    ) -> Order:
        if not final_attempt:
            logger.warning("Order {} hit a retryable fault: {}", order_id, exc)
            raise exc
        return await self._fail(order_id, str(exc))

    async def _fail(self, order_id: str, reason: str) -> Order:
        reason = reason or "Unknown error"
        logger.error("Order {} failed: {}", order_id, reason)
        updated = await self._transition(
            order_id,
            OrderStatus.FAILED,
            {"error": reason},
            error_reason=reason,
        )
        if self._telemetry is not None:
            self._telemetry.warning(
                "lifecycle.failed", context={"order_id": order_id, "reason": reason}
            )
        return updated

    async def _transition(
        self,
        order_id: str,
        status: OrderStatus,
        data: dict[str, Any] | None = None,
        **fields: Any,
    ) -> Order:
        updated = await self._store.update(order_id, status, **fields)
        await self._broadcaster.publish(
            order_id, LifecycleEvent(order_id=order_id, status=status, data=data)
        )
        return updated
