"""Price gate holding an order until its limit condition is met."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from dex_order_engine.core.telemetry import TelemetryReporter
from dex_order_engine.errors import LimitNotReached
from dex_order_engine.models import RoutingDecision, TradingPair
from dex_order_engine.venues.router import VenueRouter


@dataclass(frozen=True, slots=True)
class GateAttempt:
    """Outcome of one limit check."""

    attempt: int
    max_attempts: int
    decision: RoutingDecision
    limit_price: float
    satisfied: bool


AttemptCallback = Callable[[GateAttempt], Awaitable[None]]


class PriceGate:
    """Re-route with fresh quotes until the best price reaches the limit.

    Attempts are spaced by a fixed delay. No delay is incurred after a
    satisfied check or after the final failed one.
    """

    def __init__(
        self,
        router: VenueRouter,
        *,
        max_attempts: int = 3,
        retry_delay: float = 3.0,
        telemetry: TelemetryReporter | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._router = router
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._telemetry = telemetry

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @staticmethod
    def check_limit_condition(best_price: float, limit_price: float) -> bool:
        """Buy-side condition: the best price must not exceed the limit."""
        return best_price <= limit_price

    async def satisfy(
        self,
        pair: TradingPair,
        amount: float,
        limit_price: float,
        *,
        max_attempts: int | None = None,
        delay: float | None = None,
        on_attempt: AttemptCallback | None = None,
        order_id: str | None = None,
    ) -> RoutingDecision:
        """Return the first routing decision that satisfies ``limit_price``.

        Raises:
            LimitNotReached: If every attempt quoted above the limit.
            QuoteUnavailable: If a venue failed to quote.
        """
        attempts = self._max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        spacing = self._retry_delay if delay is None else delay
        label = order_id or str(pair)

        attempt = 0
        while True:
            attempt += 1
            decision = await self._router.route(pair, amount)
            satisfied = self.check_limit_condition(decision.effective_price, limit_price)

            if on_attempt is not None:
                await on_attempt(
                    GateAttempt(
                        attempt=attempt,
                        max_attempts=attempts,
                        decision=decision,
                        limit_price=limit_price,
                        satisfied=satisfied,
                    )
                )

            if satisfied:
                logger.info(
                    "[LIMIT CHECK] Order {} passed on attempt {}: ${:.2f} <= ${:.2f}",
                    label,
                    attempt,
                    decision.effective_price,
                    limit_price,
                )
                return decision

            if attempt >= attempts:
                break
            logger.info(
                "[LIMIT CHECK] Attempt {}/{} failed for order {}. Retrying in {}s...",
                attempt,
                attempts,
                label,
                spacing,
            )
            await asyncio.sleep(spacing)

        logger.info(
            "[LIMIT CHECK] Order {} failed after {} attempts. Best: ${:.2f}, Limit: ${:.2f}",
            label,
            attempts,
            decision.effective_price,
            limit_price,
        )
        if self._telemetry is not None:
            self._telemetry.warning(
                "gate.limit_not_reached",
                context={
                    "order_id": label,
                    "attempts": attempts,
                    "best_price": decision.effective_price,
                    "limit_price": limit_price,
                },
            )
        raise LimitNotReached(attempts, decision.effective_price, limit_price)
