"""Simulated settlement of routed orders."""

from __future__ import annotations

import asyncio
import random
import secrets
from typing import Protocol

from loguru import logger

from dex_order_engine.core.constants import (
    EXECUTION_PRICE_BAND,
    MOCK_BASE_PRICE,
    SETTLEMENT_ID_BYTES,
)
from dex_order_engine.errors import ExecutionFailed
from dex_order_engine.models import SettlementReceipt, Venue


class ExecutionVenue(Protocol):
    """Protocol implemented by settlement backends.

    Implementations raise ``ExecutionFailed`` when the venue rejects the
    settlement and ``ExecutionUnavailable`` for network failures or timeouts.
    """

    async def execute(self, venue: Venue, order_id: str) -> SettlementReceipt: ...


class SimulatedExecutor:
    """Executor that settles every order after a random latency."""

    def __init__(
        self,
        *,
        base_price: float = MOCK_BASE_PRICE,
        min_latency: float = 2.0,
        max_latency: float = 3.0,
        rejection_rate: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        if max_latency < min_latency:
            raise ValueError("max_latency must be greater than or equal to min_latency")
        if not 0.0 <= rejection_rate <= 1.0:
            raise ValueError("rejection_rate must be between 0 and 1")
        self._base_price = base_price
        self._min_latency = min_latency
        self._max_latency = max_latency
        self._rejection_rate = rejection_rate
        self._rng = rng or random.Random()

    async def execute(self, venue: Venue, order_id: str) -> SettlementReceipt:
        """Simulate building, submitting and confirming a swap."""
        latency = self._rng.uniform(self._min_latency, self._max_latency)
        if latency > 0:
            await asyncio.sleep(latency)

        if self._rejection_rate and self._rng.random() < self._rejection_rate:
            raise ExecutionFailed(venue.value, "settlement rejected by venue")

        low, high = EXECUTION_PRICE_BAND
        receipt = SettlementReceipt(
            settlement_id=self.new_settlement_id(),
            executed_price=self._base_price * self._rng.uniform(low, high),
            venue=venue,
        )
        logger.info(
            "[SWAP EXECUTED] Order: {} | Venue: {} | Price: ${:.2f} | Settlement: {}",
            order_id,
            venue.value,
            receipt.executed_price,
            receipt.settlement_id,
        )
        return receipt

    @staticmethod
    def new_settlement_id() -> str:
        return secrets.token_urlsafe(SETTLEMENT_ID_BYTES)
