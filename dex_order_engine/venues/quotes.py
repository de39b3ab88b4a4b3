"""Simulated venue quote sources."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable, Iterator
from typing import Protocol

from dex_order_engine.core.constants import MOCK_BASE_PRICE, VENUE_FEES, VENUE_PRICE_BANDS
from dex_order_engine.models import Quote, TradingPair, Venue

PricePolicy = Callable[[float], float]


class QuoteSource(Protocol):
    """Protocol implemented by venue quote providers."""

    @property
    def venue(self) -> Venue: ...

    async def get_quote(self, pair: TradingPair, amount: float) -> Quote: ...


def uniform_variance(low: float, high: float, rng: random.Random | None = None) -> PricePolicy:
    """Price policy drawing a multiplier of the base price from ``[low, high]``."""
    source = rng or random.Random()

    def policy(base_price: float) -> float:
        return base_price * source.uniform(low, high)

    return policy


def fixed_price(price: float) -> PricePolicy:
    """Price policy that always quotes ``price``."""

    def policy(base_price: float) -> float:
        return price

    return policy


def price_sequence(prices: list[float]) -> PricePolicy:
    """Price policy replaying ``prices`` in order, repeating the last one."""
    if not prices:
        raise ValueError("price_sequence requires at least one price")
    iterator: Iterator[float] = iter(prices)
    last = prices[-1]

    def policy(base_price: float) -> float:
        return next(iterator, last)

    return policy


class SimulatedQuoteSource:
    """Quote source that prices a pair from a policy after an artificial latency."""

    def __init__(
        self,
        venue: Venue,
        *,
        fee: float | None = None,
        base_price: float = MOCK_BASE_PRICE,
        latency: float = 0.2,
        price_policy: PricePolicy | None = None,
    ) -> None:
        self._venue = venue
        self._fee = VENUE_FEES[venue] if fee is None else fee
        self._base_price = base_price
        self._latency = latency
        if price_policy is None:
            low, high = VENUE_PRICE_BANDS[venue]
            price_policy = uniform_variance(low, high)
        self._price_policy = price_policy
        self.calls = 0

    @property
    def venue(self) -> Venue:
        return self._venue

    @property
    def fee(self) -> float:
        return self._fee

    async def get_quote(self, pair: TradingPair, amount: float) -> Quote:
        self.calls += 1
        if self._latency > 0:
            await asyncio.sleep(self._latency)
        return Quote(
            venue=self._venue,
            price=self._price_policy(self._base_price),
            fee=self._fee,
        )


def build_default_sources(
    *,
    base_price: float = MOCK_BASE_PRICE,
    latency: float = 0.2,
) -> list[SimulatedQuoteSource]:
    """Both simulated venues with their default fees and variance bands."""
    return [
        SimulatedQuoteSource(venue, base_price=base_price, latency=latency)
        for venue in (Venue.RAYDIUM, Venue.METEORA)
    ]
