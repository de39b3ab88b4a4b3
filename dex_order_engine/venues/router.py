"""Venue router selecting the best effective price across quote sources."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from loguru import logger

from dex_order_engine.core.constants import DEFAULT_TIE_BREAK_VENUE
from dex_order_engine.core.telemetry import TelemetryReporter
from dex_order_engine.errors import QuoteUnavailable
from dex_order_engine.models import Quote, RoutingDecision, TradingPair, Venue

from .quotes import QuoteSource


class VenueRouter:
    """Query every quote source concurrently and pick the cheapest venue.

    Only the buy side is routed: the lowest effective price wins. On an exact
    tie the ``default_venue`` is preferred; if it is not among the tied quotes
    the first tied source in configuration order wins.
    """

    def __init__(
        self,
        sources: Sequence[QuoteSource],
        *,
        default_venue: Venue = DEFAULT_TIE_BREAK_VENUE,
        quote_timeout: float = 5.0,
        telemetry: TelemetryReporter | None = None,
    ) -> None:
        if not sources:
            raise ValueError("VenueRouter requires at least one quote source")
        self._sources = list(sources)
        self._default_venue = default_venue
        self._quote_timeout = quote_timeout
        self._telemetry = telemetry

    @property
    def venues(self) -> list[Venue]:
        return [source.venue for source in self._sources]

    async def route(self, pair: TradingPair, amount: float) -> RoutingDecision:
        """Fetch fresh quotes from every venue and return the best one.

        If any venue fails, the outstanding quote requests are cancelled
        before the first ``QuoteUnavailable`` is raised.
        """
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(self._fetch(source, pair, amount))
                    for source in self._sources
                ]
        except ExceptionGroup as grouped:
            raise grouped.exceptions[0]
        quotes = [task.result() for task in tasks]
        decision = self.select(quotes)

        logger.info(
            "[VENUE ROUTING] {} | Selected: {}",
            " | ".join(f"{quote.venue.value}: ${quote.price:.2f}" for quote in quotes),
            decision.venue.value,
        )
        if self._telemetry is not None:
            self._telemetry.info(
                "router.decision",
                context={
                    "pair": str(pair),
                    "amount": amount,
                    "selected": decision.venue.value,
                    "effective_price": decision.effective_price,
                    "quotes": {
                        quote.venue.value: {"price": quote.price, "fee": quote.fee}
                        for quote in quotes
                    },
                },
            )
        return decision

    def select(self, quotes: Sequence[Quote]) -> RoutingDecision:
        """Pick the winning quote; ``quotes`` must follow configuration order."""
        if not quotes:
            raise ValueError("Cannot select a venue without quotes")
        best_price = min(quote.effective_price for quote in quotes)
        tied = [quote for quote in quotes if quote.effective_price == best_price]
        winner = next(
            (quote for quote in tied if quote.venue == self._default_venue),
            tied[0],
        )
        return RoutingDecision.from_quote(winner, list(quotes))

    async def _fetch(self, source: QuoteSource, pair: TradingPair, amount: float) -> Quote:
        try:
            return await asyncio.wait_for(
                source.get_quote(pair, amount), timeout=self._quote_timeout
            )
        except TimeoutError as exc:
            raise QuoteUnavailable(
                source.venue.value, f"timed out after {self._quote_timeout}s"
            ) from exc
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise QuoteUnavailable(source.venue.value, str(exc) or type(exc).__name__) from exc
