"""Simulated trading venues: quote sources, routing and settlement."""

from .execution import ExecutionVenue, SimulatedExecutor
from .quotes import (
    PricePolicy,
    QuoteSource,
    SimulatedQuoteSource,
    build_default_sources,
    fixed_price,
    price_sequence,
    uniform_variance,
)
from .router import VenueRouter

__all__ = [
    "ExecutionVenue",
    "SimulatedExecutor",
    "PricePolicy",
    "QuoteSource",
    "SimulatedQuoteSource",
    "build_default_sources",
    "fixed_price",
    "price_sequence",
    "uniform_variance",
    "VenueRouter",
]
