"""Simulation constants shared across the engine."""

from __future__ import annotations

from dex_order_engine.models import Venue

MOCK_BASE_PRICE = 185.50
SETTLEMENT_ID_BYTES = 66

# Per-venue fee and price variance band (fraction of the base price).
VENUE_FEES: dict[Venue, float] = {
    Venue.RAYDIUM: 0.003,
    Venue.METEORA: 0.002,
}
VENUE_PRICE_BANDS: dict[Venue, tuple[float, float]] = {
    Venue.RAYDIUM: (0.98, 1.02),
    Venue.METEORA: (0.97, 1.02),
}
EXECUTION_PRICE_BAND = (0.99, 1.01)

# Venue preferred when effective prices are exactly equal.
DEFAULT_TIE_BREAK_VENUE = Venue.METEORA

MAX_PAGE_SIZE = 100
