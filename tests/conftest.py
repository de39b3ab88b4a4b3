"""Pytest configuration for shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import pytest
from loguru import logger

from dex_order_engine.core.events import EventBroadcaster, LifecycleEvent
from dex_order_engine.core.telemetry import MemoryTelemetrySink, TelemetryReporter
from dex_order_engine.gate import PriceGate
from dex_order_engine.lifecycle import OrderLifecycle
from dex_order_engine.models import Order, OrderKind, OrderStatus, Venue
from dex_order_engine.store import InMemoryOrderStore
from dex_order_engine.venues.execution import ExecutionVenue, SimulatedExecutor
from dex_order_engine.venues.quotes import QuoteSource, SimulatedQuoteSource, fixed_price
from dex_order_engine.venues.router import VenueRouter


@pytest.fixture(scope="session", autouse=True)
def silence_loguru_handlers() -> None:
    """Route Loguru output to a no-op sink during tests to avoid closed stream errors."""
    logger.remove()
    logger.add(lambda _: None, catch=True)
    yield


class RecordingSubscriber:
    """Subscriber that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[LifecycleEvent] = []

    async def send(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    @property
    def statuses(self) -> list[OrderStatus]:
        return [event.status for event in self.events]


def fixed_sources(
    raydium: float = 180.0,
    meteora: float = 182.0,
    *,
    latency: float = 0.0,
) -> list[SimulatedQuoteSource]:
    """Both venues quoting constant prices with their default fees."""
    return [
        SimulatedQuoteSource(Venue.RAYDIUM, latency=latency, price_policy=fixed_price(raydium)),
        SimulatedQuoteSource(Venue.METEORA, latency=latency, price_policy=fixed_price(meteora)),
    ]


def limit_order(limit_price: float = 200.0, **overrides: object) -> Order:
    payload: dict[str, object] = {
        "kind": OrderKind.LIMIT,
        "token_in": "SOL",
        "token_out": "USDC",
        "amount_in": 1.5,
        "limit_price": limit_price,
    }
    payload.update(overrides)
    return Order(**payload)


@dataclass
class Pipeline:
    """Lifecycle wired against in-memory collaborators."""

    store: InMemoryOrderStore
    broadcaster: EventBroadcaster
    router: VenueRouter
    gate: PriceGate
    executor: ExecutionVenue
    lifecycle: OrderLifecycle
    telemetry: MemoryTelemetrySink

    async def add_order(self, order: Order) -> tuple[Order, RecordingSubscriber]:
        """Store ``order`` and attach a recording subscriber to it."""
        await self.store.create(order)
        subscriber = RecordingSubscriber()
        self.broadcaster.subscribe(order.id, subscriber)
        return order, subscriber


PipelineFactory = Callable[..., Pipeline]


@pytest.fixture
def make_pipeline() -> PipelineFactory:
    """Factory building a fast pipeline; every delay defaults to zero."""

    def factory(
        *,
        sources: list[QuoteSource] | None = None,
        executor: ExecutionVenue | None = None,
        gate_attempts: int = 3,
        gate_delay: float = 0.0,
        build_delay: float = 0.0,
        quote_timeout: float = 1.0,
        execution_timeout: float = 5.0,
    ) -> Pipeline:
        sink = MemoryTelemetrySink()
        telemetry = TelemetryReporter(sink)
        store = InMemoryOrderStore()
        broadcaster = EventBroadcaster()
        router = VenueRouter(
            sources or fixed_sources(),
            quote_timeout=quote_timeout,
            telemetry=telemetry,
        )
        gate = PriceGate(
            router,
            max_attempts=gate_attempts,
            retry_delay=gate_delay,
            telemetry=telemetry,
        )
        executor = executor or SimulatedExecutor(min_latency=0.0, max_latency=0.0)
        lifecycle = OrderLifecycle(
            store=store,
            broadcaster=broadcaster,
            gate=gate,
            executor=executor,
            build_delay=build_delay,
            execution_timeout=execution_timeout,
            telemetry=telemetry,
        )
        return Pipeline(
            store=store,
            broadcaster=broadcaster,
            router=router,
            gate=gate,
            executor=executor,
            lifecycle=lifecycle,
            telemetry=sink,
        )

    return factory
