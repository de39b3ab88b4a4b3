"""Explicit construction and lifetime of the order execution pipeline."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from dex_order_engine.core.config import EngineConfig
from dex_order_engine.core.events import EventBroadcaster
from dex_order_engine.core.telemetry import TelemetryReporter, build_telemetry_reporter
from dex_order_engine.gate import PriceGate
from dex_order_engine.lifecycle import OrderLifecycle
from dex_order_engine.scheduler import Scheduler, WorkQueue
from dex_order_engine.service import OrderService
from dex_order_engine.store import InMemoryOrderStore, JsonFileOrderStore, OrderStore
from dex_order_engine.venues.execution import ExecutionVenue, SimulatedExecutor
from dex_order_engine.venues.quotes import QuoteSource, build_default_sources
from dex_order_engine.venues.router import VenueRouter


class OrderEngine:
    """Own every pipeline component for the lifetime of the application.

    Components default to the simulated venues and the store selected by the
    configuration; any of them can be injected instead.
    """

    def __init__(
        self,
        config: EngineConfig,
        *,
        sources: Sequence[QuoteSource] | None = None,
        executor: ExecutionVenue | None = None,
        store: OrderStore | None = None,
        telemetry: TelemetryReporter | None = None,
    ) -> None:
        self.config = config
        self.telemetry = telemetry or build_telemetry_reporter(
            file_path=config.log_dir / "telemetry.jsonl"
        )
        self.store = store or self._build_store(config)
        self.broadcaster = EventBroadcaster()
        self.router = VenueRouter(
            sources
            or build_default_sources(base_price=config.base_price, latency=config.quote_latency),
            default_venue=config.default_venue,
            quote_timeout=config.quote_timeout,
            telemetry=self.telemetry,
        )
        self.gate = PriceGate(
            self.router,
            max_attempts=config.gate_max_attempts,
            retry_delay=config.gate_retry_delay,
            telemetry=self.telemetry,
        )
        self.executor = executor or SimulatedExecutor(
            base_price=config.base_price,
            min_latency=config.execution_min_latency,
            max_latency=config.execution_max_latency,
        )
        self.lifecycle = OrderLifecycle(
            store=self.store,
            broadcaster=self.broadcaster,
            gate=self.gate,
            executor=self.executor,
            build_delay=config.build_delay,
            execution_timeout=config.execution_timeout,
            telemetry=self.telemetry,
        )
        self.queue = WorkQueue()
        self.scheduler = Scheduler(
            self.lifecycle,
            queue=self.queue,
            concurrency=config.concurrency,
            max_attempts=config.max_run_attempts,
            backoff_base=config.run_backoff_base,
            telemetry=self.telemetry,
        )
        self.service = OrderService(
            store=self.store,
            scheduler=self.scheduler,
            broadcaster=self.broadcaster,
        )

    @staticmethod
    def _build_store(config: EngineConfig) -> OrderStore:
        if config.store_file is not None:
            return JsonFileOrderStore(config.store_file)
        return InMemoryOrderStore()

    async def start(self) -> None:
        logger.info(
            "Starting order engine (concurrency={}, venues={})",
            self.config.concurrency,
            ", ".join(venue.value for venue in self.router.venues),
        )
        await self.scheduler.start()

    async def stop(self) -> None:
        """Stop the scheduler, then tear down subscriptions."""
        logger.info("Shutting down order engine...")
        await self.scheduler.stop(grace_period=self.config.shutdown_grace_period)
        self.broadcaster.close()

    async def __aenter__(self) -> OrderEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
