"""Bounded worker pool running order lifecycles from a work queue."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from dataclasses import asdict, dataclass

from loguru import logger

from dex_order_engine.core.telemetry import TelemetryReporter
from dex_order_engine.errors import (
    InfrastructureFault,
    OrderNotFoundError,
    SchedulerClosedError,
)
from dex_order_engine.lifecycle import OrderLifecycle
from dex_order_engine.models import OrderStatus


@dataclass(frozen=True, slots=True)
class SchedulerStats:
    """Point-in-time view of the scheduler."""

    waiting: int
    active: int
    delayed: int
    completed: int
    failed: int

    @property
    def total(self) -> int:
        return self.waiting + self.active + self.delayed + self.completed + self.failed

    def as_dict(self) -> dict[str, int]:
        payload = asdict(self)
        payload["total"] = self.total
        return payload


class WorkQueue:
    """In-memory work-submission channel of order ids."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue()

    async def enqueue(self, order_id: str) -> None:
        await self._queue.put(order_id)
        logger.debug("[QUEUE] Order {} added to queue", order_id)

    async def dequeue(self) -> str:
        """Wait for the next order id; each id is handed to exactly one caller."""
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    def size(self) -> int:
        return self._queue.qsize()

    def drain(self) -> int:
        """Drop every queued order id, returning how many were dropped."""
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            dropped += 1
        if dropped:
            logger.info("[QUEUE] Queue cleared ({} orders dropped)", dropped)
        return dropped


class Scheduler:
    """Run at most ``concurrency`` order lifecycles at once.

    A whole run is retried, with exponentially growing delay, only when it
    raises an infrastructure fault. A delayed retry does not occupy a worker.
    """

    def __init__(
        self,
        lifecycle: OrderLifecycle,
        *,
        queue: WorkQueue | None = None,
        concurrency: int = 10,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        telemetry: TelemetryReporter | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._lifecycle = lifecycle
        self._queue = queue or WorkQueue()
        self._concurrency = concurrency
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._telemetry = telemetry

        self._workers: dict[int, asyncio.Task[None]] = {}
        self._busy: set[int] = set()
        self._delayed: dict[str, asyncio.Task[None]] = {}
        self._attempts: dict[str, int] = {}
        self._running = False
        self._closed = False
        self._active = 0
        self._peak_active = 0
        self._completed = 0
        self._failed = 0
        self._outstanding = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def running(self) -> bool:
        return self._running

    @property
    def accepting(self) -> bool:
        """Whether new orders may still be submitted."""
        return not self._closed

    @property
    def peak_active(self) -> int:
        """Highest number of simultaneously active runs observed."""
        return self._peak_active

    async def submit(self, order_id: str) -> None:
        """Queue ``order_id`` for processing."""
        if self._closed:
            raise SchedulerClosedError("Scheduler is not accepting new orders")
        self._outstanding += 1
        self._idle.clear()
        await self._queue.enqueue(order_id)

    async def start(self) -> None:
        """Start the worker pool."""
        if self._running:
            raise RuntimeError("Scheduler already running")
        if self._closed:
            raise SchedulerClosedError("Scheduler has been stopped")
        self._running = True
        for index in range(self._concurrency):
            self._workers[index] = asyncio.create_task(
                self._worker(index), name=f"order-worker-{index}"
            )
        logger.info("[WORKER] Scheduler started with {} workers", self._concurrency)

    run = start

    async def stop(self, grace_period: float = 10.0) -> None:
        """Stop accepting work and wind down the workers.

        Active runs get ``grace_period`` seconds to finish before they are
        abandoned. Queued and delayed orders keep their last persisted status.
        """
        self._closed = True
        if not self._running:
            return
        self._running = False

        for task in list(self._delayed.values()):
            task.cancel()

        idle = [task for index, task in self._workers.items() if index not in self._busy]
        busy = [task for index, task in self._workers.items() if index in self._busy]
        for task in idle:
            task.cancel()

        if busy:
            _, pending = await asyncio.wait(busy, timeout=grace_period)
            if pending:
                logger.warning(
                    "[WORKER] Abandoning {} active order run(s) after {}s grace period",
                    len(pending),
                    grace_period,
                )
                for task in pending:
                    task.cancel()

        await asyncio.gather(
            *self._workers.values(), *self._delayed.values(), return_exceptions=True
        )
        self._workers.clear()
        self._busy.clear()
        self._delayed.clear()
        logger.info("[WORKER] Scheduler stopped")

    async def join(self) -> None:
        """Wait until every submitted order has finished."""
        await self._idle.wait()

    def stats(self) -> SchedulerStats:
        return SchedulerStats(
            waiting=self._queue.size(),
            active=self._active,
            delayed=len(self._delayed),
            completed=self._completed,
            failed=self._failed,
        )

    async def _worker(self, index: int) -> None:
        while self._running:
            order_id = await self._queue.dequeue()
            self._busy.add(index)
            try:
                await self._process(order_id)
            finally:
                self._busy.discard(index)
                self._queue.task_done()

    async def _process(self, order_id: str) -> None:
        attempt = self._attempts.get(order_id, 0) + 1
        self._attempts[order_id] = attempt
        final_attempt = attempt >= self._max_attempts

        self._active += 1
        self._peak_active = max(self._peak_active, self._active)
        logger.info(
            "[WORKER] Processing order {} (attempt {}/{})",
            order_id,
            attempt,
            self._max_attempts,
        )
        try:
            order = await self._lifecycle.run(order_id, final_attempt=final_attempt)
        except asyncio.CancelledError:
            raise
        except InfrastructureFault as exc:
            self._schedule_retry(order_id, attempt, exc)
            return
        except OrderNotFoundError as exc:
            logger.error("[WORKER] {}", exc)
            self._record_failure(order_id)
            return
        except Exception as exc:
            logger.exception("[WORKER] Run for order {} crashed", order_id)
            if final_attempt:
                self._report_exhausted(order_id, attempt, exc)
                self._record_failure(order_id)
            else:
                self._schedule_retry(order_id, attempt, exc)
            return
        finally:
            self._active -= 1

        if order.status == OrderStatus.CONFIRMED:
            self._completed += 1
            logger.info("[WORKER] Successfully completed order {}", order_id)
        else:
            self._failed += 1
            logger.info("[WORKER] Order {} ended {}", order_id, order.status.value)
        self._finish(order_id)

    def _schedule_retry(self, order_id: str, attempt: int, exc: Exception) -> None:
        delay = self._backoff_base * 2 ** (attempt - 1)
        logger.warning(
            "[WORKER] Order {} attempt {}/{} failed: {}. Retrying in {}s",
            order_id,
            attempt,
            self._max_attempts,
            exc,
            delay,
        )
        if self._telemetry is not None:
            self._telemetry.warning(
                "scheduler.run_retry",
                context={
                    "order_id": order_id,
                    "attempt": attempt,
                    "max_attempts": self._max_attempts,
                    "delay": delay,
                    "error": str(exc),
                },
            )
        task = asyncio.create_task(self._requeue_later(order_id, delay))
        self._delayed[order_id] = task
        task.add_done_callback(lambda done: self._clear_delayed(order_id, done))

    async def _requeue_later(self, order_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._queue.enqueue(order_id)

    def _clear_delayed(self, order_id: str, task: asyncio.Task[None]) -> None:
        if self._delayed.get(order_id) is task:
            del self._delayed[order_id]
        with suppress(asyncio.CancelledError):
            if task.exception() is not None:
                logger.error("[WORKER] Failed to requeue order {}", order_id)

    def _report_exhausted(self, order_id: str, attempt: int, exc: Exception) -> None:
        if self._telemetry is not None:
            self._telemetry.error(
                "scheduler.run_exhausted",
                context={"order_id": order_id, "attempts": attempt, "error": str(exc)},
            )

    def _record_failure(self, order_id: str) -> None:
        self._failed += 1
        self._finish(order_id)

    def _finish(self, order_id: str) -> None:
        self._attempts.pop(order_id, None)
        self._outstanding = max(0, self._outstanding - 1)
        if self._outstanding == 0:
            self._idle.set()
