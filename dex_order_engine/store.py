"""Order record stores."""

from __future__ import annotations

import asyncio
import json
from collections import Counter
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from dex_order_engine.errors import InvalidTransitionError, OrderNotFoundError
from dex_order_engine.models import Order, OrderHistoryEntry, OrderStatus

_OUTCOME_FIELDS = frozenset({"venue", "executed_price", "settlement_id", "error_reason"})


class OrderStore(Protocol):
    """Key-indexed order record store consumed by the pipeline."""

    async def create(self, order: Order) -> str: ...

    async def get(self, order_id: str) -> Order | None: ...

    async def update(self, order_id: str, status: OrderStatus, **fields: Any) -> Order: ...

    async def increment_attempts(self, order_id: str) -> Order: ...

    async def count_by_status(self) -> dict[str, int]: ...

    async def list_orders(self, limit: int = 50, offset: int = 0) -> tuple[list[Order], int]: ...

    async def history(self, order_id: str) -> list[OrderHistoryEntry]: ...


class InMemoryOrderStore:
    """Order store kept in process memory.

    Status updates are checked against the lifecycle ordering and recorded in
    an audit history.
    """

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._history: dict[str, list[OrderHistoryEntry]] = {}
        self._lock = asyncio.Lock()

    async def create(self, order: Order) -> str:
        async with self._lock:
            if order.id in self._orders:
                raise ValueError(f"Order {order.id} already exists")
            self._orders[order.id] = order
            self._history[order.id] = []
            snapshot = self._snapshot()
        await self._persist(snapshot)
        return order.id

    async def get(self, order_id: str) -> Order | None:
        async with self._lock:
            return self._orders.get(order_id)

    async def update(self, order_id: str, status: OrderStatus, **fields: Any) -> Order:
        unknown = set(fields) - _OUTCOME_FIELDS
        if unknown:
            raise ValueError(f"Unknown order fields: {', '.join(sorted(unknown))}")

        async with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                raise OrderNotFoundError(order_id)
            if current.status != status and not current.status.can_transition_to(status):
                raise InvalidTransitionError(
                    f"Order {order_id} cannot move from {current.status.value} to {status.value}"
                )

            updated = current.model_copy(
                update={"status": status, "updated_at": datetime.now(UTC), **fields}
            )
            self._orders[order_id] = updated
            if current.status != status:
                self._history[order_id].append(
                    OrderHistoryEntry(
                        order_id=order_id,
                        previous_status=current.status,
                        new_status=status,
                        venue=updated.venue,
                        price=updated.executed_price,
                    )
                )
            snapshot = self._snapshot()
        await self._persist(snapshot)
        return updated

    async def increment_attempts(self, order_id: str) -> Order:
        async with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                raise OrderNotFoundError(order_id)
            updated = current.model_copy(
                update={"attempts": current.attempts + 1, "updated_at": datetime.now(UTC)}
            )
            self._orders[order_id] = updated
            snapshot = self._snapshot()
        await self._persist(snapshot)
        return updated

    async def count_by_status(self) -> dict[str, int]:
        async with self._lock:
            counts = Counter(order.status.value for order in self._orders.values())
        result = {status.value: counts.get(status.value, 0) for status in OrderStatus}
        result["total"] = sum(counts.values())
        return result

    async def list_orders(self, limit: int = 50, offset: int = 0) -> tuple[list[Order], int]:
        """Return a page of orders, newest first, and the total count."""
        async with self._lock:
            ordered = sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)
        return ordered[offset : offset + limit], len(ordered)

    async def list_by_status(self, status: OrderStatus) -> list[Order]:
        async with self._lock:
            matching = [order for order in self._orders.values() if order.status == status]
        return sorted(matching, key=lambda o: o.created_at, reverse=True)

    async def history(self, order_id: str) -> list[OrderHistoryEntry]:
        async with self._lock:
            return list(self._history.get(order_id, ()))

    def _snapshot(self) -> Any:
        """Capture state for persistence; called with self._lock held."""
        return None

    async def _persist(self, snapshot: Any) -> None:
        """Hook for durable subclasses; called after self._lock is released."""


class JsonFileOrderStore(InMemoryOrderStore):
    """In-memory store that snapshots every mutation to a JSON file.

    Each mutation rewrites the whole file, so it suits local runs with a
    small order book. Writes happen in a worker thread outside the store
    lock; a write is skipped when a newer snapshot is already queued.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = Path(path)
        self._version = 0
        self._write_lock = asyncio.Lock()
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            decoded = json.loads(self._path.read_text(encoding="utf-8"))
            for payload in decoded.get("orders", []):
                order = Order.model_validate(payload)
                self._orders[order.id] = order
            for order_id, entries in decoded.get("history", {}).items():
                self._history[order_id] = [
                    OrderHistoryEntry.model_validate(entry) for entry in entries
                ]
            for order_id in self._orders:
                self._history.setdefault(order_id, [])
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load order store snapshot {}: {}", self._path, exc)
            self._orders.clear()
            self._history.clear()
        else:
            logger.info("Loaded {} orders from {}", len(self._orders), self._path)

    def _snapshot(self) -> tuple[int, dict[str, Any]]:
        self._version += 1
        payload = {
            "orders": [order.model_dump(mode="json") for order in self._orders.values()],
            "history": {
                order_id: [entry.model_dump(mode="json") for entry in entries]
                for order_id, entries in self._history.items()
            },
        }
        return self._version, payload

    async def _persist(self, snapshot: tuple[int, dict[str, Any]]) -> None:
        version, payload = snapshot
        async with self._write_lock:
            if version != self._version:
                # Superseded by a snapshot still waiting for the lock.
                return
            await asyncio.to_thread(self._write, payload)

    def _write(self, payload: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)
