"""Tests for the order record stores."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path

import pytest
from conftest import limit_order

from dex_order_engine.errors import InvalidTransitionError, OrderNotFoundError
from dex_order_engine.models import OrderStatus, Venue
from dex_order_engine.store import InMemoryOrderStore, JsonFileOrderStore


@pytest.mark.asyncio
async def test_create_and_get() -> None:
    store = InMemoryOrderStore()
    order = limit_order()

    assert await store.create(order) == order.id
    assert await store.get(order.id) == order
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_duplicate_create_rejected() -> None:
    store = InMemoryOrderStore()
    order = limit_order()
    await store.create(order)

    with pytest.raises(ValueError, match="already exists"):
        await store.create(order)


@pytest.mark.asyncio
async def test_update_records_outcome_fields() -> None:
    store = InMemoryOrderStore()
    order = limit_order()
    await store.create(order)

    await store.update(order.id, OrderStatus.ROUTING)
    updated = await store.update(
        order.id,
        OrderStatus.CONFIRMED,
        venue=Venue.METEORA,
        executed_price=185.1,
        settlement_id="abc",
    )

    assert updated.status == OrderStatus.CONFIRMED
    assert updated.venue == Venue.METEORA
    assert updated.executed_price == 185.1
    assert updated.settlement_id == "abc"
    assert updated.updated_at >= order.updated_at


@pytest.mark.asyncio
async def test_update_rejects_backward_transition() -> None:
    store = InMemoryOrderStore()
    order = limit_order()
    await store.create(order)
    await store.update(order.id, OrderStatus.BUILDING)

    with pytest.raises(InvalidTransitionError):
        await store.update(order.id, OrderStatus.LIMIT_CHECK)


@pytest.mark.asyncio
async def test_terminal_order_cannot_change() -> None:
    store = InMemoryOrderStore()
    order = limit_order()
    await store.create(order)
    await store.update(order.id, OrderStatus.FAILED, error_reason="boom")

    with pytest.raises(InvalidTransitionError):
        await store.update(order.id, OrderStatus.ROUTING)


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields_and_orders() -> None:
    store = InMemoryOrderStore()
    order = limit_order()
    await store.create(order)

    with pytest.raises(ValueError, match="limit_price"):
        await store.update(order.id, OrderStatus.ROUTING, limit_price=1.0)
    with pytest.raises(OrderNotFoundError):
        await store.update("missing", OrderStatus.ROUTING)
    with pytest.raises(OrderNotFoundError):
        await store.increment_attempts("missing")


@pytest.mark.asyncio
async def test_history_skips_repeated_status() -> None:
    store = InMemoryOrderStore()
    order = limit_order()
    await store.create(order)

    await store.update(order.id, OrderStatus.ROUTING)
    await store.update(order.id, OrderStatus.LIMIT_CHECK)
    await store.update(order.id, OrderStatus.LIMIT_CHECK)

    history = await store.history(order.id)
    assert [entry.new_status for entry in history] == [
        OrderStatus.ROUTING,
        OrderStatus.LIMIT_CHECK,
    ]
    assert await store.history("missing") == []


@pytest.mark.asyncio
async def test_counts_and_pagination() -> None:
    store = InMemoryOrderStore()
    orders = []
    for _ in range(5):
        order = limit_order()
        await store.create(order)
        orders.append(order)
        await asyncio.sleep(0.001)
    await store.update(orders[0].id, OrderStatus.FAILED, error_reason="x")
    await store.update(orders[1].id, OrderStatus.ROUTING)

    counts = await store.count_by_status()
    assert counts["pending"] == 3
    assert counts["failed"] == 1
    assert counts["routing"] == 1
    assert counts["confirmed"] == 0
    assert counts["total"] == 5

    page, total = await store.list_orders(limit=2, offset=1)
    assert total == 5
    assert [order.id for order in page] == [orders[3].id, orders[2].id]

    failed = await store.list_by_status(OrderStatus.FAILED)
    assert [order.id for order in failed] == [orders[0].id]


@pytest.mark.asyncio
async def test_increment_attempts() -> None:
    store = InMemoryOrderStore()
    order = limit_order()
    await store.create(order)

    await store.increment_attempts(order.id)
    updated = await store.increment_attempts(order.id)

    assert updated.attempts == 2


@pytest.mark.asyncio
async def test_json_store_persists_between_instances(tmp_path: Path) -> None:
    path = tmp_path / "data" / "orders.json"
    store = JsonFileOrderStore(path)
    order = limit_order()
    await store.create(order)
    await store.update(order.id, OrderStatus.ROUTING)
    await store.update(order.id, OrderStatus.FAILED, error_reason="Limit price not reached")

    assert path.exists()
    assert not path.with_suffix(".json.tmp").exists()

    reloaded = JsonFileOrderStore(path)
    restored = await reloaded.get(order.id)
    assert restored is not None
    assert restored.status == OrderStatus.FAILED
    assert restored.error_reason == "Limit price not reached"
    assert restored.limit_price == order.limit_price
    assert len(await reloaded.history(order.id)) == 2


@pytest.mark.asyncio
async def test_json_store_ignores_corrupt_snapshot(tmp_path: Path) -> None:
    path = tmp_path / "orders.json"
    path.write_text("{not json", encoding="utf-8")

    store = JsonFileOrderStore(path)

    assert (await store.count_by_status())["total"] == 0
    order = limit_order()
    await store.create(order)
    assert await store.get(order.id) is not None


@pytest.mark.asyncio
async def test_json_store_writes_off_the_event_loop(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "orders.json"
    store = JsonFileOrderStore(path)
    loop_thread = threading.get_ident()
    writer_threads: list[int] = []
    write = store._write

    def recording_write(payload: dict[str, object]) -> None:
        writer_threads.append(threading.get_ident())
        write(payload)

    monkeypatch.setattr(store, "_write", recording_write)
    orders = [limit_order() for _ in range(10)]

    await asyncio.gather(*(store.create(order) for order in orders))
    await asyncio.gather(*(store.update(order.id, OrderStatus.ROUTING) for order in orders))

    assert writer_threads
    assert loop_thread not in writer_threads
    # Concurrent mutations share writes instead of queueing one per change.
    assert len(writer_threads) < 20
    reloaded = JsonFileOrderStore(path)
    counts = await reloaded.count_by_status()
    assert counts["total"] == 10
    assert counts["routing"] == 10
    assert not path.with_suffix(".json.tmp").exists()
