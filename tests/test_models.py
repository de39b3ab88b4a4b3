"""Tests for order and routing models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from dex_order_engine.models import (
    CreateOrderRequest,
    Order,
    OrderKind,
    OrderStatus,
    Quote,
    RoutingDecision,
    TradingPair,
    Venue,
)


def test_limit_order_requires_limit_price() -> None:
    with pytest.raises(ValidationError, match="Limit price is required"):
        CreateOrderRequest(token_in="SOL", token_out="USDC", amount_in=1.0)


def test_market_order_without_limit_price_is_accepted() -> None:
    request = CreateOrderRequest(
        kind=OrderKind.MARKET, token_in="SOL", token_out="USDC", amount_in=1.0
    )
    assert request.limit_price is None


@pytest.mark.parametrize("amount", [0, -1.5])
def test_amount_must_be_positive(amount: float) -> None:
    with pytest.raises(ValidationError):
        CreateOrderRequest(token_in="SOL", token_out="USDC", amount_in=amount, limit_price=1.0)


def test_token_symbols_are_normalized() -> None:
    request = CreateOrderRequest(
        token_in=" sol ", token_out="usdc", amount_in=1.0, limit_price=180.0
    )
    assert request.token_in == "SOL"
    assert request.token_out == "USDC"


def test_blank_token_rejected() -> None:
    with pytest.raises(ValidationError, match="cannot be empty"):
        CreateOrderRequest(token_in="  ", token_out="USDC", amount_in=1.0, limit_price=1.0)


def test_slippage_defaults_and_bounds() -> None:
    request = CreateOrderRequest(token_in="SOL", token_out="USDC", amount_in=1.0, limit_price=1.0)
    assert request.slippage == 0.02

    with pytest.raises(ValidationError):
        CreateOrderRequest(
            token_in="SOL", token_out="USDC", amount_in=1.0, limit_price=1.0, slippage=1.5
        )


def test_order_from_request_starts_pending() -> None:
    request = CreateOrderRequest(
        token_in="SOL", token_out="USDC", amount_in=2.0, limit_price=180.0
    )
    first = Order.from_request(request)
    second = Order.from_request(request)

    assert first.status == OrderStatus.PENDING
    assert first.attempts == 0
    assert first.limit_price == 180.0
    assert first.pair == TradingPair("SOL", "USDC")
    assert str(first.pair) == "SOL/USDC"
    assert first.id != second.id


def test_quote_effective_price_applies_fee() -> None:
    quote = Quote(venue=Venue.RAYDIUM, price=180.0, fee=0.003)
    assert quote.effective_price == 180.0 * (1 - 0.003)


def test_quote_rejects_fee_of_one() -> None:
    with pytest.raises(ValidationError):
        Quote(venue=Venue.METEORA, price=180.0, fee=1.0)


def test_routing_decision_from_quote() -> None:
    quotes = [
        Quote(venue=Venue.RAYDIUM, price=180.0, fee=0.003),
        Quote(venue=Venue.METEORA, price=181.0, fee=0.002),
    ]
    decision = RoutingDecision.from_quote(quotes[0], quotes)

    assert decision.venue == Venue.RAYDIUM
    assert decision.price == 180.0
    assert decision.effective_price == quotes[0].effective_price
    assert decision.quotes == quotes


class TestStatusOrdering:
    def test_forward_moves_allowed(self) -> None:
        assert OrderStatus.PENDING.can_transition_to(OrderStatus.ROUTING)
        assert OrderStatus.ROUTING.can_transition_to(OrderStatus.LIMIT_CHECK)
        assert OrderStatus.LIMIT_CHECK.can_transition_to(OrderStatus.BUILDING)
        assert OrderStatus.BUILDING.can_transition_to(OrderStatus.SUBMITTED)
        assert OrderStatus.SUBMITTED.can_transition_to(OrderStatus.CONFIRMED)

    def test_backward_moves_rejected(self) -> None:
        assert not OrderStatus.SUBMITTED.can_transition_to(OrderStatus.BUILDING)
        assert not OrderStatus.BUILDING.can_transition_to(OrderStatus.LIMIT_CHECK)
        assert not OrderStatus.ROUTING.can_transition_to(OrderStatus.PENDING)

    def test_limit_check_may_repeat(self) -> None:
        assert OrderStatus.LIMIT_CHECK.can_transition_to(OrderStatus.LIMIT_CHECK)

    def test_rerun_restarts_at_routing(self) -> None:
        assert OrderStatus.SUBMITTED.can_transition_to(OrderStatus.ROUTING)
        assert OrderStatus.LIMIT_CHECK.can_transition_to(OrderStatus.ROUTING)

    def test_failed_reachable_from_any_active_status(self) -> None:
        for status in OrderStatus:
            if not status.is_terminal:
                assert status.can_transition_to(OrderStatus.FAILED)

    @pytest.mark.parametrize("terminal", [OrderStatus.CONFIRMED, OrderStatus.FAILED])
    def test_terminal_statuses_are_final(self, terminal: OrderStatus) -> None:
        assert terminal.is_terminal
        for status in OrderStatus:
            assert not terminal.can_transition_to(status)
