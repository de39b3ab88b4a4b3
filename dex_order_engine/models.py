"""Order and routing models using Pydantic v2."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Self

from pydantic import BaseModel, Field, field_validator, model_validator


class OrderKind(str, Enum):
    """Order kind enumeration.

    Only LIMIT orders carry behaviour; MARKET and SNIPER are reserved.
    """

    LIMIT = "LIMIT"
    MARKET = "MARKET"
    SNIPER = "SNIPER"


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    PENDING = "pending"
    ROUTING = "routing"
    LIMIT_CHECK = "limit_check"
    BUILDING = "building"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.CONFIRMED, OrderStatus.FAILED)

    def can_transition_to(self, target: OrderStatus) -> bool:
        """Check whether moving from this status to ``target`` is a forward move.

        Repeating ``limit_check`` is the price gate's retry loop, and re-entering
        ``routing`` from an in-flight status is a whole-run restart.
        """
        if self.is_terminal:
            return False
        if target == OrderStatus.FAILED:
            return True
        if target == OrderStatus.ROUTING:
            return True
        if target == self == OrderStatus.LIMIT_CHECK:
            return True
        return _STATUS_RANK[target] > _STATUS_RANK[self]


_STATUS_RANK: dict[OrderStatus, int] = {
    status: rank for rank, status in enumerate(OrderStatus)
}


class Venue(str, Enum):
    """Simulated trading venues."""

    RAYDIUM = "RAYDIUM"
    METEORA = "METEORA"


@dataclass(frozen=True, slots=True)
class TradingPair:
    """Token pair an order swaps across."""

    token_in: str
    token_out: str

    def __str__(self) -> str:
        return f"{self.token_in}/{self.token_out}"


def _new_order_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _normalize_token(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Token symbol cannot be empty")
    return v.upper().strip()


class CreateOrderRequest(BaseModel):
    """Order submission payload accepted at the transport boundary."""

    kind: OrderKind = Field(default=OrderKind.LIMIT)
    token_in: str = Field(..., description="Token sold")
    token_out: str = Field(..., description="Token bought")
    amount_in: Annotated[float, Field(gt=0, description="Trade amount (must be positive)")]
    limit_price: float | None = Field(default=None, gt=0, description="Limit price")
    slippage: float = Field(default=0.02, ge=0, le=1, description="Slippage tolerance")

    @field_validator("token_in", "token_out")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Ensure token symbols are uppercase and non-empty."""
        return _normalize_token(v)

    @model_validator(mode="after")
    def validate_limit_price(self) -> Self:
        """Validate limit price is provided for limit orders."""
        if self.kind == OrderKind.LIMIT and self.limit_price is None:
            raise ValueError("Limit price is required for LIMIT orders")
        return self


class Order(CreateOrderRequest):
    """An order as held by the record store."""

    id: str = Field(default_factory=_new_order_id)
    status: OrderStatus = Field(default=OrderStatus.PENDING)
    attempts: int = Field(default=0, ge=0)
    venue: Venue | None = Field(default=None)
    executed_price: float | None = Field(default=None)
    settlement_id: str | None = Field(default=None)
    error_reason: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_request(cls, request: CreateOrderRequest) -> Order:
        return cls(**request.model_dump())

    @property
    def pair(self) -> TradingPair:
        return TradingPair(self.token_in, self.token_out)


class Quote(BaseModel):
    """Price offered by a single venue."""

    venue: Venue
    price: Annotated[float, Field(gt=0)]
    fee: Annotated[float, Field(ge=0, lt=1)]

    @property
    def effective_price(self) -> float:
        """Quoted price adjusted for the venue fee."""
        return self.price * (1 - self.fee)


class RoutingDecision(BaseModel):
    """Venue selected from one round of quotes."""

    venue: Venue
    price: float
    fee: float
    effective_price: float
    quotes: list[Quote] = Field(default_factory=list)

    @classmethod
    def from_quote(cls, quote: Quote, quotes: list[Quote]) -> RoutingDecision:
        return cls(
            venue=quote.venue,
            price=quote.price,
            fee=quote.fee,
            effective_price=quote.effective_price,
            quotes=quotes,
        )


class SettlementReceipt(BaseModel):
    """Result of a simulated settlement."""

    settlement_id: str = Field(..., min_length=1)
    executed_price: Annotated[float, Field(gt=0)]
    venue: Venue
    completed_at: datetime = Field(default_factory=_utcnow)


class OrderHistoryEntry(BaseModel):
    """Audit row recorded for every status change."""

    order_id: str
    previous_status: OrderStatus
    new_status: OrderStatus
    venue: Venue | None = None
    price: float | None = None
    recorded_at: datetime = Field(default_factory=_utcnow)
