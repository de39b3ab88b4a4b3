"""DEX Order Engine - limit orders routed across simulated venues."""

__version__ = "0.1.0"

from dex_order_engine.core.config import EngineConfig, load_config
from dex_order_engine.core.events import EventBroadcaster, EventSubscription, LifecycleEvent
from dex_order_engine.engine import OrderEngine
from dex_order_engine.errors import (
    BusinessFailure,
    ExecutionFailed,
    ExecutionUnavailable,
    InfrastructureFault,
    LimitNotReached,
    OrderEngineError,
    OrderNotFoundError,
    QuoteUnavailable,
    UnexpectedFault,
)
from dex_order_engine.gate import GateAttempt, PriceGate
from dex_order_engine.lifecycle import OrderLifecycle
from dex_order_engine.models import (
    CreateOrderRequest,
    Order,
    OrderKind,
    OrderStatus,
    Quote,
    RoutingDecision,
    SettlementReceipt,
    TradingPair,
    Venue,
)
from dex_order_engine.scheduler import Scheduler, SchedulerStats, WorkQueue
from dex_order_engine.service import OrderService
from dex_order_engine.store import InMemoryOrderStore, JsonFileOrderStore, OrderStore
from dex_order_engine.venues import SimulatedExecutor, SimulatedQuoteSource, VenueRouter

__all__ = [
    "EngineConfig",
    "load_config",
    "EventBroadcaster",
    "EventSubscription",
    "LifecycleEvent",
    "OrderEngine",
    "OrderEngineError",
    "InfrastructureFault",
    "BusinessFailure",
    "QuoteUnavailable",
    "ExecutionUnavailable",
    "UnexpectedFault",
    "LimitNotReached",
    "ExecutionFailed",
    "OrderNotFoundError",
    "GateAttempt",
    "PriceGate",
    "OrderLifecycle",
    "CreateOrderRequest",
    "Order",
    "OrderKind",
    "OrderStatus",
    "Quote",
    "RoutingDecision",
    "SettlementReceipt",
    "TradingPair",
    "Venue",
    "Scheduler",
    "SchedulerStats",
    "WorkQueue",
    "OrderService",
    "OrderStore",
    "InMemoryOrderStore",
    "JsonFileOrderStore",
    "SimulatedExecutor",
    "SimulatedQuoteSource",
    "VenueRouter",
]
