"""Core infrastructure modules for the DEX order engine."""

from .config import EngineConfig, load_config
from .constants import (
    DEFAULT_TIE_BREAK_VENUE,
    EXECUTION_PRICE_BAND,
    MAX_PAGE_SIZE,
    MOCK_BASE_PRICE,
    VENUE_FEES,
    VENUE_PRICE_BANDS,
)
from .events import (
    DiagnosticEvent,
    EventBroadcaster,
    EventSubscription,
    LifecycleEvent,
    Subscriber,
)
from .telemetry import (
    FileTelemetrySink,
    LogTelemetrySink,
    MemoryTelemetrySink,
    TelemetryReporter,
    TelemetrySink,
    build_telemetry_reporter,
)

__all__ = [
    "EngineConfig",
    "load_config",
    "DEFAULT_TIE_BREAK_VENUE",
    "EXECUTION_PRICE_BAND",
    "MAX_PAGE_SIZE",
    "MOCK_BASE_PRICE",
    "VENUE_FEES",
    "VENUE_PRICE_BANDS",
    "DiagnosticEvent",
    "EventBroadcaster",
    "EventSubscription",
    "LifecycleEvent",
    "Subscriber",
    "TelemetrySink",
    "TelemetryReporter",
    "LogTelemetrySink",
    "FileTelemetrySink",
    "MemoryTelemetrySink",
    "build_telemetry_reporter",
]
