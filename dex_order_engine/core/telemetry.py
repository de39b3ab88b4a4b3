"""Diagnostics emitted by pipeline components.

Messages are dotted channel names owned by one component, for example
``router.decision``, ``gate.limit_not_reached`` or ``scheduler.run_retry``.
The context carries the numbers behind the decision. Diagnostics never
reach order subscribers; they go to the log, a JSON lines file or memory.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import BaseModel

from dex_order_engine.core.events import DiagnosticEvent

Context = Mapping[str, object]


def jsonable(value: object) -> object:
    """Convert a context value into something ``json.dumps`` accepts."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Mapping):
        return {str(key): jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [jsonable(item) for item in value]
    return str(value)


def event_record(event: DiagnosticEvent) -> dict[str, object]:
    """Flat JSON-ready record of one diagnostic."""
    return {
        "timestamp": event.timestamp.isoformat(),
        "level": event.level,
        "component": event.component,
        "message": event.message,
        "context": jsonable(event.context),
    }


class TelemetrySink(Protocol):
    def emit(self, event: DiagnosticEvent) -> None: ...


class LogTelemetrySink:
    """Write diagnostics through loguru as ``[component] message key=value``."""

    def emit(self, event: DiagnosticEvent) -> None:
        fields = " ".join(f"{key}={value}" for key, value in (event.context or {}).items())
        logger.bind(component=event.component).log(
            event.level, "[{}] {} {}", event.component, event.message, fields
        )


class FileTelemetrySink:
    """Append one JSON object per diagnostic to ``path``."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def emit(self, event: DiagnosticEvent) -> None:
        line = json.dumps(event_record(event), separators=(",", ":"))
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


class MemoryTelemetrySink:
    """Keep diagnostics in a list for inspection in tests."""

    def __init__(self) -> None:
        self.events: list[DiagnosticEvent] = []

    def emit(self, event: DiagnosticEvent) -> None:
        self.events.append(event)

    def messages(self) -> list[str]:
        return [event.message for event in self.events]

    def contexts(self, message: str) -> list[dict[str, object]]:
        """Contexts of every diagnostic on channel ``message``, oldest first."""
        return [
            dict(event.context or {}) for event in self.events if event.message == message
        ]


class TelemetryReporter:
    """Fan diagnostics out to sinks.

    A sink that raises is logged and skipped so that a broken diagnostics
    file never fails an order run.
    """

    def __init__(self, *sinks: TelemetrySink) -> None:
        self._sinks: list[TelemetrySink] = list(sinks) or [LogTelemetrySink()]

    @property
    def sinks(self) -> tuple[TelemetrySink, ...]:
        return tuple(self._sinks)

    def add_sink(self, sink: TelemetrySink) -> None:
        self._sinks.append(sink)

    def record(self, level: str, message: str, *, context: Context | None = None) -> None:
        event = DiagnosticEvent(
            level=level.upper(),
            message=message,
            timestamp=datetime.now(tz=UTC),
            context=dict(context) if context is not None else None,
        )
        for sink in self._sinks:
            try:
                sink.emit(event)
            except Exception:
                logger.exception(
                    "Telemetry sink {} dropped {}", type(sink).__name__, event.message
                )

    def debug(self, message: str, *, context: Context | None = None) -> None:
        self.record("DEBUG", message, context=context)

    def info(self, message: str, *, context: Context | None = None) -> None:
        self.record("INFO", message, context=context)

    def warning(self, message: str, *, context: Context | None = None) -> None:
        self.record("WARNING", message, context=context)

    def error(self, message: str, *, context: Context | None = None) -> None:
        self.record("ERROR", message, context=context)


def build_telemetry_reporter(
    *,
    log_sink: bool = True,
    file_path: Path | None = None,
) -> TelemetryReporter:
    """Reporter writing to the log and, when ``file_path`` is set, a JSONL file."""
    sinks: list[TelemetrySink] = []
    if log_sink:
        sinks.append(LogTelemetrySink())
    if file_path is not None:
        sinks.append(FileTelemetrySink(file_path))
    return TelemetryReporter(*sinks)
