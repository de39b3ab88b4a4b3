"""Shared utility functions for CLI commands."""

import sys
from pathlib import Path

from loguru import logger

from dex_order_engine.core.events import LifecycleEvent


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """Configure loguru logging.

    Args:
        log_dir: Directory for log files
        verbose: Enable verbose debug logging
    """
    # Remove default handler
    logger.remove()

    # Console handler
    log_level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
        "<level>{message}</level>",
        level=log_level,
    )

    # File handler
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_dir / "engine_{time}.log",
        rotation="1 day",
        retention="7 days",
        level="DEBUG",
    )


def format_event_line(event: LifecycleEvent) -> str:
    """Render a lifecycle event as a single console line."""
    data = dict(event.data or {})
    details = ""
    if "error" in data:
        details = f" error={data['error']}"
    elif "settlement_id" in data:
        details = (
            f" venue={data['venue']} price=${data['price']:.2f}"
            f" settlement={str(data['settlement_id'])[:12]}..."
        )
    elif "limit_price" in data:
        details = (
            f" venue={data['venue']} price=${data['price']:.2f}"
            f" limit=${data['limit_price']:.2f}"
            f" attempt={data['attempt']}/{data['max_attempts']}"
        )
    elif "message" in data:
        details = f" {data['message']}"
    return (
        f"{event.timestamp:%H:%M:%S} {event.order_id[:8]} {event.status.value:<11}{details}"
    )
