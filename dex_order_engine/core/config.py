"""Configuration management for the DEX order engine."""

from __future__ import annotations

from pathlib import Path
from typing import Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dex_order_engine.core.constants import DEFAULT_TIE_BREAK_VENUE, MOCK_BASE_PRICE
from dex_order_engine.models import Venue


class EngineConfig(BaseSettings):
    """Order engine configuration.

    Uses Pydantic v2 settings with environment variable support. All durations
    are in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="ORDER_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Scheduler
    concurrency: int = Field(default=10, ge=1, description="Maximum concurrently active orders")
    max_run_attempts: int = Field(
        default=3, ge=1, description="Whole-run attempts for infrastructure faults"
    )
    run_backoff_base: float = Field(
        default=1.0, ge=0, description="Base delay of the exponential run-retry backoff"
    )
    shutdown_grace_period: float = Field(
        default=10.0, ge=0, description="Time active orders get to finish on shutdown"
    )

    # Price gate
    gate_max_attempts: int = Field(default=3, ge=1, description="Limit checks per run")
    gate_retry_delay: float = Field(
        default=3.0, ge=0, description="Fixed delay between limit checks"
    )

    # Pipeline timing
    build_delay: float = Field(default=0.5, ge=0, description="Transaction build delay")
    quote_latency: float = Field(default=0.2, ge=0, description="Simulated quote latency")
    quote_timeout: float = Field(default=5.0, gt=0, description="Per-venue quote timeout")
    execution_min_latency: float = Field(default=2.0, ge=0)
    execution_max_latency: float = Field(default=3.0, ge=0)
    execution_timeout: float = Field(default=30.0, gt=0, description="Settlement timeout")

    # Simulation
    base_price: float = Field(default=MOCK_BASE_PRICE, gt=0, description="Mock SOL/USDC price")
    default_venue: Venue = Field(
        default=DEFAULT_TIE_BREAK_VENUE,
        description="Venue preferred when effective prices tie",
    )

    # Paths
    log_dir: Path = Field(default=Path("logs"), description="Directory for logs")
    store_file: Path | None = Field(
        default=None, description="JSON file for the order store (None keeps orders in memory)"
    )

    @field_validator("default_venue", mode="before")
    @classmethod
    def validate_default_venue(cls, value: object) -> object:
        """Accept venue names in any case."""
        if isinstance(value, str):
            return value.upper().strip()
        return value

    @model_validator(mode="after")
    def validate_execution_latency(self) -> Self:
        """Ensure the execution latency range is ordered."""
        if self.execution_max_latency < self.execution_min_latency:
            raise ValueError(
                "execution_max_latency must be greater than or equal to execution_min_latency"
            )
        return self


def load_config() -> EngineConfig:
    """Load configuration from environment and .env file."""
    return EngineConfig()
