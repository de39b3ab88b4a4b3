"""Engine commands for the DEX order engine CLI."""

import asyncio
import json

import typer
from loguru import logger
from pydantic import ValidationError

from dex_order_engine.core.config import EngineConfig, load_config
from dex_order_engine.core.events import EventSubscription
from dex_order_engine.engine import OrderEngine
from dex_order_engine.models import CreateOrderRequest, OrderKind

from .utils import format_event_line, setup_logging

engine_app = typer.Typer(
    name="engine",
    help="Run the order execution pipeline against simulated venues",
)


@engine_app.command()
def simulate(
    orders: int = typer.Option(1, "--orders", "-n", min=1, help="Number of orders to submit"),
    limit_price: float = typer.Option(
        ..., "--limit", "-l", min=0.0, help="Limit price for every order"
    ),
    token_in: str = typer.Option("SOL", "--token-in", help="Token sold"),
    token_out: str = typer.Option("USDC", "--token-out", help="Token bought"),
    amount: float = typer.Option(1.5, "--amount", "-a", min=0.0, help="Trade amount"),
    concurrency: int | None = typer.Option(
        None, "--concurrency", "-c", min=1, help="Override the worker pool size"
    ),
    retry_delay: float | None = typer.Option(
        None, "--retry-delay", min=0.0, help="Override the delay between limit checks"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Submit LIMIT orders, stream their lifecycle events and print statistics."""

    config = load_config()
    setup_logging(config.log_dir, verbose)

    overrides: dict[str, object] = {}
    if concurrency is not None:
        overrides["concurrency"] = concurrency
    if retry_delay is not None:
        overrides["gate_retry_delay"] = retry_delay
    if overrides:
        config = config.model_copy(update=overrides)

    try:
        requests = [
            CreateOrderRequest(
                kind=OrderKind.LIMIT,
                token_in=token_in,
                token_out=token_out,
                amount_in=amount,
                limit_price=limit_price,
            )
            for _ in range(orders)
        ]
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        stats = asyncio.run(run_simulation(config, requests))
    except Exception as exc:  # pragma: no cover - surface detailed CLI error
        logger.error(f"Simulation failed: {exc}")
        raise typer.Exit(code=1) from exc

    typer.echo("")
    typer.echo("=== Statistics ===")
    typer.echo(json.dumps(stats, indent=2))


async def run_simulation(
    config: EngineConfig,
    requests: list[CreateOrderRequest],
    *,
    engine: OrderEngine | None = None,
) -> dict[str, dict[str, int]]:
    """Submit ``requests`` and echo events until every order is terminal."""
    engine = engine or OrderEngine(config)

    subscriptions: list[EventSubscription] = []
    for request in requests:
        order = await engine.service.submit(request)
        subscriptions.append(engine.service.subscribe(order.id))

    async with engine:
        await asyncio.gather(*(_echo_until_terminal(sub) for sub in subscriptions))
        await engine.scheduler.join()
        return await engine.service.statistics()


async def _echo_until_terminal(subscription: EventSubscription) -> None:
    async with subscription:
        async for event in subscription:
            typer.echo(format_event_line(event))
            if event.status.is_terminal:
                return


@engine_app.command("show-config")
def show_config() -> None:
    """Print the effective configuration."""

    config = load_config()
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))
