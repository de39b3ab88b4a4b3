"""CLI entry point for the DEX order engine."""

import typer

from dex_order_engine.cli_commands.engine import engine_app

app = typer.Typer(
    name="dex-order-engine",
    help="DEX limit-order execution engine - simulated venues only",
)

app.add_typer(engine_app, name="engine")


def _register_root_aliases(source_app: typer.Typer) -> None:
    """Register commands from source_app at the root level."""

    for cmd in source_app.registered_commands:
        callback = cmd.callback
        if callback is None:
            continue
        command_name = cmd.name or callback.__name__.replace("_", "-")
        decorator = app.command(  # type: ignore[misc]
            name=command_name,
            help=cmd.help,
            short_help=cmd.short_help,
            hidden=cmd.hidden,
        )
        decorator(callback)


_register_root_aliases(engine_app)


if __name__ == "__main__":
    app()
