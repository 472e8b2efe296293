"""Main CLI entry point for afkwarden.

This module provides the Typer application that runs the supervisor next to
its health-check web server.

Usage:
    afkwarden --config config.json run
    afkwarden identity afkbot --count 3
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import structlog
import typer
from rich.console import Console
from rich.panel import Panel

from afkwarden.client import load_client_factory
from afkwarden.config import WardenConfig, load_config
from afkwarden.identity import generate_identity
from afkwarden.logging import setup_logging

app = typer.Typer(
    name="afkwarden",
    help="afkwarden: keep one automated occupant on a game server",
    no_args_is_help=True,
)

console = Console()


class AppContext:
    """Application context shared across CLI commands.

    Attributes:
        config: Loaded afkwarden configuration
    """

    def __init__(self, config: WardenConfig):
        self.config = config


# Global context holder
_app_context: AppContext | None = None


def get_app_context() -> AppContext:
    """Get the shared application context.

    Raises:
        RuntimeError: If context has not been initialized
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized. Call initialize_context first.")
    return _app_context


def initialize_context(config: WardenConfig) -> AppContext:
    """Initialize the global application context."""
    global _app_context
    _app_context = AppContext(config)
    return _app_context


@app.command()
def run(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host to bind the health server to"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to bind the health server to"),
    ] = None,
    client_factory: Annotated[
        Optional[str],
        typer.Option("--client", help="Game client factory as 'module:callable'"),
    ] = None,
) -> None:
    """Run the supervisor and the health-check web server.

    The process runs until it is interrupted; sessions are retired gracefully
    on shutdown.
    """
    import uvicorn

    from afkwarden.supervisor.runtime import Supervisor
    from afkwarden.web.app import create_app

    config = get_app_context().config
    setup_logging(config.logging)

    factory_path = client_factory or config.client_factory
    if not factory_path:
        console.print(
            "[red]No game client configured.[/red] "
            "Set client_factory in the config or pass --client module:callable."
        )
        raise typer.Exit(code=1)

    try:
        factory = load_client_factory(factory_path)
    except (ImportError, ValueError) as e:
        console.print(f"[red]Cannot load game client:[/red] {e}")
        raise typer.Exit(code=1)

    bind_host = host or config.web.host
    bind_port = port or config.web.port

    console.print(
        Panel(
            f"[bold cyan]afkwarden[/bold cyan]\n\n"
            f"[bold]Server:[/bold] {config.server.host}:{config.server.port}\n"
            f"[bold]Identity base:[/bold] {config.server.base_name}\n"
            f"[bold]Night skip:[/bold] {config.server.auto_night_skip}\n"
            f"[bold]Health server:[/bold] {bind_host}:{bind_port}",
            title="Starting Supervisor",
            border_style="cyan",
        )
    )

    supervisor = Supervisor(config.server, config.supervisor, factory)
    uvicorn.run(
        create_app(config, supervisor),
        host=bind_host,
        port=bind_port,
        log_level="warning",
    )


@app.command()
def identity(
    base: Annotated[
        Optional[str],
        typer.Argument(help="Base label (defaults to the configured name)"),
    ] = None,
    count: Annotated[int, typer.Option("--count", "-n", min=1, max=100)] = 1,
) -> None:
    """Print freshly generated occupant identities."""
    label = base or get_app_context().config.server.base_name
    for _ in range(count):
        console.print(generate_identity(label))


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (JSON format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure global options and initialize application context."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(format="%(message)s", level=log_level, stream=sys.stderr)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    try:
        config = load_config(config_path)
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        config.logging.level = "DEBUG"
        console.print("[dim]Debug logging enabled[/dim]")

    initialize_context(config)


if __name__ == "__main__":
    app()
