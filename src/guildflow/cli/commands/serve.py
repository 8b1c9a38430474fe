"""Serve command for GuildFlow CLI.

Runs the trigger service and its HTTP API under uvicorn.
"""

from __future__ import annotations

import logging

import typer
import uvicorn

from guildflow.cli import app, console
from guildflow.config import ConfigError, Settings

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """Set up logging for the server.

    Args:
        level: Logging level name from configuration.
        debug: Enable debug logging (overrides level).
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def run_server(settings: Settings, host: str, port: int) -> None:
    """Run the uvicorn server.

    Args:
        settings: Resolved service settings.
        host: Host to bind to.
        port: Port to bind to.
    """
    # Import here to avoid loading FastAPI for other commands
    from guildflow.api.app import create_app

    app_instance = create_app(settings=settings, enable_cors=True)

    uvicorn.run(
        app_instance,
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


@app.command()
def serve(
    host: str = typer.Option(
        "127.0.0.1",
        "--host",
        "-h",
        help="Host to bind to",
    ),
    port: int = typer.Option(
        8080,
        "--port",
        "-p",
        help="Port to bind to",
    ),
    api_base_url: str | None = typer.Option(
        None,
        "--api-base-url",
        help="Base URL of the workflow execution API",
    ),
    database: str | None = typer.Option(
        None,
        "--database",
        "-d",
        help="Database URL or SQLite path ('none' keeps triggers in memory)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging",
    ),
) -> None:
    """Start the GuildFlow trigger server.

    Examples:
        guildflow serve
        guildflow serve --port 9000
        guildflow serve --database ~/.guildflow/guildflow.db --debug
    """
    try:
        settings = Settings.load(api_base_url=api_base_url, database_url=database)
    except ConfigError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    setup_logging(settings.log_level, debug)

    console.print(f"[cyan]Starting GuildFlow server on {host}:{port}...[/]")
    if settings.database_url is None:
        console.print("[yellow]No database configured, triggers are kept in memory.[/]")
    console.print("[dim]Press Ctrl+C to stop[/]")
    console.print()

    logger.info(f"GuildFlow server starting on {host}:{port}")
    try:
        run_server(settings, host, port)
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped.[/]")
