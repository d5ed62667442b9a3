"""Serve command running the API under uvicorn."""

from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from account_relay.api.app import create_app
from account_relay.config.settings import ConfigurationError, get_settings
from account_relay.core.logging import setup_logging


console = Console()


def serve(
    host: Annotated[
        str | None, typer.Option("--host", help="Host to bind to")
    ] = None,
    port: Annotated[
        int | None, typer.Option("--port", "-p", help="Port to listen on")
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a TOML configuration file"),
    ] = None,
) -> None:
    """Start the account relay server."""
    try:
        settings = get_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e

    if host is not None:
        settings.server.host = host
    if port is not None:
        settings.server.port = port

    setup_logging(
        json_logs=settings.server.log_json,
        log_level_name=settings.server.log_level,
        log_file=settings.server.log_file,
    )

    console.print(f"[green]Starting account relay on {settings.server_url}[/green]")
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )
