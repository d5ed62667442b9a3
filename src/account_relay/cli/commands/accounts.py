"""Account pool management commands working directly on the JSON store."""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from account_relay.api.services import Services, build_services
from account_relay.config.settings import ConfigurationError, get_settings
from account_relay.exceptions import RelayError
from account_relay.session.refresh import RefreshReport


app = typer.Typer(name="accounts", help="Manage the account pool")

console = Console()

T = TypeVar("T")

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to a TOML configuration file"),
]


def get_services(config: Path | None = None) -> Services:
    """Build services from settings, exiting with a message on bad config."""
    try:
        settings = get_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e
    return build_services(settings)


def run_with_services(
    config: Path | None,
    action: Callable[[Services], Awaitable[T]],
    relogin: bool = False,
) -> T:
    """Load the pool, run ``action`` and release HTTP clients."""
    services = get_services(config)

    async def runner() -> T:
        try:
            await services.manager.initialize(relogin=relogin)
            return await action(services)
        finally:
            await services.aclose()

    return asyncio.run(runner())


@app.command(name="list")
def list_accounts(config: ConfigOption = None) -> None:
    """Show every account with its masked session and expiry."""

    async def action(services: Services) -> list[dict[str, object]]:
        return [account.public_dict() for account in services.manager.get_all_accounts()]

    rows = run_with_services(config, action)
    if not rows:
        console.print("[yellow]No accounts configured.[/yellow]")
        return

    table = Table(title="Accounts", box=box.ROUNDED)
    table.add_column("Email", style="cyan")
    table.add_column("Session", style="green")
    table.add_column("Expires")
    table.add_column("Expires In")

    for row in rows:
        expires_in = row["sessionExpiresIn"]
        table.add_row(
            str(row["email"]),
            str(row["sessionToken"] or "[red]none[/red]"),
            str(row["sessionExpiresAt"] or "-"),
            f"{int(expires_in) // 3600}h" if isinstance(expires_in, int) else "-",
        )

    console.print(table)


@app.command(name="add")
def add_account(
    email: Annotated[str, typer.Argument(help="Account email")],
    password: Annotated[
        str,
        typer.Option(
            "--password", "-p", prompt=True, hide_input=True, help="Account password"
        ),
    ],
    config: ConfigOption = None,
) -> None:
    """Log in with the given credentials and save the account."""

    async def action(services: Services) -> None:
        await services.manager.add_account(email, password)

    try:
        run_with_services(config, action)
    except RelayError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1) from e

    console.print(f"[green]Account {email} added.[/green]")


@app.command(name="remove")
def remove_account(
    email: Annotated[str, typer.Argument(help="Account email")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation")
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Remove an account from the pool."""
    if not force and not typer.confirm(f"Remove account {email}?"):
        raise typer.Abort()

    async def action(services: Services) -> None:
        await services.manager.remove_account(email)

    try:
        run_with_services(config, action)
    except RelayError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1) from e

    console.print(f"[green]Account {email} removed.[/green]")


@app.command(name="refresh")
def refresh_accounts(
    threshold_hours: Annotated[
        float,
        typer.Option(
            "--threshold-hours", "-t", help="Refresh sessions expiring within this window"
        ),
    ] = 24,
    config: ConfigOption = None,
) -> None:
    """Run one refresh cycle and print the outcome."""

    async def action(services: Services) -> RefreshReport:
        return await services.scheduler.run_cycle(threshold_hours)

    report = run_with_services(config, action, relogin=True)

    console.print(
        f"Candidates: {report.candidates}  "
        f"[green]refreshed: {report.succeeded}[/green]  "
        f"[red]failed: {report.failed}[/red]"
    )
    for identifier in report.failed_identifiers:
        console.print(f"  [red]✗[/red] {identifier}")

    if report.failed:
        raise typer.Exit(1)
