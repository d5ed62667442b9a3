"""Command line entry point."""

from typing import Annotated

import typer
from rich.console import Console

from account_relay import __version__
from account_relay.cli.commands.accounts import app as accounts_app
from account_relay.cli.commands.serve import serve


app = typer.Typer(
    name="account-relay",
    help="Account pool with session rotation and a passthrough proxy",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"account-relay {__version__}")
        raise typer.Exit()


@app.callback()
def app_main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Account pool with session rotation and a passthrough proxy."""


app.command(name="serve")(serve)
app.add_typer(accounts_app)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
