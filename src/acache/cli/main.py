"""
CLI for the account cache.

Commands:
    acache get PUBKEY - Load an account through the cache
    acache invalidate [PUBKEY] - Delete durable cache entries
    acache config - Show current configuration
    acache version - Print version
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Optional

import orjson
import typer
from rich.console import Console
from rich.table import Table

from acache import __version__
from acache.cache.account_cache import AccountCache
from acache.config import Settings, clear_settings_cache, get_settings
from acache.exceptions import AccountCacheError
from acache.logging import setup_logging
from acache.types import AccountInfo, PublicKey

app = typer.Typer(
    name="acache",
    help="Account Cache - coalescing, freshness-aware cache for Solana accounts",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except ValueError:
        return None


def _require_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'acache config' to see what's wrong."
        )
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL)
    return settings


def _account_table(key: PublicKey, account: AccountInfo) -> Table:
    table = Table(title=str(key), show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    encoded = account.to_dict()["data"]
    if len(encoded) > 64:
        encoded = f"{encoded[:64]}..."

    table.add_row("owner", account.owner)
    table.add_row("lamports", str(account.lamports))
    table.add_row("executable", str(account.executable))
    table.add_row("rent_epoch", str(account.rent_epoch))
    table.add_row("data length", str(len(account.data)))
    table.add_row("data (base64)", encoded)
    return table


@app.command()
def get(
    pubkey: Annotated[str, typer.Argument(help="Account address (base58)")],
    max_age: Annotated[
        Optional[float],
        typer.Option("--max-age", "-a", min=0.0, help="Maximum acceptable age in seconds"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the account as JSON"),
    ] = False,
) -> None:
    """Load an account through the cache and print it."""
    settings = _require_settings()

    try:
        key = PublicKey(pubkey)
    except AccountCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    async def _load() -> AccountInfo | None:
        async with AccountCache.from_settings(settings) as cache:
            return await cache.load(key, max_age)

    try:
        account = asyncio.run(_load())
    except (AccountCacheError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if as_json:
        payload = account.to_dict() if account is not None else None
        console.print_json(orjson.dumps({"pubkey": str(key), "account": payload}).decode("utf-8"))
        return

    if account is None:
        console.print(f"[yellow]Account {key} does not exist.[/yellow]")
        return

    console.print(_account_table(key, account))


@app.command()
def invalidate(
    pubkey: Annotated[
        Optional[str],
        typer.Argument(help="Account address to remove from the durable cache"),
    ] = None,
    all_keys: Annotated[
        bool,
        typer.Option("--all", help="Remove every cached account"),
    ] = False,
) -> None:
    """Delete cached accounts from the durable store."""
    if (pubkey is None) == (not all_keys):
        error_console.print("[red]Error:[/red] Pass either PUBKEY or --all.")
        raise typer.Exit(1)

    settings = _require_settings()

    async def _invalidate() -> bool:
        async with AccountCache.from_settings(settings) as cache:
            if all_keys:
                await cache.invalidate_all()
                return True
            return await cache.invalidate(PublicKey(pubkey))

    try:
        removed = asyncio.run(_invalidate())
    except AccountCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if all_keys:
        console.print("[green]Removed every cached account.[/green]")
    elif removed:
        console.print(f"[green]Removed {pubkey}.[/green]")
    else:
        console.print(f"[dim]{pubkey} was not cached.[/dim]")


@app.command()
def config() -> None:
    """Show current configuration with secrets redacted."""
    console.print()
    console.print("[bold]Account Cache Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check RPC_URL, STORE_TABLE and numeric limits in your")
        error_console.print("environment or .env file.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"account-cache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
