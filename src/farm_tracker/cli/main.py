"""CLI for farm-tracker."""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.traceback import install

from farm_tracker.core import FarmService, Pool, StakePosition
from farm_tracker.data import Settings, load_settings
from farm_tracker.exceptions import ConfigurationError, FarmTrackerError
from farm_tracker.rpc import ApeRPCProvider, HttpRPCProvider

# Install rich traceback handler
install(show_locals=False)

app = typer.Typer(
    name="farm-tracker",
    help="Read farm pools and stake positions through batched contract calls",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )


def _create_provider(settings: Settings) -> HttpRPCProvider | ApeRPCProvider:
    """
    Create the transport described by the settings.

    An explicit RPC endpoint wins over an Ape network choice.

    Raises
    ------
    ConfigurationError
        If neither an endpoint nor a network is configured

    """
    retry_config = settings.retry.to_config()
    if settings.rpc_endpoint:
        return HttpRPCProvider(settings.rpc_endpoint, retry_config=retry_config, timeout=settings.request_timeout)
    if settings.network:
        return ApeRPCProvider(settings.network, retry_config=retry_config)

    msg = "Either rpc_endpoint or network must be configured"
    raise ConfigurationError(msg)


@contextmanager
def _farm_service(config: Path | None, debug: bool) -> Iterator[tuple[FarmService, Settings]]:
    """Yield a connected farm service, exiting with code 1 on known errors."""
    _configure_logging(debug)
    provider = None
    try:
        settings = load_settings(config)
        provider = _create_provider(settings)
        provider.connect()
        yield FarmService.from_settings(settings, provider), settings
    except (FarmTrackerError, ValueError) as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        if debug:
            raise
        raise typer.Exit(code=1) from e
    finally:
        if provider is not None:
            provider.disconnect()


def _dump(records: list[Any], key: str) -> None:
    data = {key: [record.model_dump(mode="json") for record in records]}
    typer.echo(json.dumps(data, indent=2))


def _token_label(pool: Pool) -> str:
    detail = pool.token
    if detail.is_pair:
        return f"{detail.token0.symbol}-{detail.token1.symbol} ({detail.token.symbol})"
    return detail.token.symbol


@app.command()
def pools(
    config: Path | None = typer.Option(None, "--config", "-c", help="Settings YAML file"),
    format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """
    Refresh and list all farm pools.

    Examples:

        farm-tracker pools

        farm-tracker pools --format json
    """
    with _farm_service(config, debug) as (service, _):
        pool_list = service.refresh_pools()

    if format == OutputFormat.JSON:
        _dump(pool_list, "pools")
        return

    table = Table(title=f"Farm pools ({len(pool_list)})", show_header=True, header_style="bold magenta")
    table.add_column("Pool", style="cyan", justify="right")
    table.add_column("Token", style="green")
    table.add_column("Address", style="white")
    table.add_column("Alloc Point", style="yellow", justify="right")
    table.add_column("Strategy", style="dim")

    for pool in pool_list:
        table.add_row(
            str(pool.pool_id),
            _token_label(pool),
            pool.token.address,
            str(pool.alloc_point),
            pool.strategy_address,
        )

    console.print(table)


@app.command()
def positions(
    address: str = typer.Argument(..., help="Holder wallet address"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Settings YAML file"),
    format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """
    Show a holder's staked balances and pending rewards.

    Examples:

        farm-tracker positions 0xABC...

        farm-tracker positions 0xABC... --format json
    """
    with _farm_service(config, debug) as (service, settings):
        farms: list[StakePosition] = service.get_positions(address)

    if format == OutputFormat.JSON:
        _dump(farms, "farms")
        return

    if not farms:
        console.print("\n[yellow]No positions found[/yellow]")
        return

    table = Table(
        title=f"Farms for {address[:10]}...{address[-8:]}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Pool", style="cyan", justify="right")
    table.add_column("Token", style="green")
    table.add_column("Staked", style="white", justify="right")
    table.add_column(f"Pending {settings.reward_symbol}", style="yellow", justify="right")
    table.add_column("Underlying", style="bold green")

    for position in farms:
        underlying = ", ".join(f"{token.balance} {token.symbol}" for token in position.tokens)
        table.add_row(
            str(position.pool.pool_id),
            _token_label(position.pool),
            position.balance,
            position.reward,
            underlying,
        )

    console.print(table)


if __name__ == "__main__":
    app()
