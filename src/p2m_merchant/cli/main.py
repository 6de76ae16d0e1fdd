"""
P2M merchant CLI main entry point.

Usage:
    p2m [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import click
from rich.markup import escape

from .. import __version__
from ..config import load_settings
from ..exceptions import P2MError
from ..logging_config import setup_logging
from ..store import LocalRegistryStore
from ..wallet_factory import KeyPair
from .commands import export, init, registry, upi, wallets
from .runtime import console, handle_errors, run_with_coordinator


@click.group()
@click.version_option(version=__version__, message="%(prog)s %(version)s")
@click.option(
    "--config-path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Merchant config file (default: ~/.p2m-merchant-cli/config.json)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON on stderr")
@click.pass_context
def cli(ctx, config_path: Path | None, verbose: bool, json_logs: bool):
    """P2M merchant CLI - bind UPI IDs to the Aptos UPI registry."""
    ctx.ensure_object(dict)

    settings = load_settings()
    if config_path:
        settings = settings.model_copy(update={"config_path": config_path.expanduser()})

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=json_logs or settings.log_json,
    )

    ctx.obj["settings"] = settings
    ctx.obj["store"] = LocalRegistryStore(settings.config_path)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.pass_context
@handle_errors
def status(ctx):
    """Show merchant configuration and registry status."""
    settings = ctx.obj["settings"]
    store: LocalRegistryStore = ctx.obj["store"]

    console.print("\n[bold blue]P2M Merchant Status[/bold blue]\n")

    if not store.path.exists():
        console.print("[yellow]Not initialized. Run `p2m init` first.[/yellow]\n")
        return

    config = store.config
    network = config.network
    console.print(f"Config File: [cyan]{store.path}[/cyan]")
    console.print(f"Network: [cyan]{network.value}[/cyan]")
    console.print(f"Node URL: [cyan]{settings.resolve_node_url(network)}[/cyan]")

    contract = settings.resolve_contract_address(network, config.contract_address)
    if contract:
        console.print(f"Contract: [cyan]{contract}[/cyan]")
    else:
        console.print("Contract: [yellow]Not configured[/yellow]")

    private_key = settings.private_key or config.private_key
    if private_key:
        console.print(f"Merchant Address: [green]{KeyPair.from_private_key(private_key).address}[/green]")
    else:
        console.print("Merchant Address: [yellow]No signing key configured[/yellow]")

    if config.merchant_info:
        console.print(f"Business: {escape(config.merchant_info.business_name)}")

    console.print(f"UPI IDs: [cyan]{len(config.identifiers)}[/cyan]")
    console.print(f"Escrow Wallets: [cyan]{len(config.wallets)}[/cyan]")

    if config.last_sync_timestamp:
        synced = datetime.fromtimestamp(config.last_sync_timestamp / 1000, tz=timezone.utc)
        console.print(f"Last Sync: {synced.isoformat(timespec='seconds')}")
    else:
        console.print("Last Sync: [dim]never[/dim]")

    try:
        stats = run_with_coordinator(ctx, lambda coordinator: coordinator.registry_stats())
    except (P2MError, click.ClickException) as exc:
        message = exc.message if isinstance(exc, P2MError) else exc.format_message()
        console.print(f"Registry: [yellow]unavailable ({escape(message)})[/yellow]")
    else:
        console.print(
            f"Registry: [green]{stats.merchant_count} merchants, "
            f"{stats.identifier_count} UPI IDs[/green]"
        )

    console.print()


# Register command groups
cli.add_command(init.init_cmd)
cli.add_command(upi.upi)
cli.add_command(wallets.generate)
cli.add_command(registry.sync)
cli.add_command(registry.register_merchant)
cli.add_command(export.export)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
