"""UPI ID management commands."""
from __future__ import annotations

import click
from rich.markup import escape
from rich.table import Table

from ...config import transaction_url
from ...coordinator import RegistrationCoordinator
from ...models import RegistrationResult, RegistrationState
from ...store import LocalRegistryStore
from ..runtime import console, handle_errors, run_with_coordinator


@click.group()
def upi():
    """UPI ID management commands."""
    pass


def _render_result(store: LocalRegistryStore, result: RegistrationResult, action: str) -> None:
    if result.state == RegistrationState.PERSISTED:
        console.print(f"\n[green]✓ {result.identifier} {action}[/green]")
        if result.tx_ref:
            console.print(f"  Transaction: [cyan]{result.tx_ref}[/cyan]")
            console.print(f"  Explorer: {transaction_url(result.tx_ref, store.network)}")
        return

    error = escape(str(result.error)) if result.error else "unknown error"
    if result.state == RegistrationState.PERSIST_FAILED:
        console.print(
            f"\n[red]✗ {result.identifier} {action} on the registry "
            f"but the local config could not be saved: {error}[/red]"
        )
        console.print(f"  Transaction: [cyan]{result.tx_ref}[/cyan]")
    else:
        console.print(f"\n[red]✗ {result.identifier}: {error}[/red]")

    if result.requires_reconcile:
        console.print("[yellow]Run `p2m sync` to realign the local config with the registry.[/yellow]")
    raise click.exceptions.Exit(1)


@upi.command()
@click.argument("upi_id")
@click.option("--force", is_flag=True, help="Register even if already known")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
@handle_errors
def add(ctx, upi_id: str, force: bool, yes: bool):
    """Register a UPI ID on the registry and store it locally."""
    store: LocalRegistryStore = ctx.obj["store"]

    async def _register(coordinator: RegistrationCoordinator) -> RegistrationResult:
        return await coordinator.bind_and_register(upi_id, force=force, confirmed=yes)

    result = run_with_coordinator(ctx, _register)

    if result.requires_confirmation:
        if not click.confirm(
            f"{upi_id} is already in your local config. Register it again?", default=False
        ):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        async def _register_confirmed(coordinator: RegistrationCoordinator) -> RegistrationResult:
            return await coordinator.bind_and_register(upi_id, force=force, confirmed=True)

        result = run_with_coordinator(ctx, _register_confirmed)

    _render_result(store, result, "registered")


@upi.command()
@click.argument("upi_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
@handle_errors
def remove(ctx, upi_id: str, yes: bool):
    """Remove a UPI ID from the registry and the local config."""
    store: LocalRegistryStore = ctx.obj["store"]

    if store.get_wallet(upi_id) is not None:
        console.print(f"[yellow]The escrow wallet bound to {upi_id} will be deleted.[/yellow]")
    if not yes and not click.confirm(f"Remove {upi_id}?", default=False):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    async def _remove(coordinator: RegistrationCoordinator) -> RegistrationResult:
        return await coordinator.unbind_and_remove(upi_id)

    result = run_with_coordinator(ctx, _remove)
    _render_result(store, result, "removed")


@upi.command("list")
@click.pass_context
@handle_errors
def list_ids(ctx):
    """List stored UPI IDs and their escrow wallets."""
    store: LocalRegistryStore = ctx.obj["store"]
    identifiers = store.list_identifiers()

    if not identifiers:
        console.print("[dim]No UPI IDs found[/dim]")
        return

    table = Table(title="UPI IDs")
    table.add_column("UPI ID", style="cyan")
    table.add_column("Escrow Wallet", style="green")
    table.add_column("Created")

    for upi_id in identifiers:
        wallet = store.get_wallet(upi_id)
        table.add_row(
            upi_id,
            wallet.address if wallet else "-",
            wallet.created_at if wallet else "",
        )

    console.print(table)
