"""Registry-wide commands: reconciliation and merchant profile."""
from __future__ import annotations

import click
from rich.table import Table

from ...config import transaction_url
from ...coordinator import RegistrationCoordinator
from ...models import ReconcileReport
from ...store import LocalRegistryStore
from ..runtime import console, handle_errors, run_with_coordinator


@click.command()
@click.pass_context
@handle_errors
def sync(ctx):
    """Realign the local config with the registry."""

    async def _reconcile(coordinator: RegistrationCoordinator) -> ReconcileReport:
        return await coordinator.reconcile()

    report = run_with_coordinator(ctx, _reconcile)

    console.print("\n[bold blue]Registry Sync[/bold blue]\n")
    console.print(f"UPI IDs on registry: [cyan]{report.remote_count}[/cyan]")

    if report.in_sync:
        console.print("[green]✓ Local config is in sync[/green]\n")
        return

    table = Table(title="Changes")
    table.add_column("UPI ID", style="cyan")
    table.add_column("Status")
    for upi_id in report.added:
        table.add_row(upi_id, "[green]added locally[/green]")
    for upi_id in report.orphaned:
        table.add_row(upi_id, "[yellow]not on registry[/yellow]")
    console.print(table)

    if report.orphaned:
        console.print(
            "[dim]UPI IDs not on the registry were kept. "
            "Re-register them with `p2m upi add --yes` or drop them with `p2m upi remove`.[/dim]"
        )
    console.print()


@click.command("register-merchant")
@click.option("--business-name", prompt="Business name", help="Business name (2-100 characters)")
@click.option("--contact", prompt="Contact information", help="Contact email or phone (5-200 characters)")
@click.pass_context
@handle_errors
def register_merchant(ctx, business_name: str, contact: str):
    """Register the merchant profile on the registry."""
    store: LocalRegistryStore = ctx.obj["store"]

    async def _register(coordinator: RegistrationCoordinator) -> str:
        return await coordinator.register_merchant(business_name, contact)

    tx_ref = run_with_coordinator(ctx, _register)

    console.print("\n[green]✓ Merchant registered[/green]")
    console.print(f"  Transaction: [cyan]{tx_ref}[/cyan]")
    console.print(f"  Explorer: {transaction_url(tx_ref, store.network)}")
