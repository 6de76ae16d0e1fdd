"""Escrow wallet commands."""
from __future__ import annotations

import click

from ...coordinator import RegistrationCoordinator
from ...models import EscrowWallet
from ..runtime import console, handle_errors, run_with_coordinator


@click.command()
@click.argument("upi_id")
@click.option("--force", is_flag=True, help="Replace an existing escrow wallet")
@click.pass_context
@handle_errors
def generate(ctx, upi_id: str, force: bool):
    """Generate an escrow wallet for a registered UPI ID."""

    async def _generate(coordinator: RegistrationCoordinator) -> EscrowWallet:
        return coordinator.generate_wallet(upi_id, force=force)

    wallet = run_with_coordinator(ctx, _generate)

    console.print(f"\n[green]✓ Escrow wallet generated for {upi_id}[/green]")
    console.print(f"  Address: [cyan]{wallet.address}[/cyan]")
    console.print(f"  Public Key: {wallet.public_key}")
    console.print(f"  Created: {wallet.created_at}")
    console.print("[dim]The private key is stored in your local config only.[/dim]")
