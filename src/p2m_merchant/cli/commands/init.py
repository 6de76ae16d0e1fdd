"""Merchant setup: network, registry contract and signing key."""
from __future__ import annotations

import click
from rich.panel import Panel

from ...config import get_network_profile
from ...models import Network
from ...store import LocalRegistryStore
from ...wallet_factory import KeyPair
from ..runtime import console, handle_errors


@click.command("init")
@click.option(
    "--network",
    type=click.Choice(Network.values()),
    help="Aptos network (default: keep current, devnet for new setups)",
)
@click.option("--contract", help="UPI registry contract address")
@click.option("--private-key", help="Import an existing merchant private key")
@click.option("--reset", is_flag=True, help="Wipe existing configuration first")
@click.option("--yes", "-y", is_flag=True, help="Do not ask before resetting")
@click.pass_context
@handle_errors
def init_cmd(
    ctx,
    network: str | None,
    contract: str | None,
    private_key: str | None,
    reset: bool,
    yes: bool,
):
    """Initialize the merchant configuration."""
    store: LocalRegistryStore = ctx.obj["store"]
    existed = store.path.exists()
    store.load()

    if reset and existed:
        if not yes and not click.confirm(
            "This wipes all stored UPI IDs and escrow wallets. Continue?", default=False
        ):
            console.print("[yellow]Initialization cancelled.[/yellow]")
            return
        store.reset()
        console.print("[dim]Configuration reset[/dim]")

    if network:
        store.set_network(network)

    if contract:
        if not contract.startswith("0x"):
            raise click.BadParameter("must start with 0x", param_hint="--contract")
        store.set_contract_address(contract)
    elif store.contract_address is None:
        default_contract = get_network_profile(store.network).contract_address
        if default_contract:
            store.set_contract_address(default_contract)

    if private_key:
        account = KeyPair.from_private_key(private_key)
        store.set_operator_key(account.private_key)
        console.print("[green]✓ Merchant key imported[/green]")
    elif store.operator_key:
        account = KeyPair.from_private_key(store.operator_key)
    else:
        account = KeyPair.generate()
        store.set_operator_key(account.private_key)
        console.print("[green]✓ New merchant key generated[/green]")

    store.save()

    console.print(Panel(
        "[bold green]Setup Complete[/bold green]\n\n"
        f"Network:   {store.network.value}\n"
        f"Contract:  {store.contract_address or 'not configured'}\n"
        f"Merchant:  {account.address}\n"
        f"Config:    {store.path}\n\n"
        "[bold]Next steps:[/bold]\n"
        "  fund the merchant address with APT for gas\n"
        "  p2m register-merchant   - Create your merchant profile\n"
        "  p2m upi add <upi-id>    - Register your first UPI ID",
        title="P2M Merchant",
        expand=False,
    ))
