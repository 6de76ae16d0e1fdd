"""Shared plumbing for CLI commands: client wiring, async bridge, error output."""
from __future__ import annotations

import asyncio
import functools
from typing import Awaitable, Callable, TypeVar

import click
from rich.console import Console
from rich.markup import escape

from ..aptos_client import AptosRegistryClient
from ..config import P2MSettings
from ..coordinator import RegistrationCoordinator
from ..exceptions import P2MError
from ..registry_client import RegistryClient
from ..store import LocalRegistryStore
from ..wallet_factory import KeyPair

console = Console()

T = TypeVar("T")


def build_registry_client(settings: P2MSettings, store: LocalRegistryStore) -> RegistryClient:
    """Aptos client for the store's network, signing with the merchant key if one is set."""
    network = store.network
    contract_address = settings.resolve_contract_address(network, store.contract_address)
    if not contract_address:
        raise click.ClickException(
            f"No registry contract configured for {network.value}. "
            "Run `p2m init --contract <address>`."
        )

    private_key = settings.private_key or store.operator_key
    return AptosRegistryClient(
        node_url=settings.resolve_node_url(network),
        contract_address=contract_address,
        account=KeyPair.from_private_key(private_key) if private_key else None,
        timeout=settings.request_timeout,
        wait_timeout=settings.wait_timeout,
        poll_interval=settings.poll_interval,
        max_gas_amount=settings.max_gas_amount,
    )


def run_with_coordinator(
    ctx: click.Context,
    action: Callable[[RegistrationCoordinator], Awaitable[T]],
) -> T:
    """Open a registry client, hand a coordinator to ``action`` and close the client."""
    store: LocalRegistryStore = ctx.obj["store"]
    client_factory = ctx.obj.get("client_factory", build_registry_client)
    client = client_factory(ctx.obj["settings"], store)

    async def _run() -> T:
        async with client:
            address = client.account_address
            coordinator = RegistrationCoordinator(
                store,
                client,
                merchant_addresses=[address] if address else [],
            )
            return await action(coordinator)

    return asyncio.run(_run())


def handle_errors(func):
    """Render P2MError as a red message and exit with status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except P2MError as exc:
            console.print(f"[red]Error: {escape(exc.message)}[/red]")
            tx_hash = exc.details.get("tx_hash")
            if tx_hash:
                console.print(f"[dim]Transaction: {tx_hash}[/dim]")
            raise click.exceptions.Exit(1) from exc
    return wrapper
