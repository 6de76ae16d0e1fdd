"""Export the merchant config as JSON."""
from __future__ import annotations

import json
import os
from pathlib import Path

import click

from ...store import LocalRegistryStore
from ..runtime import console, handle_errors


@click.command()
@click.option("--include-secrets", is_flag=True, help="Include private keys in the export")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write to a file instead of stdout",
)
@click.pass_context
@handle_errors
def export(ctx, include_secrets: bool, output: Path | None):
    """Export UPI IDs, escrow wallets and merchant profile."""
    store: LocalRegistryStore = ctx.obj["store"]
    document = json.dumps(store.export(include_secrets=include_secrets), indent=2)

    if output is None:
        click.echo(document)
        return

    try:
        output.write_text(document + "\n", encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot write {output}: {exc}") from exc
    if include_secrets:
        os.chmod(output, 0o600)
        console.print("[red]⚠ Export includes private keys. Keep it secure.[/red]")
    console.print(f"[green]✓ Exported to {output}[/green]")
