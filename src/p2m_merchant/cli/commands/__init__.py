"""CLI command modules."""
from . import export, init, registry, upi, wallets

__all__ = ["export", "init", "registry", "upi", "wallets"]
