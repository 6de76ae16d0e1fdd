"""Runtime configuration for the P2M merchant toolkit.

Settings describe where the merchant document lives and how to reach the
registry; the document itself (UPI IDs, wallets, profile) is owned by
:class:`p2m_merchant.store.LocalRegistryStore`.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import DEFAULT_NETWORK, Network

DEFAULT_CONFIG_PATH = Path.home() / ".p2m-merchant-cli" / "config.json"

EXPLORER_BASE_URL = "https://explorer.aptoslabs.com/txn"


@dataclass(frozen=True)
class NetworkProfile:
    """Connection defaults for one Aptos network."""
    network: Network
    node_url: str
    contract_address: Optional[str]


NETWORK_PROFILES: Dict[Network, NetworkProfile] = {
    Network.DEVNET: NetworkProfile(
        network=Network.DEVNET,
        node_url="https://fullnode.devnet.aptoslabs.com",
        contract_address="0xf9d57e56266876b07459f919263caf276b07978766ace8e17b65003bd227fea5",
    ),
    Network.TESTNET: NetworkProfile(
        network=Network.TESTNET,
        node_url="https://fullnode.testnet.aptoslabs.com",
        contract_address="0xf9d57e56266876b07459f919263caf276b07978766ace8e17b65003bd227fea5",
    ),
    # Mainnet registry is not deployed yet; a contract address must be configured.
    Network.MAINNET: NetworkProfile(
        network=Network.MAINNET,
        node_url="https://fullnode.mainnet.aptoslabs.com",
        contract_address=None,
    ),
}


def get_network_profile(network: Network | str) -> NetworkProfile:
    return NETWORK_PROFILES[Network(network)]


def transaction_url(tx_hash: str, network: Network | str = DEFAULT_NETWORK) -> str:
    """Explorer link for a transaction hash."""
    return f"{EXPLORER_BASE_URL}/{tx_hash}?network={Network(network).value}"


class P2MSettings(BaseSettings):
    """Settings with ``P2M_`` environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="P2M_",
        env_file=".env",
        extra="ignore",
    )

    config_path: Path = Field(default_factory=lambda: DEFAULT_CONFIG_PATH)

    # Registry connection overrides (fall back to the network profile)
    node_url: Optional[str] = None
    contract_address: Optional[str] = None

    # Merchant signing key override (otherwise read from the store)
    private_key: Optional[str] = None

    # Remote call behaviour
    request_timeout: float = 30.0
    wait_timeout: float = 30.0
    poll_interval: float = 1.0
    max_gas_amount: int = 10_000

    # Logging
    log_level: str = "WARNING"
    log_json: bool = False

    @field_validator("config_path", mode="before")
    @classmethod
    def expand_config_path(cls, v):
        """Expand ``~`` in configured paths."""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    def resolve_node_url(self, network: Network | str) -> str:
        return (self.node_url or get_network_profile(network).node_url).rstrip("/")

    def resolve_contract_address(
        self,
        network: Network | str,
        stored: Optional[str] = None,
    ) -> Optional[str]:
        """Explicit setting wins, then the stored address, then the network default."""
        return self.contract_address or stored or get_network_profile(network).contract_address


@lru_cache
def load_settings(env_file: str | None = None) -> P2MSettings:
    """Load P2MSettings once per process."""
    env_path = Path(env_file) if env_file else None
    return P2MSettings(_env_file=env_path)
