"""
Domain models for merchant UPI bindings.

The persisted document keeps the field names used by the merchant CLI
config file (``upiIds``, ``escrowWallets``, ``createdAt``...), so every
model here converts to and from that camelCase layout.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import AmbiguousCommitError
from .identifiers import is_valid_identifier


class Network(str, Enum):
    """Supported Aptos networks."""
    DEVNET = "devnet"
    TESTNET = "testnet"
    MAINNET = "mainnet"

    @classmethod
    def values(cls) -> List[str]:
        return [n.value for n in cls]


DEFAULT_NETWORK = Network.DEVNET


@dataclass
class EscrowWallet:
    """Key pair and address bound to exactly one UPI ID."""
    address: str
    public_key: str
    private_key: str
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, str]:
        return {
            "address": self.address,
            "publicKey": self.public_key,
            "privateKey": self.private_key,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EscrowWallet":
        return cls(
            address=data["address"],
            public_key=data["publicKey"],
            private_key=data["privateKey"],
            created_at=data["createdAt"],
        )


@dataclass
class MerchantInfo:
    """Merchant business profile."""
    business_name: str
    contact_info: str
    registration_date: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, str]:
        return {
            "businessName": self.business_name,
            "contactInfo": self.contact_info,
            "registrationDate": self.registration_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MerchantInfo":
        return cls(
            business_name=data["businessName"],
            contact_info=data["contactInfo"],
            registration_date=data.get("registrationDate", ""),
        )


@dataclass
class MerchantConfig:
    """
    Root aggregate of the local store.

    ``identifiers`` keeps insertion order; every key of ``wallets`` must be
    one of ``identifiers``.
    """
    network: Network = DEFAULT_NETWORK
    identifiers: List[str] = field(default_factory=list)
    wallets: Dict[str, EscrowWallet] = field(default_factory=dict)
    merchant_info: Optional[MerchantInfo] = None
    contract_address: Optional[str] = None
    last_sync_timestamp: Optional[int] = None
    private_key: Optional[str] = None

    def orphan_wallets(self) -> List[str]:
        """UPI IDs that own a wallet but are not registered identifiers."""
        known = set(self.identifiers)
        return [upi_id for upi_id in self.wallets if upi_id not in known]

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the on-disk document layout."""
        config: Dict[str, Any] = {
            "network": self.network.value,
            "upiIds": list(self.identifiers),
        }
        if self.private_key is not None:
            config["privateKey"] = self.private_key
        if self.contract_address is not None:
            config["contractAddress"] = self.contract_address
        if self.merchant_info is not None:
            config["merchantInfo"] = self.merchant_info.to_dict()
        if self.last_sync_timestamp is not None:
            config["lastSyncTimestamp"] = self.last_sync_timestamp
        return {
            "config": config,
            "escrowWallets": {
                upi_id: wallet.to_dict() for upi_id, wallet in self.wallets.items()
            },
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "MerchantConfig":
        """
        Build from the on-disk document layout.

        Raises KeyError, TypeError or ValueError on malformed content; the
        store turns those into StoreCorruptError.
        """
        if not isinstance(data, dict):
            raise TypeError("store document must be a JSON object")
        config = data.get("config") or {}
        raw_wallets = data.get("escrowWallets") or {}
        if not isinstance(config, dict) or not isinstance(raw_wallets, dict):
            raise TypeError("config and escrowWallets must be JSON objects")

        raw_ids = config.get("upiIds") or []
        if not isinstance(raw_ids, list):
            raise TypeError("upiIds must be a JSON array")

        identifiers: List[str] = []
        for upi_id in raw_ids:
            if not isinstance(upi_id, str):
                raise TypeError(f"UPI ID must be a string, got {upi_id!r}")
            if not is_valid_identifier(upi_id):
                raise ValueError(f"Malformed UPI ID in store: {upi_id!r}")
            if upi_id not in identifiers:
                identifiers.append(upi_id)

        merchant_info = config.get("merchantInfo")
        last_sync = config.get("lastSyncTimestamp")
        return cls(
            network=Network(config.get("network") or DEFAULT_NETWORK.value),
            identifiers=identifiers,
            wallets={
                upi_id: EscrowWallet.from_dict(wallet)
                for upi_id, wallet in raw_wallets.items()
            },
            merchant_info=MerchantInfo.from_dict(merchant_info) if merchant_info else None,
            contract_address=config.get("contractAddress"),
            last_sync_timestamp=int(last_sync) if last_sync is not None else None,
            private_key=config.get("privateKey"),
        )


@dataclass(frozen=True)
class RegistryStats:
    """Snapshot of the remote registry counters."""
    merchant_count: int
    identifier_count: int


class RegistrationState(str, Enum):
    """Per-identifier protocol state."""
    UNBOUND = "unbound"
    CHECKED = "checked"
    COMMITTED = "committed"
    PERSISTED = "persisted"
    FAILED = "failed"
    PERSIST_FAILED = "persist_failed"


@dataclass
class RegistrationResult:
    """Outcome of a bind/unbind protocol run."""
    identifier: str
    state: RegistrationState
    tx_ref: Optional[str] = None
    error: Optional[Exception] = None
    requires_confirmation: bool = False

    @property
    def ok(self) -> bool:
        return self.state == RegistrationState.PERSISTED

    @property
    def requires_reconcile(self) -> bool:
        """True when local and remote state may disagree."""
        if self.state == RegistrationState.PERSIST_FAILED:
            return True
        return isinstance(self.error, AmbiguousCommitError)


@dataclass
class ReconcileReport:
    """Result of realigning the local store with the registry."""
    added: List[str] = field(default_factory=list)
    orphaned: List[str] = field(default_factory=list)
    remote_count: int = 0
    synced_at: Optional[int] = None

    @property
    def in_sync(self) -> bool:
        return not self.added and not self.orphaned
