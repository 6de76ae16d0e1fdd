"""
Local registry store: the merchant document on disk.

Single merchant, single process. There is no inter-process locking;
running two writers against the same file is unsupported.

Usage:
    store = LocalRegistryStore("~/.p2m-merchant-cli/config.json")
    store.load()
    store.add_identifier("shop@bank")
    store.save()
"""
from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .exceptions import (
    InvalidNetworkError,
    StoreCorruptError,
    StoreWriteError,
    UnknownIdentifierError,
)
from .logging_config import MASK_PATTERN
from .models import EscrowWallet, MerchantConfig, MerchantInfo, Network

logger = logging.getLogger(__name__)


class LocalRegistryStore:
    """
    Durable mapping of one merchant's configuration.

    The in-memory MerchantConfig is authoritative until the next successful
    save(); every mutating call marks the store dirty.
    """

    def __init__(self, path: str | os.PathLike[str]):
        self._path = Path(path).expanduser()
        self._config = MerchantConfig()
        self._initialized = False
        self._dirty = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def is_initialized(self) -> bool:
        """True once load() has completed in this process."""
        return self._initialized

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> MerchantConfig:
        """
        Read the persisted document, or materialize defaults if none exists.

        Raises:
            StoreCorruptError: content is not a valid merchant document
        """
        if self._path.exists():
            try:
                raw = self._path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise StoreCorruptError(
                    f"Cannot read store: {exc}", path=str(self._path)
                ) from exc
            self._config = self._parse(raw)
            logger.debug(
                "Loaded store %s (%d UPI IDs)", self._path, len(self._config.identifiers)
            )
        else:
            self._config = MerchantConfig()
            logger.debug("No store at %s, using defaults", self._path)

        self._initialized = True
        self._dirty = False
        return self.config

    def _parse(self, raw: str) -> MerchantConfig:
        try:
            config = MerchantConfig.from_document(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreCorruptError(
                f"Cannot parse store: {exc}", path=str(self._path)
            ) from exc

        orphans = config.orphan_wallets()
        if orphans:
            raise StoreCorruptError(
                f"Escrow wallets without a registered UPI ID: {', '.join(orphans)}",
                path=str(self._path),
                details={"orphans": orphans},
            )
        return config

    def save(self) -> None:
        """
        Atomically write the full current state.

        Raises:
            StoreWriteError: the document could not be written
        """
        self._ensure_loaded()
        payload = json.dumps(self._config.to_document(), indent=2)
        tmp_name: Optional[str] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            raise StoreWriteError(
                f"Failed to save store: {exc}", path=str(self._path)
            ) from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp_name)

        self._dirty = False
        logger.debug("Saved store %s", self._path)

    def reset(self) -> None:
        """Wipe back to defaults. Caller saves."""
        self._ensure_loaded()
        self._config = MerchantConfig()
        self._mark_dirty()

    def _ensure_loaded(self) -> None:
        if not self._initialized:
            self.load()

    def _mark_dirty(self) -> None:
        self._dirty = True

    # ------------------------------------------------------------------
    # UPI IDs
    # ------------------------------------------------------------------

    def add_identifier(self, upi_id: str) -> None:
        self._ensure_loaded()
        if upi_id not in self._config.identifiers:
            self._config.identifiers.append(upi_id)
        self._mark_dirty()

    def remove_identifier(self, upi_id: str) -> None:
        """Remove a UPI ID together with its escrow wallet."""
        self._ensure_loaded()
        if upi_id in self._config.identifiers:
            self._config.identifiers.remove(upi_id)
        self._config.wallets.pop(upi_id, None)
        self._mark_dirty()

    def has_identifier(self, upi_id: str) -> bool:
        self._ensure_loaded()
        return upi_id in self._config.identifiers

    def list_identifiers(self) -> List[str]:
        """UPI IDs in insertion order."""
        self._ensure_loaded()
        return list(self._config.identifiers)

    # ------------------------------------------------------------------
    # Escrow wallets
    # ------------------------------------------------------------------

    def set_wallet(self, upi_id: str, wallet: EscrowWallet) -> None:
        self._ensure_loaded()
        if upi_id not in self._config.identifiers:
            raise UnknownIdentifierError(upi_id)
        self._config.wallets[upi_id] = wallet
        self._mark_dirty()

    def get_wallet(self, upi_id: str) -> Optional[EscrowWallet]:
        self._ensure_loaded()
        return self._config.wallets.get(upi_id)

    def wallets(self) -> Dict[str, EscrowWallet]:
        self._ensure_loaded()
        return dict(self._config.wallets)

    # ------------------------------------------------------------------
    # Merchant profile & settings
    # ------------------------------------------------------------------

    @property
    def config(self) -> MerchantConfig:
        """Snapshot copy of the current state."""
        self._ensure_loaded()
        return copy.deepcopy(self._config)

    @property
    def network(self) -> Network:
        self._ensure_loaded()
        return self._config.network

    def set_network(self, network: Network | str) -> None:
        self._ensure_loaded()
        try:
            self._config.network = Network(network)
        except ValueError as exc:
            raise InvalidNetworkError(str(network), Network.values()) from exc
        self._mark_dirty()

    @property
    def contract_address(self) -> Optional[str]:
        self._ensure_loaded()
        return self._config.contract_address

    def set_contract_address(self, address: str) -> None:
        self._ensure_loaded()
        self._config.contract_address = address
        self._mark_dirty()

    @property
    def merchant_info(self) -> Optional[MerchantInfo]:
        self._ensure_loaded()
        return self._config.merchant_info

    def set_merchant_info(self, business_name: str, contact_info: str) -> MerchantInfo:
        self._ensure_loaded()
        info = MerchantInfo(business_name=business_name, contact_info=contact_info)
        self._config.merchant_info = info
        self._mark_dirty()
        return info

    @property
    def operator_key(self) -> Optional[str]:
        self._ensure_loaded()
        return self._config.private_key

    def set_operator_key(self, private_key: str) -> None:
        self._ensure_loaded()
        self._config.private_key = private_key
        self._mark_dirty()

    @property
    def last_sync_timestamp(self) -> Optional[int]:
        self._ensure_loaded()
        return self._config.last_sync_timestamp

    def set_last_sync_timestamp(self, timestamp_ms: Optional[int] = None) -> int:
        self._ensure_loaded()
        if timestamp_ms is None:
            timestamp_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
        self._config.last_sync_timestamp = timestamp_ms
        self._mark_dirty()
        return timestamp_ms

    def export(self, include_secrets: bool = False) -> Dict[str, Any]:
        """Document copy, private keys masked unless requested."""
        self._ensure_loaded()
        document = self._config.to_document()
        if include_secrets:
            return document
        if "privateKey" in document["config"]:
            document["config"]["privateKey"] = MASK_PATTERN
        for wallet in document["escrowWallets"].values():
            wallet["privateKey"] = MASK_PATTERN
        return document
