"""Remote registry interface.

The registry is the authoritative ledger of UPI ID -> merchant bindings.
Implementations raise RemoteCallError (or a subclass) for every failure;
they never retry writes on their own.
"""
from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .exceptions import DuplicateRegistrationError, RemoteCallError
from .models import RegistryStats

logger = logging.getLogger(__name__)


class RegistryClient(ABC):
    """Abstract façade over the on-chain UPI registry."""

    @property
    def account_address(self) -> Optional[str]:
        """Merchant address writes are issued from, when known."""
        return None

    @abstractmethod
    async def exists(self, upi_id: str) -> bool:
        """Whether ``upi_id`` is bound to any merchant."""

    @abstractmethod
    async def register(self, upi_id: str) -> str:
        """
        Bind ``upi_id`` to the caller's merchant account.

        Returns:
            Transaction reference

        Raises:
            DuplicateRegistrationError: the registry already holds ``upi_id``
            AmbiguousCommitError: submitted but the outcome was not observed
            RemoteCallError: any other failure
        """

    @abstractmethod
    async def remove(self, upi_id: str) -> str:
        """Unbind ``upi_id``; returns the transaction reference."""

    @abstractmethod
    async def stats(self) -> RegistryStats:
        """Current merchant and UPI ID counters."""

    @abstractmethod
    async def owner_of(self, upi_id: str) -> Optional[str]:
        """Merchant address bound to ``upi_id``, or None when unbound."""

    @abstractmethod
    async def identifiers_of(self, merchant_address: str) -> List[str]:
        """UPI IDs the registry attributes to ``merchant_address``."""

    @abstractmethod
    async def register_merchant(self, business_name: str, contact_info: str) -> str:
        """Create the caller's merchant profile; returns the transaction reference."""

    async def close(self) -> None:
        """Release network resources."""

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class InMemoryRegistryClient(RegistryClient):
    """
    In-process registry for tests and embedding.

    Enforces the same rules as the on-chain module: one owner per UPI ID,
    duplicate registration rejected, removal only by the owner.
    """

    def __init__(self, merchant_address: str = "0x" + "a" * 64):
        self.merchant_address = merchant_address
        self._bindings: Dict[str, str] = {}
        self._merchants: Dict[str, Dict[str, str]] = {}
        self._tx_counter = 0

    @property
    def account_address(self) -> Optional[str]:
        return self.merchant_address

    def _next_tx(self, action: str, subject: str) -> str:
        self._tx_counter += 1
        digest = hashlib.sha3_256(f"{action}:{subject}:{self._tx_counter}".encode())
        return "0x" + digest.hexdigest()

    def bind(self, upi_id: str, owner: str) -> None:
        """Seed a binding owned by ``owner`` (e.g. another merchant)."""
        self._bindings[upi_id] = owner

    async def exists(self, upi_id: str) -> bool:
        return upi_id in self._bindings

    async def register(self, upi_id: str) -> str:
        if upi_id in self._bindings:
            raise DuplicateRegistrationError(
                f"UPI ID '{upi_id}' already registered",
                vm_status="E_UPI_ALREADY_EXISTS",
            )
        self._bindings[upi_id] = self.merchant_address
        tx_ref = self._next_tx("register_upi", upi_id)
        logger.debug("Registered %s in memory (%s)", upi_id, tx_ref)
        return tx_ref

    async def remove(self, upi_id: str) -> str:
        owner = self._bindings.get(upi_id)
        if owner is None:
            raise RemoteCallError(
                f"UPI ID '{upi_id}' not registered", vm_status="E_UPI_NOT_FOUND"
            )
        if owner != self.merchant_address:
            raise RemoteCallError(
                f"UPI ID '{upi_id}' not owned by caller", vm_status="E_NOT_AUTHORIZED"
            )
        del self._bindings[upi_id]
        return self._next_tx("remove_upi", upi_id)

    async def stats(self) -> RegistryStats:
        owners = set(self._bindings.values()) | set(self._merchants)
        return RegistryStats(
            merchant_count=len(owners),
            identifier_count=len(self._bindings),
        )

    async def owner_of(self, upi_id: str) -> Optional[str]:
        return self._bindings.get(upi_id)

    async def identifiers_of(self, merchant_address: str) -> List[str]:
        return [
            upi_id for upi_id, owner in self._bindings.items()
            if owner == merchant_address
        ]

    async def register_merchant(self, business_name: str, contact_info: str) -> str:
        if self.merchant_address in self._merchants:
            raise RemoteCallError(
                "Merchant already registered", vm_status="E_MERCHANT_ALREADY_EXISTS"
            )
        self._merchants[self.merchant_address] = {
            "business_name": business_name,
            "contact_info": contact_info,
        }
        return self._next_tx("register_merchant", self.merchant_address)
