"""
Registration coordinator: binds UPI IDs on the registry and in the local store.

Ordering is the consistency mechanism. Every write goes to the registry
first and is persisted locally only after the registry accepted it, so the
local store never claims a binding the chain does not hold. The one window
left open is a local save failing after a successful commit
(``PERSIST_FAILED``); ``reconcile()`` closes it by re-deriving local state
from the registry.

Remote calls are issued one at a time and are never retried here: a lost
acknowledgment may hide a committed registration, and a blind retry would
turn that into a duplicate rejection.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .exceptions import (
    DuplicateRegistrationError,
    IdentifierAlreadyRegistered,
    NotIdentifierOwnerError,
    OperatorAccountMissingError,
    P2MValidationError,
    RemoteCallError,
    StoreWriteError,
    UnknownIdentifierError,
    WalletAlreadyExistsError,
)
from .identifiers import validate_identifier
from .logging_config import LogContext
from .models import (
    EscrowWallet,
    MerchantConfig,
    ReconcileReport,
    RegistrationResult,
    RegistrationState,
    RegistryStats,
)
from .registry_client import RegistryClient
from .store import LocalRegistryStore
from .wallet_factory import EscrowWalletFactory

logger = logging.getLogger(__name__)


def normalize_address(address: str) -> str:
    """Canonical form for comparing account addresses (``0x1`` == ``0x0...01``)."""
    value = address.strip().lower().removeprefix("0x").lstrip("0")
    return "0x" + (value or "0")


class RegistrationCoordinator:
    """
    Orchestrates bind/register/persist for one merchant.

    Args:
        store: The merchant's local store (the shared context object)
        client: Remote registry façade
        wallet_factory: Escrow wallet generator
        merchant_addresses: Account addresses this merchant registers from;
            used to attribute remote bindings during reconcile and removal
    """

    def __init__(
        self,
        store: LocalRegistryStore,
        client: RegistryClient,
        wallet_factory: Optional[EscrowWalletFactory] = None,
        merchant_addresses: Sequence[str] = (),
    ):
        self._store = store
        self._client = client
        self._wallet_factory = wallet_factory or EscrowWalletFactory()
        self._merchant_addresses = list(merchant_addresses)

    @property
    def store(self) -> LocalRegistryStore:
        return self._store

    @property
    def merchant_addresses(self) -> List[str]:
        return list(self._merchant_addresses)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self._store.is_initialized()

    def list_identifiers(self) -> List[str]:
        return self._store.list_identifiers()

    def get_wallet(self, upi_id: str) -> Optional[EscrowWallet]:
        return self._store.get_wallet(upi_id)

    @property
    def config(self) -> MerchantConfig:
        return self._store.config

    async def registry_stats(self) -> RegistryStats:
        return await self._client.stats()

    # ------------------------------------------------------------------
    # Bind / register
    # ------------------------------------------------------------------

    def _transition(self, upi_id: str, state: RegistrationState) -> RegistrationState:
        logger.info("UPI ID %s -> %s", upi_id, state.value)
        return state

    def _failed(self, upi_id: str, error: Exception) -> RegistrationResult:
        logger.warning("UPI ID %s failed: %s", upi_id, error)
        return RegistrationResult(
            identifier=upi_id,
            state=RegistrationState.FAILED,
            error=error,
        )

    async def bind_and_register(
        self,
        upi_id: str,
        force: bool = False,
        confirmed: bool = False,
    ) -> RegistrationResult:
        """
        Check availability, commit on the registry, then persist locally.

        Args:
            upi_id: UPI ID to bind
            force: Skip the local confirmation and the remote availability check
            confirmed: Caller already confirmed re-registering a locally known ID

        Returns:
            RegistrationResult. When the ID is already stored locally and
            neither ``force`` nor ``confirmed`` is set, the result is
            ``UNBOUND`` with ``requires_confirmation=True`` and nothing ran.

        Raises:
            InvalidIdentifierFormat: ``upi_id`` is malformed
        """
        validate_identifier(upi_id)

        with LogContext(upi_id=upi_id):
            if self._store.has_identifier(upi_id) and not (force or confirmed):
                logger.info("UPI ID %s already stored locally, confirmation required", upi_id)
                return RegistrationResult(
                    identifier=upi_id,
                    state=RegistrationState.UNBOUND,
                    requires_confirmation=True,
                )

            try:
                exists = await self._client.exists(upi_id)
            except RemoteCallError as exc:
                return self._failed(upi_id, exc)
            if exists and not force:
                return self._failed(upi_id, IdentifierAlreadyRegistered(upi_id))
            self._transition(upi_id, RegistrationState.CHECKED)

            try:
                tx_ref = await self._client.register(upi_id)
            except DuplicateRegistrationError as exc:
                error = IdentifierAlreadyRegistered(upi_id)
                error.__cause__ = exc
                return self._failed(upi_id, error)
            except RemoteCallError as exc:
                return self._failed(upi_id, exc)
            self._transition(upi_id, RegistrationState.COMMITTED)

            self._store.add_identifier(upi_id)
            try:
                self._store.save()
            except StoreWriteError as exc:
                logger.error(
                    "UPI ID %s registered on-chain (tx %s) but not saved locally; "
                    "run reconcile to recover: %s",
                    upi_id,
                    tx_ref,
                    exc,
                    extra={"tx_ref": tx_ref},
                )
                return RegistrationResult(
                    identifier=upi_id,
                    state=RegistrationState.PERSIST_FAILED,
                    tx_ref=tx_ref,
                    error=exc,
                )

            return RegistrationResult(
                identifier=upi_id,
                state=self._transition(upi_id, RegistrationState.PERSISTED),
                tx_ref=tx_ref,
            )

    async def unbind_and_remove(self, upi_id: str) -> RegistrationResult:
        """
        Remove a UPI ID from the registry, then from the local store.

        An ID that is stored locally but unknown to the registry is removed
        locally only (``tx_ref`` is None).

        Raises:
            InvalidIdentifierFormat: ``upi_id`` is malformed
            UnknownIdentifierError: neither the store nor the registry knows it
            NotIdentifierOwnerError: another merchant owns the binding
        """
        validate_identifier(upi_id)

        with LogContext(upi_id=upi_id):
            stored = self._store.has_identifier(upi_id)
            try:
                owner = await self._client.owner_of(upi_id)
            except RemoteCallError as exc:
                return self._failed(upi_id, exc)

            if owner is None:
                if not stored:
                    raise UnknownIdentifierError(upi_id)
                logger.warning("UPI ID %s not on registry, removing locally only", upi_id)
                self._store.remove_identifier(upi_id)
                self._store.save()
                return RegistrationResult(
                    identifier=upi_id,
                    state=self._transition(upi_id, RegistrationState.PERSISTED),
                )

            if self._merchant_addresses and not self._owns(owner):
                raise NotIdentifierOwnerError(upi_id, owner)
            self._transition(upi_id, RegistrationState.CHECKED)

            try:
                tx_ref = await self._client.remove(upi_id)
            except RemoteCallError as exc:
                return self._failed(upi_id, exc)
            self._transition(upi_id, RegistrationState.COMMITTED)

            self._store.remove_identifier(upi_id)
            try:
                self._store.save()
            except StoreWriteError as exc:
                logger.error(
                    "UPI ID %s removed on-chain (tx %s) but not saved locally: %s",
                    upi_id,
                    tx_ref,
                    exc,
                    extra={"tx_ref": tx_ref},
                )
                return RegistrationResult(
                    identifier=upi_id,
                    state=RegistrationState.PERSIST_FAILED,
                    tx_ref=tx_ref,
                    error=exc,
                )

            return RegistrationResult(
                identifier=upi_id,
                state=self._transition(upi_id, RegistrationState.PERSISTED),
                tx_ref=tx_ref,
            )

    def _owns(self, owner: str) -> bool:
        target = normalize_address(owner)
        return any(normalize_address(a) == target for a in self._merchant_addresses)

    # ------------------------------------------------------------------
    # Escrow wallets
    # ------------------------------------------------------------------

    def generate_wallet(self, upi_id: str, force: bool = False) -> EscrowWallet:
        """
        Generate and store an escrow wallet for a registered UPI ID.

        Raises:
            UnknownIdentifierError: ``upi_id`` is not in the store
            WalletAlreadyExistsError: a wallet exists and ``force`` is False
            KeyGenerationError: the key generator failed
            StoreWriteError: the wallet could not be persisted
        """
        if not self._store.has_identifier(upi_id):
            raise UnknownIdentifierError(upi_id)

        existing = self._store.get_wallet(upi_id)
        if existing is not None and not force:
            raise WalletAlreadyExistsError(upi_id, existing.address)

        wallet = self._wallet_factory.generate()
        self._store.set_wallet(upi_id, wallet)
        self._store.save()
        if existing is not None:
            logger.warning(
                "Replaced escrow wallet for %s (%s -> %s)",
                upi_id,
                existing.address,
                wallet.address,
            )
        else:
            logger.info("Escrow wallet %s bound to %s", wallet.address, upi_id)
        return wallet

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self) -> ReconcileReport:
        """
        Realign the store with the registry.

        Remote bindings of this merchant missing locally are added; local
        IDs the registry does not attribute to this merchant are reported as
        orphaned and left in place for manual resolution.

        Raises:
            OperatorAccountMissingError: no merchant address is known
            RemoteCallError: the registry could not be read
            StoreWriteError: the reconciled state could not be saved
        """
        if not self._merchant_addresses:
            raise OperatorAccountMissingError()

        remote: List[str] = []
        for address in self._merchant_addresses:
            for upi_id in await self._client.identifiers_of(address):
                if upi_id not in remote:
                    remote.append(upi_id)

        report = ReconcileReport(remote_count=len(remote))
        local = self._store.list_identifiers()
        for upi_id in remote:
            if upi_id not in local:
                self._store.add_identifier(upi_id)
                report.added.append(upi_id)

        remote_set = set(remote)
        report.orphaned = [upi_id for upi_id in local if upi_id not in remote_set]
        for upi_id in report.orphaned:
            logger.warning("UPI ID %s is stored locally but not on the registry", upi_id)

        report.synced_at = self._store.set_last_sync_timestamp()
        self._store.save()
        logger.info(
            "Reconciled %d remote UPI IDs: %d added, %d orphaned",
            report.remote_count,
            len(report.added),
            len(report.orphaned),
        )
        return report

    # ------------------------------------------------------------------
    # Merchant profile
    # ------------------------------------------------------------------

    async def register_merchant(self, business_name: str, contact_info: str) -> str:
        """
        Register the merchant profile on the registry, then store it locally.

        Returns:
            Transaction reference

        Raises:
            P2MValidationError: name or contact info out of bounds
            RemoteCallError: the registry rejected or lost the write
            StoreWriteError: registered remotely but not saved; ``details``
                carries the transaction hash
        """
        business_name = business_name.strip()
        contact_info = contact_info.strip()
        if not 2 <= len(business_name) <= 100:
            raise P2MValidationError(
                "Business name must be 2-100 characters", field="business_name"
            )
        if not 5 <= len(contact_info) <= 200:
            raise P2MValidationError(
                "Contact information must be 5-200 characters", field="contact_info"
            )

        tx_ref = await self._client.register_merchant(business_name, contact_info)
        self._store.set_merchant_info(business_name, contact_info)
        try:
            self._store.save()
        except StoreWriteError as exc:
            exc.details["tx_hash"] = tx_ref
            logger.error("Merchant registered (tx %s) but profile not saved: %s", tx_ref, exc)
            raise
        logger.info("Merchant %s registered (tx %s)", business_name, tx_ref)
        return tx_ref
