"""Exception hierarchy for the P2M merchant toolkit.

All errors inherit from P2MError, which gives every failure path a
machine-readable ``error_code`` and a ``details`` dict the CLI (or any other
caller) can render without string matching.

Usage:
    from p2m_merchant.exceptions import (
        P2MError,
        InvalidIdentifierFormat,
        RemoteCallError,
    )

    try:
        await client.register(upi_id)
    except RemoteCallError as e:
        print(e.to_dict())
"""
from __future__ import annotations

from typing import Any, Optional


class P2MError(Exception):
    """Base exception for all P2M errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
        details: Optional additional context
    """

    error_code: str = "P2M_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable form."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Validation & Precondition Errors
# =============================================================================

class P2MValidationError(P2MError):
    """Invalid input data or parameters."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)


class InvalidIdentifierFormat(P2MValidationError):
    """UPI ID does not match ``localpart@provider``."""

    error_code = "INVALID_IDENTIFIER_FORMAT"

    def __init__(self, identifier: str) -> None:
        super().__init__(
            f"Invalid UPI ID format: '{identifier}' "
            "(expected username@provider, e.g. john.doe@paytm)",
            field="upi_id",
            details={"identifier": identifier},
        )
        self.identifier = identifier


class InvalidNetworkError(P2MValidationError):
    """Network name outside the supported enumeration."""

    error_code = "INVALID_NETWORK"

    def __init__(self, network: str, valid: list[str]) -> None:
        super().__init__(
            f"Invalid network: {network}. Valid networks: {', '.join(valid)}",
            field="network",
        )
        self.network = network


class P2MNotFoundError(P2MError):
    """Requested resource not found."""

    error_code = "NOT_FOUND"

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        message = f"{resource_type} '{resource_id}' not found"
        details = details or {}
        details["resource_type"] = resource_type
        details["resource_id"] = resource_id
        super().__init__(message, details=details)


class UnknownIdentifierError(P2MNotFoundError):
    """UPI ID is not present in the local store."""

    error_code = "UNKNOWN_IDENTIFIER"

    def __init__(self, identifier: str) -> None:
        super().__init__("UPI ID", identifier)
        self.identifier = identifier


class P2MConflictError(P2MError):
    """Resource conflict (duplicate or already existing)."""

    error_code = "CONFLICT"


class IdentifierAlreadyRegistered(P2MConflictError):
    """UPI ID is already bound on the remote registry."""

    error_code = "IDENTIFIER_ALREADY_REGISTERED"

    def __init__(self, identifier: str, owner: Optional[str] = None) -> None:
        details: dict[str, Any] = {"identifier": identifier}
        if owner:
            details["owner"] = owner
        super().__init__(
            f"UPI ID '{identifier}' is already registered on the registry",
            details=details,
        )
        self.identifier = identifier


class WalletAlreadyExistsError(P2MConflictError):
    """An escrow wallet is already bound to this UPI ID."""

    error_code = "WALLET_ALREADY_EXISTS"

    def __init__(self, identifier: str, address: str) -> None:
        super().__init__(
            f"Escrow wallet already exists for '{identifier}'",
            details={"identifier": identifier, "address": address},
        )
        self.identifier = identifier


class NotIdentifierOwnerError(P2MConflictError):
    """UPI ID is registered to a different merchant address."""

    error_code = "NOT_IDENTIFIER_OWNER"

    def __init__(self, identifier: str, owner: str) -> None:
        super().__init__(
            f"UPI ID '{identifier}' is owned by {owner}",
            details={"identifier": identifier, "owner": owner},
        )
        self.identifier = identifier
        self.owner = owner


class OperatorAccountMissingError(P2MError):
    """A registry write was attempted without a signing account."""

    error_code = "OPERATOR_ACCOUNT_MISSING"

    def __init__(self) -> None:
        super().__init__("No merchant account configured. Run `p2m init` first.")


# =============================================================================
# Persistence Errors
# =============================================================================

class P2MStoreError(P2MError):
    """Base class for local store failures."""

    error_code = "STORE_ERROR"

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, details=details)
        self.path = path


class StoreCorruptError(P2MStoreError):
    """Persisted store content cannot be parsed."""

    error_code = "STORE_CORRUPT"


class StoreWriteError(P2MStoreError):
    """Persisted store could not be written."""

    error_code = "STORE_WRITE_FAILED"


# =============================================================================
# Remote & Key Errors
# =============================================================================

class RemoteCallError(P2MError):
    """Registry call failed (network error or on-chain rejection)."""

    error_code = "REMOTE_CALL_FAILED"

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        vm_status: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if tx_hash:
            details["tx_hash"] = tx_hash
        if vm_status:
            details["vm_status"] = vm_status
        super().__init__(message, details=details)
        self.tx_hash = tx_hash
        self.vm_status = vm_status


class DuplicateRegistrationError(RemoteCallError):
    """Registry rejected the write because the UPI ID is already bound."""

    error_code = "DUPLICATE_REGISTRATION"


class AmbiguousCommitError(RemoteCallError):
    """Transaction was submitted but its outcome was never observed."""

    error_code = "AMBIGUOUS_COMMIT"


class KeyGenerationError(P2MError):
    """Key pair generation failed; not recoverable."""

    error_code = "KEY_GENERATION_FAILED"
