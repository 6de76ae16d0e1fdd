"""
P2M merchant toolkit.

Binds merchant UPI IDs to the on-chain UPI registry, keeps a local record
of them and generates escrow wallets per UPI ID.

Example:
    ```python
    from p2m_merchant import (
        AptosRegistryClient,
        LocalRegistryStore,
        RegistrationCoordinator,
    )

    store = LocalRegistryStore("~/.p2m-merchant-cli/config.json")
    async with AptosRegistryClient(node_url, contract_address, account) as client:
        coordinator = RegistrationCoordinator(store, client, merchant_addresses=[account.address])
        result = await coordinator.bind_and_register("shop@paytm")
    ```
"""
from .aptos_client import AptosRegistryClient
from .config import NETWORK_PROFILES, P2MSettings, load_settings, transaction_url
from .coordinator import RegistrationCoordinator
from .exceptions import (
    AmbiguousCommitError,
    DuplicateRegistrationError,
    IdentifierAlreadyRegistered,
    InvalidIdentifierFormat,
    InvalidNetworkError,
    KeyGenerationError,
    NotIdentifierOwnerError,
    OperatorAccountMissingError,
    P2MError,
    P2MValidationError,
    RemoteCallError,
    StoreCorruptError,
    StoreWriteError,
    UnknownIdentifierError,
    WalletAlreadyExistsError,
)
from .identifiers import is_valid_identifier, validate_identifier
from .models import (
    EscrowWallet,
    MerchantConfig,
    MerchantInfo,
    Network,
    ReconcileReport,
    RegistrationResult,
    RegistrationState,
    RegistryStats,
)
from .registry_client import InMemoryRegistryClient, RegistryClient
from .store import LocalRegistryStore
from .wallet_factory import EscrowWalletFactory, KeyPair

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Core
    "LocalRegistryStore",
    "RegistrationCoordinator",
    "EscrowWalletFactory",
    "KeyPair",
    # Registry clients
    "RegistryClient",
    "InMemoryRegistryClient",
    "AptosRegistryClient",
    # Config
    "P2MSettings",
    "load_settings",
    "NETWORK_PROFILES",
    "transaction_url",
    # Models
    "EscrowWallet",
    "MerchantConfig",
    "MerchantInfo",
    "Network",
    "ReconcileReport",
    "RegistrationResult",
    "RegistrationState",
    "RegistryStats",
    # Identifiers
    "is_valid_identifier",
    "validate_identifier",
    # Errors
    "P2MError",
    "P2MValidationError",
    "InvalidIdentifierFormat",
    "InvalidNetworkError",
    "UnknownIdentifierError",
    "IdentifierAlreadyRegistered",
    "WalletAlreadyExistsError",
    "NotIdentifierOwnerError",
    "OperatorAccountMissingError",
    "StoreCorruptError",
    "StoreWriteError",
    "RemoteCallError",
    "DuplicateRegistrationError",
    "AmbiguousCommitError",
    "KeyGenerationError",
]
