"""
Pytest configuration and fixtures for p2m_merchant tests.
"""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from p2m_merchant.coordinator import RegistrationCoordinator
from p2m_merchant.registry_client import InMemoryRegistryClient, RegistryClient
from p2m_merchant.store import LocalRegistryStore
from p2m_merchant.wallet_factory import EscrowWalletFactory, KeyPair

MERCHANT_ADDRESS = "0x" + "a" * 64
OTHER_MERCHANT = "0x" + "b" * 64
FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

TEST_SEED = "0x9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"


@pytest.fixture
def store_path(tmp_path):
    """Location of the merchant document."""
    return tmp_path / "p2m" / "config.json"


@pytest.fixture
def store(store_path):
    """Loaded, empty store."""
    store = LocalRegistryStore(store_path)
    store.load()
    return store


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def wallet_factory():
    """Wallet factory with a frozen clock."""
    return EscrowWalletFactory(clock=lambda: FIXED_NOW)


@pytest.fixture
def registry():
    """In-memory registry acting for MERCHANT_ADDRESS."""
    return InMemoryRegistryClient(merchant_address=MERCHANT_ADDRESS)


@pytest.fixture
def coordinator(store, registry, wallet_factory):
    """Coordinator wired to the in-memory registry."""
    return RegistrationCoordinator(
        store,
        registry,
        wallet_factory=wallet_factory,
        merchant_addresses=[MERCHANT_ADDRESS],
    )


@pytest.fixture
def mock_client():
    """Registry client mock: nothing registered, register returns 0xTX1."""
    client = AsyncMock(spec=RegistryClient)
    client.exists.return_value = False
    client.register.return_value = "0xTX1"
    client.remove.return_value = "0xTX2"
    client.owner_of.return_value = None
    client.identifiers_of.return_value = []
    return client


@pytest.fixture
def mock_coordinator(store, mock_client, wallet_factory):
    """Coordinator wired to the mock client."""
    return RegistrationCoordinator(
        store,
        mock_client,
        wallet_factory=wallet_factory,
        merchant_addresses=[MERCHANT_ADDRESS],
    )


@pytest.fixture
def key_pair():
    """Deterministic key pair."""
    return KeyPair.from_private_key(TEST_SEED)
