"""
Tests for the p2m command-line interface
"""
import json
import logging
import os

import pytest
from click.testing import CliRunner

from p2m_merchant.cli.main import cli
from p2m_merchant.config import NETWORK_PROFILES
from p2m_merchant.models import Network
from p2m_merchant.store import LocalRegistryStore

TEST_SEED = "0x9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
OTHER_MERCHANT = "0x" + "b" * 64


@pytest.fixture(autouse=True)
def restore_logging():
    """setup_logging() rewires the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner():
    return CliRunner(env={"COLUMNS": "200"})


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "merchant" / "config.json"


@pytest.fixture
def invoke(runner, config_path, registry):
    def _invoke(*args, input=None):
        return runner.invoke(
            cli,
            ["--config-path", str(config_path), *args],
            input=input,
            obj={"client_factory": lambda settings, store: registry},
        )
    return _invoke


@pytest.fixture
def initialized(invoke):
    result = invoke("init")
    assert result.exit_code == 0, result.output
    return result


def read_document(config_path):
    return json.loads(config_path.read_text())


class TestInit:
    """Tests for p2m init."""

    def test_create_config_with_new_key(self, invoke, config_path):
        """Should write the config with a generated key and the default contract."""
        result = invoke("init")

        assert result.exit_code == 0, result.output
        assert "New merchant key generated" in result.output
        config = read_document(config_path)["config"]
        assert config["network"] == "devnet"
        assert config["upiIds"] == []
        assert config["privateKey"].startswith("0x")
        assert config["contractAddress"] == NETWORK_PROFILES[Network.DEVNET].contract_address

    def test_import_key_and_network(self, invoke, config_path):
        """Should store an imported key and the chosen network."""
        result = invoke("init", "--network", "testnet", "--private-key", TEST_SEED)

        assert result.exit_code == 0, result.output
        assert "Merchant key imported" in result.output
        config = read_document(config_path)["config"]
        assert config["network"] == "testnet"
        assert config["privateKey"] == TEST_SEED

    def test_reject_bad_key(self, invoke, config_path):
        """Should exit with an error for an unusable private key."""
        result = invoke("init", "--private-key", "0x1234")

        assert result.exit_code == 1
        assert "Invalid private key" in result.output
        assert not config_path.exists()

    def test_reject_unknown_network(self, invoke):
        """Should let click reject networks outside the enumeration."""
        result = invoke("init", "--network", "moonnet")
        assert result.exit_code == 2

    def test_keep_existing_key(self, invoke, config_path, initialized):
        """Should not replace the merchant key on re-run."""
        key = read_document(config_path)["config"]["privateKey"]

        result = invoke("init")

        assert result.exit_code == 0, result.output
        assert read_document(config_path)["config"]["privateKey"] == key

    def test_reset(self, invoke, config_path, initialized):
        """Should wipe stored UPI IDs on --reset --yes."""
        assert invoke("upi", "add", "shop@bank").exit_code == 0

        result = invoke("init", "--reset", "--yes")

        assert result.exit_code == 0, result.output
        assert read_document(config_path)["config"]["upiIds"] == []

    def test_reset_cancelled(self, invoke, config_path, initialized):
        """Should keep everything when the reset is not confirmed."""
        assert invoke("upi", "add", "shop@bank").exit_code == 0

        result = invoke("init", "--reset", input="n\n")

        assert "cancelled" in result.output
        assert read_document(config_path)["config"]["upiIds"] == ["shop@bank"]


class TestStatus:
    """Tests for p2m status."""

    def test_not_initialized(self, invoke):
        """Should point to init when no config exists."""
        result = invoke("status")
        assert result.exit_code == 0
        assert "Not initialized" in result.output

    def test_show_config_and_registry(self, invoke, registry, initialized):
        """Should print network, counts and registry stats."""
        registry.bind("other@bank", OTHER_MERCHANT)
        invoke("upi", "add", "shop@bank")

        result = invoke("status")

        assert result.exit_code == 0, result.output
        assert "Network: devnet" in result.output
        assert "UPI IDs: 1" in result.output
        assert "Registry: 2 merchants, 2 UPI IDs" in result.output


class TestUpi:
    """Tests for p2m upi add/remove/list."""

    def test_add(self, invoke, config_path, registry, initialized):
        """Should register remotely and persist locally."""
        result = invoke("upi", "add", "shop@bank")

        assert result.exit_code == 0, result.output
        assert "shop@bank registered" in result.output
        assert "explorer.aptoslabs.com/txn/0x" in result.output
        assert read_document(config_path)["config"]["upiIds"] == ["shop@bank"]
        assert registry._bindings["shop@bank"] == registry.merchant_address

    def test_add_invalid_format(self, invoke, initialized):
        """Should refuse malformed UPI IDs."""
        result = invoke("upi", "add", "not-a-upi-id")

        assert result.exit_code == 1
        assert "Invalid UPI ID format" in result.output

    def test_add_taken_remotely(self, invoke, config_path, registry, initialized):
        """Should fail without touching the config when another merchant holds it."""
        registry.bind("shop@bank", OTHER_MERCHANT)

        result = invoke("upi", "add", "shop@bank")

        assert result.exit_code == 1
        assert "already registered" in result.output
        assert read_document(config_path)["config"]["upiIds"] == []

    def test_local_duplicate_declined(self, invoke, config_path, registry, initialized):
        """Should ask before re-registering a locally known ID and stop on no."""
        store = LocalRegistryStore(config_path)
        store.add_identifier("stale@bank")
        store.save()

        result = invoke("upi", "add", "stale@bank", input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert "stale@bank" not in registry._bindings

    def test_local_duplicate_confirmed(self, invoke, config_path, registry, initialized):
        """Should register after confirmation."""
        store = LocalRegistryStore(config_path)
        store.add_identifier("stale@bank")
        store.save()

        result = invoke("upi", "add", "stale@bank", input="y\n")

        assert result.exit_code == 0, result.output
        assert "stale@bank" in registry._bindings
        assert read_document(config_path)["config"]["upiIds"] == ["stale@bank"]

    def test_persist_failure_points_to_sync(self, invoke, registry, initialized, monkeypatch):
        """Should report the transaction and suggest p2m sync."""
        def fail_replace(src, dst):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(os, "replace", fail_replace)

        result = invoke("upi", "add", "shop@bank")

        assert result.exit_code == 1
        assert "could not be saved" in result.output
        assert "p2m sync" in result.output
        assert "shop@bank" in registry._bindings

    def test_list(self, invoke, initialized):
        """Should list stored IDs with their wallets."""
        invoke("upi", "add", "shop@bank")
        invoke("upi", "add", "cafe@upi")
        invoke("generate", "shop@bank")

        result = invoke("upi", "list")

        assert result.exit_code == 0, result.output
        assert "shop@bank" in result.output
        assert "cafe@upi" in result.output

    def test_list_empty(self, invoke, initialized):
        """Should say so when nothing is stored."""
        result = invoke("upi", "list")
        assert "No UPI IDs found" in result.output

    def test_remove(self, invoke, config_path, registry, initialized):
        """Should remove remotely and locally together with the wallet."""
        invoke("upi", "add", "shop@bank")
        invoke("generate", "shop@bank")

        result = invoke("upi", "remove", "shop@bank", "--yes")

        assert result.exit_code == 0, result.output
        assert "shop@bank removed" in result.output
        document = read_document(config_path)
        assert document["config"]["upiIds"] == []
        assert document["escrowWallets"] == {}
        assert "shop@bank" not in registry._bindings

    def test_remove_not_owner(self, invoke, registry, initialized):
        """Should refuse to remove another merchant's UPI ID."""
        registry.bind("theirs@bank", OTHER_MERCHANT)

        result = invoke("upi", "remove", "theirs@bank", "--yes")

        assert result.exit_code == 1
        assert "owned by" in result.output
        assert "theirs@bank" in registry._bindings


class TestGenerate:
    """Tests for p2m generate."""

    def test_generate(self, invoke, config_path, initialized):
        """Should create and persist an escrow wallet."""
        invoke("upi", "add", "shop@bank")

        result = invoke("generate", "shop@bank")

        assert result.exit_code == 0, result.output
        wallet = read_document(config_path)["escrowWallets"]["shop@bank"]
        assert wallet["address"] in result.output
        assert wallet["privateKey"] not in result.output

    def test_generate_unknown(self, invoke, initialized):
        """Should fail for an unregistered UPI ID."""
        result = invoke("generate", "ghost@bank")

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_generate_twice_needs_force(self, invoke, config_path, initialized):
        """Should refuse to replace a wallet without --force."""
        invoke("upi", "add", "shop@bank")
        invoke("generate", "shop@bank")
        first = read_document(config_path)["escrowWallets"]["shop@bank"]["address"]

        refused = invoke("generate", "shop@bank")
        forced = invoke("generate", "shop@bank", "--force")

        assert refused.exit_code == 1
        assert "already exists" in refused.output
        assert forced.exit_code == 0
        assert read_document(config_path)["escrowWallets"]["shop@bank"]["address"] != first


class TestSync:
    """Tests for p2m sync."""

    def test_pull_remote_ids(self, invoke, config_path, registry, initialized):
        """Should add registry IDs missing locally."""
        registry.bind("remote@bank", registry.merchant_address)

        result = invoke("sync")

        assert result.exit_code == 0, result.output
        assert "added locally" in result.output
        config = read_document(config_path)["config"]
        assert config["upiIds"] == ["remote@bank"]
        assert config["lastSyncTimestamp"] > 0

    def test_in_sync(self, invoke, initialized):
        """Should report when nothing changed."""
        invoke("upi", "add", "shop@bank")

        result = invoke("sync")

        assert result.exit_code == 0, result.output
        assert "in sync" in result.output


class TestRegisterMerchant:
    """Tests for p2m register-merchant."""

    def test_register(self, invoke, config_path, initialized):
        """Should register and store the merchant profile."""
        result = invoke(
            "register-merchant",
            "--business-name", "Corner Shop",
            "--contact", "owner@example.com",
        )

        assert result.exit_code == 0, result.output
        assert "Merchant registered" in result.output
        info = read_document(config_path)["config"]["merchantInfo"]
        assert info["businessName"] == "Corner Shop"
        assert info["contactInfo"] == "owner@example.com"

    def test_validate(self, invoke, initialized):
        """Should reject a too-short business name."""
        result = invoke("register-merchant", "--business-name", "X", "--contact", "owner@example.com")

        assert result.exit_code == 1
        assert "Business name" in result.output


class TestExport:
    """Tests for p2m export."""

    def test_masked_by_default(self, invoke, initialized):
        """Should mask private keys unless asked."""
        invoke("upi", "add", "shop@bank")
        invoke("generate", "shop@bank")

        result = invoke("export")

        assert result.exit_code == 0, result.output
        document = json.loads(result.stdout)
        assert document["config"]["privateKey"] == "***MASKED***"
        assert document["escrowWallets"]["shop@bank"]["privateKey"] == "***MASKED***"

    def test_include_secrets_to_file(self, invoke, config_path, tmp_path, initialized):
        """Should write the full document to a private file."""
        output = tmp_path / "export.json"

        result = invoke("export", "--include-secrets", "--output", str(output))

        assert result.exit_code == 0, result.output
        assert json.loads(output.read_text()) == read_document(config_path)
        assert oct(os.stat(output).st_mode & 0o777) == oct(0o600)
