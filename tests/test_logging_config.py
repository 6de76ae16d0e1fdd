"""
Tests for logging configuration and secret masking
"""
import json
import logging

import pytest

from p2m_merchant.logging_config import (
    MASK_PATTERN,
    LogContext,
    OperationContextFilter,
    StructuredFormatter,
    is_sensitive_key,
    mask_sensitive_data,
    mask_value,
    operation_id_var,
    setup_logging,
    upi_id_var,
)


def make_record(msg="hello", **extra):
    record = logging.LogRecord(
        name="p2m_merchant.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestMasking:
    """Tests for sensitive data masking."""

    @pytest.mark.parametrize(
        "key", ["privateKey", "private_key", "secret", "api-secret", "seed_phrase", "password"]
    )
    def test_sensitive_keys(self, key):
        """Should recognise secret-bearing keys."""
        assert is_sensitive_key(key)

    @pytest.mark.parametrize("key", ["publicKey", "address", "upi_id", "tx_ref"])
    def test_non_sensitive_keys(self, key):
        """Should leave public fields alone."""
        assert not is_sensitive_key(key)

    def test_mask_nested(self):
        """Should mask secrets at any depth and keep the input intact."""
        data = {
            "config": {"network": "devnet", "privateKey": "0xsecret"},
            "escrowWallets": {
                "shop@bank": {"address": "0xabc", "privateKey": "0xwallet"},
            },
            "items": [{"secret": "s"}, "plain"],
        }

        masked = mask_sensitive_data(data)

        assert masked["config"] == {"network": "devnet", "privateKey": MASK_PATTERN}
        assert masked["escrowWallets"]["shop@bank"] == {"address": "0xabc", "privateKey": MASK_PATTERN}
        assert masked["items"] == [{"secret": MASK_PATTERN}, "plain"]
        assert data["config"]["privateKey"] == "0xsecret"

    def test_additional_fields(self):
        """Should mask extra field names on request."""
        assert mask_sensitive_data({"contact": "x"}, additional_fields=["contact"]) == {
            "contact": MASK_PATTERN
        }

    def test_mask_value(self):
        """Should abbreviate long values and fully mask short ones."""
        assert mask_value("0x1234567890abcdef1234") == "0x1234...ef1234"
        assert mask_value("short") == MASK_PATTERN
        assert mask_value("") == MASK_PATTERN


class TestStructuredFormatter:
    """Tests for the JSON formatter."""

    def test_emit_json_with_masked_extras(self):
        """Should render a JSON line with extras masked."""
        record = make_record(tx_ref="0xTX1", private_key="0xsecret")
        record.upi_id = "shop@bank"
        record.operation_id = "op_1"

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "p2m_merchant.test"
        assert payload["upi_id"] == "shop@bank"
        assert payload["operation_id"] == "op_1"
        assert payload["tx_ref"] == "0xTX1"
        assert payload["private_key"] == MASK_PATTERN


class TestLogContext:
    """Tests for LogContext."""

    def test_bind_and_restore(self):
        """Should set context variables inside the block and reset them after."""
        assert upi_id_var.get() is None

        with LogContext(upi_id="shop@bank") as ctx:
            assert upi_id_var.get() == "shop@bank"
            assert operation_id_var.get() == ctx.operation_id
            assert ctx.operation_id.startswith("op_")

        assert upi_id_var.get() is None
        assert operation_id_var.get() is None

    def test_nested(self):
        """Should restore the outer context after a nested block."""
        with LogContext(upi_id="outer@bank"):
            with LogContext(upi_id="inner@bank"):
                assert upi_id_var.get() == "inner@bank"
            assert upi_id_var.get() == "outer@bank"

    def test_filter_attaches_context(self):
        """Should copy the context onto records."""
        record = make_record()
        with LogContext(upi_id="shop@bank", operation_id="op_fixed"):
            assert OperationContextFilter().filter(record)

        assert record.upi_id == "shop@bank"
        assert record.operation_id == "op_fixed"


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_configure_root(self):
        """Should install one stderr handler at the requested level."""
        setup_logging(level="debug")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_format(self, tmp_path):
        """Should use the structured formatter and write to the log file."""
        log_file = tmp_path / "p2m.log"
        setup_logging(level="INFO", json_format=True, log_file=str(log_file))

        root = logging.getLogger()
        assert all(isinstance(h.formatter, StructuredFormatter) for h in root.handlers)

        logging.getLogger("p2m_merchant.test").info("written", extra={"tx_ref": "0xTX1"})
        for handler in root.handlers:
            handler.flush()

        line = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert line["message"] == "written"
        assert line["tx_ref"] == "0xTX1"
