"""Logging configuration with secret masking and UPI ID context.

This module provides:
- Structured JSON logging for scripted use of the CLI
- An operation context (the UPI ID being worked on) attached to every record
- Masking of private keys and other secrets before anything is emitted
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

MASK_PATTERN = "***MASKED***"

SENSITIVE_FIELDS = frozenset({
    "private_key",
    "privateKey",
    "privatekey",
    "secret",
    "secret_key",
    "secretKey",
    "seed",
    "mnemonic",
    "password",
    "signature",
})

# Context variables for operation tracking
operation_id_var: ContextVar[Optional[str]] = ContextVar("operation_id", default=None)
upi_id_var: ContextVar[Optional[str]] = ContextVar("upi_id", default=None)

_RESERVED_ATTRS = frozenset({
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
    "operation_id",
    "upi_id",
})


# =============================================================================
# Sensitive Data Masking
# =============================================================================

def mask_value(value: str, show_chars: int = 6) -> str:
    """Abbreviate a long value, showing only its first and last characters."""
    if not value or len(value) <= show_chars * 2:
        return MASK_PATTERN
    return f"{value[:show_chars]}...{value[-show_chars:]}"


def is_sensitive_key(key: str) -> bool:
    key_lower = key.lower().replace("-", "_")
    return key in SENSITIVE_FIELDS or key_lower in SENSITIVE_FIELDS or any(
        marker in key_lower for marker in ("secret", "private", "password", "seed")
    )


def mask_sensitive_data(
    data: Any,
    additional_fields: Optional[Sequence[str]] = None,
    _depth: int = 0,
    _max_depth: int = 10,
) -> Any:
    """Recursively replace sensitive values in a data structure.

    Args:
        data: The data structure to mask (dict, list, or scalar)
        additional_fields: Additional field names to mask

    Returns:
        Copy of data with sensitive values masked
    """
    if _depth > _max_depth:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if isinstance(key, str) and (
                is_sensitive_key(key) or (additional_fields and key in additional_fields)
            ):
                result[key] = MASK_PATTERN
            else:
                result[key] = mask_sensitive_data(
                    value, additional_fields, _depth + 1, _max_depth
                )
        return result

    if isinstance(data, (list, tuple)):
        return type(data)(
            mask_sensitive_data(item, additional_fields, _depth + 1, _max_depth)
            for item in data
        )

    return data


# =============================================================================
# Filters & Formatters
# =============================================================================

class OperationContextFilter(logging.Filter):
    """Adds the current operation ID and UPI ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.operation_id = operation_id_var.get()
        record.upi_id = upi_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "operation_id", None):
            log_data["operation_id"] = record.operation_id
        if getattr(record, "upi_id", None):
            log_data["upi_id"] = record.upi_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        log_data.update(mask_sensitive_data(extras))

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "WARNING",
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging (True) or simple format (False)
        log_file: Optional file path for logging output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(upi_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(OperationContextFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(OperationContextFilter())
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(root_logger.level, logging.WARNING))


def generate_operation_id() -> str:
    return f"op_{uuid.uuid4().hex[:16]}"


class LogContext:
    """Context manager binding an operation (and optionally a UPI ID) to log records."""

    def __init__(self, upi_id: Optional[str] = None, operation_id: Optional[str] = None):
        self.upi_id = upi_id
        self.operation_id = operation_id or generate_operation_id()
        self._tokens: list = []

    def __enter__(self) -> "LogContext":
        self._tokens = [
            (operation_id_var, operation_id_var.set(self.operation_id)),
            (upi_id_var, upi_id_var.set(self.upi_id)),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []
