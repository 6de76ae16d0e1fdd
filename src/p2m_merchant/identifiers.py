"""UPI ID format rules."""
from __future__ import annotations

import re

from .exceptions import InvalidIdentifierFormat

# localpart: letters, digits, ".", "_", "-"; provider: letters, digits, ".", "-".
# Neither part may start or end with a dot.
_LOCALPART = r"[A-Za-z0-9_\-](?:[A-Za-z0-9._\-]*[A-Za-z0-9_\-])?"
_PROVIDER = r"[A-Za-z0-9\-](?:[A-Za-z0-9.\-]*[A-Za-z0-9\-])?"

UPI_ID_PATTERN = re.compile(rf"^{_LOCALPART}@{_PROVIDER}$")


def is_valid_identifier(value: object) -> bool:
    """Return True when ``value`` is a well-formed ``localpart@provider`` UPI ID."""
    if not isinstance(value, str):
        return False
    return UPI_ID_PATTERN.fullmatch(value) is not None


def validate_identifier(value: str) -> str:
    """Return ``value`` unchanged or raise InvalidIdentifierFormat."""
    if not is_valid_identifier(value):
        raise InvalidIdentifierFormat(str(value))
    return value
