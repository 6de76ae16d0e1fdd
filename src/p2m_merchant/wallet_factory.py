"""
Escrow wallet generation.

Wallets are Aptos single-key Ed25519 accounts: the address is the
SHA3-256 of ``public_key || 0x00`` (the Ed25519 authentication scheme
byte). Keys and addresses are rendered as ``0x``-prefixed lowercase hex.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from nacl import encoding, signing
from nacl.exceptions import CryptoError

from .exceptions import KeyGenerationError, P2MValidationError
from .models import EscrowWallet

logger = logging.getLogger(__name__)

ED25519_SCHEME = b"\x00"


def derive_address(public_key: bytes) -> str:
    """Account address for an Ed25519 public key."""
    return "0x" + hashlib.sha3_256(public_key + ED25519_SCHEME).hexdigest()


def _hex(raw: bytes) -> str:
    return "0x" + raw.hex()


@dataclass(frozen=True)
class KeyPair:
    """Ed25519 key pair with its derived account address."""
    signing_key: signing.SigningKey

    @property
    def public_key_bytes(self) -> bytes:
        return self.signing_key.verify_key.encode()

    @property
    def public_key(self) -> str:
        return _hex(self.public_key_bytes)

    @property
    def private_key(self) -> str:
        return _hex(self.signing_key.encode())

    @property
    def address(self) -> str:
        return derive_address(self.public_key_bytes)

    def sign(self, message: bytes) -> str:
        """Detached signature over ``message`` as 0x-hex."""
        return _hex(self.signing_key.sign(message).signature)

    @classmethod
    def generate(cls) -> "KeyPair":
        try:
            return cls(signing.SigningKey.generate())
        except CryptoError as exc:
            raise KeyGenerationError(f"Key generation failed: {exc}") from exc

    @classmethod
    def from_private_key(cls, private_key: str) -> "KeyPair":
        """Rebuild a key pair from a 0x-hex (or ``ed25519-priv-0x``) seed."""
        value = private_key.strip()
        if value.startswith("ed25519-priv-"):
            value = value[len("ed25519-priv-"):]
        if value.startswith("0x"):
            value = value[2:]
        try:
            seed = encoding.HexEncoder.decode(value.encode())
            return cls(signing.SigningKey(seed))
        except (ValueError, TypeError, CryptoError) as exc:
            raise P2MValidationError(
                "Invalid private key format", field="private_key"
            ) from exc


def generate_key_pair() -> KeyPair:
    """Key-generation primitive."""
    return KeyPair.generate()


class EscrowWalletFactory:
    """
    Produces escrow wallets. Performs no I/O.

    Address uniqueness rests on the key generator's entropy; generation is
    never retried, a failure raises KeyGenerationError.
    """

    def __init__(
        self,
        key_generator: Callable[[], KeyPair] = generate_key_pair,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._key_generator = key_generator
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(self) -> EscrowWallet:
        key_pair = self._key_generator()
        wallet = EscrowWallet(
            address=key_pair.address,
            public_key=key_pair.public_key,
            private_key=key_pair.private_key,
            created_at=self._clock().isoformat(),
        )
        logger.debug("Generated escrow wallet %s", wallet.address)
        return wallet
