"""
near_client.wallet.keys
=======================

Ed25519 key material in NEAR's textual form.

- `PublicKey`: ``ed25519:<base58 32 bytes>``
- `KeyPair`: ``ed25519:<base58 64 bytes>`` secret (seed || public key),
  the form stored in credential files
- `Signature`: raw 64-byte signature tagged with its key type

Cryptography is delegated to the `cryptography` package.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from ..utils.encoding import b58decode, b58encode

__all__ = ["KeyType", "PublicKey", "Signature", "KeyPair"]


class KeyType(IntEnum):
    ED25519 = 0


_KEY_TYPE_NAMES = {KeyType.ED25519: "ed25519"}
_KEY_TYPE_BY_NAME = {v: k for k, v in _KEY_TYPE_NAMES.items()}


def _split_key_string(encoded: str) -> tuple[KeyType, bytes]:
    parts = encoded.split(":")
    if len(parts) == 1:
        return KeyType.ED25519, b58decode(parts[0])
    if len(parts) == 2:
        name = parts[0].lower()
        if name not in _KEY_TYPE_BY_NAME:
            raise ValueError(f"Unknown key type {parts[0]!r}")
        return _KEY_TYPE_BY_NAME[name], b58decode(parts[1])
    raise ValueError("Invalid encoded key format, must be <curve>:<encoded key>")


@dataclass(frozen=True)
class PublicKey:
    key_type: KeyType
    data: bytes

    def __post_init__(self) -> None:
        if len(self.data) != 32:
            raise ValueError(f"ed25519 public key must be 32 bytes, got {len(self.data)}")

    @classmethod
    def from_string(cls, encoded: str) -> "PublicKey":
        key_type, data = _split_key_string(encoded)
        return cls(key_type, data)

    @classmethod
    def from_value(cls, value: "PublicKey | str") -> "PublicKey":
        return value if isinstance(value, PublicKey) else cls.from_string(value)

    def verify(self, message: bytes, signature: bytes) -> bool:
        try:
            Ed25519PublicKey.from_public_bytes(self.data).verify(signature, message)
            return True
        except InvalidSignature:
            return False

    def __str__(self) -> str:
        return f"{_KEY_TYPE_NAMES[self.key_type]}:{b58encode(self.data)}"


@dataclass(frozen=True)
class Signature:
    key_type: KeyType
    data: bytes


class KeyPair:
    """Ed25519 key pair."""

    __slots__ = ("_sk", "_public_key", "_secret")

    def __init__(self, seed: bytes) -> None:
        if len(seed) not in (32, 64):
            raise ValueError("ed25519 secret key must be a 32-byte seed or 64-byte expanded key")
        self._sk = Ed25519PrivateKey.from_private_bytes(bytes(seed[:32]))
        pk = self._sk.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        if len(seed) == 64 and seed[32:] != pk:
            raise ValueError("secret key does not match its embedded public key")
        self._public_key = PublicKey(KeyType.ED25519, pk)
        self._secret = bytes(seed[:32]) + pk

    @classmethod
    def from_random(cls) -> "KeyPair":
        sk = Ed25519PrivateKey.generate()
        seed = sk.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return cls(seed)

    @classmethod
    def from_string(cls, encoded: str) -> "KeyPair":
        key_type, data = _split_key_string(encoded)
        if key_type != KeyType.ED25519:  # pragma: no cover - only ed25519 is registered
            raise ValueError(f"Unsupported key type {key_type!r}")
        return cls(data)

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    @property
    def secret_key(self) -> str:
        return b58encode(self._secret)

    def sign(self, message: bytes) -> Signature:
        return Signature(KeyType.ED25519, self._sk.sign(bytes(message)))

    def verify(self, message: bytes, signature: bytes) -> bool:
        return self._public_key.verify(message, signature)

    def __str__(self) -> str:
        return f"ed25519:{self.secret_key}"

    def __repr__(self) -> str:
        return f"KeyPair({self._public_key})"
