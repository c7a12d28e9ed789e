"""
near_client.wallet.signer
=========================

The signing capability the submission engine depends on.

Any object with the two async methods of `Signer` works: an in-memory key
store, a file key store, an HSM bridge or a remote wallet. The engine never
touches key material directly.

`InMemorySigner` signs ``sha256(message)`` with the account's Ed25519 key,
which is what the node verifies for a Borsh-encoded transaction.
"""

from __future__ import annotations

import hashlib
from typing import Optional, Protocol, runtime_checkable

from .keys import KeyPair, PublicKey, Signature
from .keystore import InMemoryKeyStore, KeyStore

__all__ = ["Signer", "InMemorySigner"]


@runtime_checkable
class Signer(Protocol):
    async def get_public_key(self, account_id: str, network_id: str) -> Optional[PublicKey]: ...

    async def sign_message(self, message: bytes, account_id: str, network_id: str) -> Signature: ...


class InMemorySigner:
    """Signs with keys held by a `KeyStore`."""

    def __init__(self, key_store: KeyStore) -> None:
        self.key_store = key_store

    @classmethod
    async def from_key_pair(cls, network_id: str, account_id: str, key_pair: KeyPair) -> "InMemorySigner":
        """Single-account signer, useful for temporary keys."""
        key_store = InMemoryKeyStore()
        await key_store.set_key(network_id, account_id, key_pair)
        return cls(key_store)

    async def create_key(self, account_id: str, network_id: str) -> PublicKey:
        key_pair = KeyPair.from_random()
        await self.key_store.set_key(network_id, account_id, key_pair)
        return key_pair.public_key

    async def get_public_key(self, account_id: str, network_id: str) -> Optional[PublicKey]:
        key_pair = await self.key_store.get_key(network_id, account_id)
        if key_pair is None:
            return None
        return key_pair.public_key

    async def sign_message(self, message: bytes, account_id: str, network_id: str) -> Signature:
        if not account_id:
            raise ValueError("InMemorySigner requires provided account id")
        key_pair = await self.key_store.get_key(network_id, account_id)
        if key_pair is None:
            raise ValueError(f"Key for {account_id} not found in {network_id}")
        return key_pair.sign(hashlib.sha256(message).digest())

    def __str__(self) -> str:
        return f"InMemorySigner({self.key_store})"
