"""
near_client.tx.build
====================

Transaction containers and the sign step.

    tx_hash, signed = await sign_transaction(
        "bob.testnet", nonce, [actions.transfer(1)], block_hash,
        signer, "alice.testnet", "testnet",
    )

The hash returned is sha256 over the Borsh-encoded transaction; it is what the
signer signs (as ``sha256(message)``) and what the node reports as the
transaction id (base58).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, Tuple, Union

from ..utils.encoding import b58decode, b58encode
from ..wallet.keys import PublicKey, Signature
from ..wallet.signer import Signer
from .encode import serialize_signed_transaction, serialize_transaction, transaction_hash

__all__ = ["Transaction", "SignedTransaction", "create_transaction", "sign_transaction"]


@dataclass(frozen=True)
class Transaction:
    signer_id: str
    public_key: PublicKey
    nonce: int
    receiver_id: str
    block_hash: bytes
    actions: Tuple[Any, ...]

    def encode(self) -> bytes:
        return serialize_transaction(self)

    def hash(self) -> bytes:
        return transaction_hash(self)


@dataclass(frozen=True)
class SignedTransaction:
    transaction: Transaction
    signature: Signature

    def encode(self) -> bytes:
        return serialize_signed_transaction(self)

    @property
    def hash(self) -> str:
        """base58 transaction id."""
        return b58encode(self.transaction.hash())


def create_transaction(
    signer_id: str,
    public_key: Union[PublicKey, str],
    receiver_id: str,
    nonce: int,
    actions: Sequence[Any],
    block_hash: Union[bytes, str],
) -> Transaction:
    if isinstance(block_hash, str):
        block_hash = b58decode(block_hash)
    if len(block_hash) != 32:
        raise ValueError(f"block hash must be 32 bytes, got {len(block_hash)}")
    return Transaction(
        signer_id=signer_id,
        public_key=PublicKey.from_value(public_key),
        nonce=int(nonce),
        receiver_id=receiver_id,
        block_hash=bytes(block_hash),
        actions=tuple(actions),
    )


async def sign_transaction(
    receiver_id: str,
    nonce: int,
    actions: Sequence[Any],
    block_hash: Union[bytes, str],
    signer: Signer,
    account_id: str,
    network_id: str,
) -> Tuple[bytes, SignedTransaction]:
    public_key = await signer.get_public_key(account_id, network_id)
    if public_key is None:
        raise ValueError(f"No public key for {account_id} in {network_id}")
    tx = create_transaction(account_id, public_key, receiver_id, nonce, actions, block_hash)
    signature = await signer.sign_message(tx.encode(), account_id, network_id)
    return tx.hash(), SignedTransaction(tx, signature)
