"""
near_client.tx.encode
=====================

Borsh serialization for NEAR transactions.

Only the subset of Borsh the transaction schema needs is implemented:

- u8 / u32 / u64 / u128, little-endian fixed width
- string: u32 length + UTF-8 bytes
- Vec<T>: u32 length + items
- Option<T>: u8 0|1 + value
- enums: u8 variant index + payload

API
---
- `serialize_transaction(tx)` -> bytes the signer hashes and signs
- `serialize_signed_transaction(stx)` -> bytes sent to `broadcast_tx_*`
- `transaction_hash(tx)` -> sha256 of the serialized transaction
- `BorshWriter` / `BorshEncodeError`
"""

from __future__ import annotations

import hashlib
import struct
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from ..wallet.keys import PublicKey, Signature
from . import actions as A

if TYPE_CHECKING:  # pragma: no cover
    from .build import SignedTransaction, Transaction

__all__ = [
    "BorshEncodeError",
    "BorshWriter",
    "serialize_action",
    "serialize_transaction",
    "serialize_signed_transaction",
    "transaction_hash",
]

_U64_MAX = (1 << 64) - 1
_U128_MAX = (1 << 128) - 1


class BorshEncodeError(ValueError):
    pass


class BorshWriter:
    __slots__ = ("_buf",)

    def __init__(self) -> None:
        self._buf = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def u8(self, v: int) -> "BorshWriter":
        if not 0 <= v <= 0xFF:
            raise BorshEncodeError(f"u8 out of range: {v}")
        self._buf.append(v)
        return self

    def u32(self, v: int) -> "BorshWriter":
        if not 0 <= v <= 0xFFFFFFFF:
            raise BorshEncodeError(f"u32 out of range: {v}")
        self._buf += struct.pack("<I", v)
        return self

    def u64(self, v: int) -> "BorshWriter":
        if not 0 <= v <= _U64_MAX:
            raise BorshEncodeError(f"u64 out of range: {v}")
        self._buf += struct.pack("<Q", v)
        return self

    def u128(self, v: int) -> "BorshWriter":
        if not 0 <= v <= _U128_MAX:
            raise BorshEncodeError(f"u128 out of range: {v}")
        self._buf += int(v).to_bytes(16, "little")
        return self

    def fixed(self, b: bytes, size: Optional[int] = None) -> "BorshWriter":
        if size is not None and len(b) != size:
            raise BorshEncodeError(f"expected {size} bytes, got {len(b)}")
        self._buf += b
        return self

    def blob(self, b: bytes) -> "BorshWriter":
        self.u32(len(b))
        self._buf += b
        return self

    def string(self, s: str) -> "BorshWriter":
        return self.blob(s.encode("utf-8"))

    def vec(self, items: Iterable[Any], each: Callable[["BorshWriter", Any], Any]) -> "BorshWriter":
        items = list(items)
        self.u32(len(items))
        for it in items:
            each(self, it)
        return self

    def option(self, v: Any, each: Callable[["BorshWriter", Any], Any]) -> "BorshWriter":
        if v is None:
            return self.u8(0)
        self.u8(1)
        each(self, v)
        return self

    def public_key(self, pk: PublicKey) -> "BorshWriter":
        return self.u8(int(pk.key_type)).fixed(pk.data, 32)

    def signature(self, sig: Signature) -> "BorshWriter":
        return self.u8(int(sig.key_type)).fixed(sig.data, 64)


# -----------------------------------------------------------------------------
# Schema
# -----------------------------------------------------------------------------


def _write_access_key(w: BorshWriter, ak: A.AccessKey) -> None:
    w.u64(ak.nonce)
    perm = ak.permission
    w.u8(perm.TAG)
    if isinstance(perm, A.FunctionCallPermission):
        w.option(perm.allowance, BorshWriter.u128)
        w.string(perm.receiver_id)
        w.vec(perm.method_names, BorshWriter.string)


def _write_action(w: BorshWriter, action: Any) -> None:
    tag = getattr(action, "TAG", None)
    if tag is None:
        raise BorshEncodeError(f"not an action: {action!r}")
    w.u8(tag)
    if isinstance(action, A.CreateAccount):
        return
    if isinstance(action, A.DeployContract):
        w.blob(action.code)
    elif isinstance(action, A.FunctionCall):
        w.string(action.method_name).blob(action.args).u64(action.gas).u128(action.deposit)
    elif isinstance(action, A.Transfer):
        w.u128(action.deposit)
    elif isinstance(action, A.Stake):
        w.u128(action.stake).public_key(action.public_key)
    elif isinstance(action, A.AddKey):
        w.public_key(action.public_key)
        _write_access_key(w, action.access_key)
    elif isinstance(action, A.DeleteKey):
        w.public_key(action.public_key)
    elif isinstance(action, A.DeleteAccount):
        w.string(action.beneficiary_id)
    else:
        raise BorshEncodeError(f"unsupported action type: {type(action).__name__}")


def _write_transaction(w: BorshWriter, tx: "Transaction") -> None:
    w.string(tx.signer_id)
    w.public_key(tx.public_key)
    w.u64(tx.nonce)
    w.string(tx.receiver_id)
    w.fixed(tx.block_hash, 32)
    w.vec(tx.actions, _write_action)


def serialize_action(action: Any) -> bytes:
    w = BorshWriter()
    _write_action(w, action)
    return w.getvalue()


def serialize_transaction(tx: "Transaction") -> bytes:
    w = BorshWriter()
    _write_transaction(w, tx)
    return w.getvalue()


def serialize_signed_transaction(stx: "SignedTransaction") -> bytes:
    w = BorshWriter()
    _write_transaction(w, stx.transaction)
    w.signature(stx.signature)
    return w.getvalue()


def transaction_hash(tx: "Transaction") -> bytes:
    """sha256 of the Borsh-encoded transaction; its base58 form is the tx id."""
    return hashlib.sha256(serialize_transaction(tx)).digest()
