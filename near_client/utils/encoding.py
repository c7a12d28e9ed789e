from __future__ import annotations

import base64
from typing import Union

import base58

BytesLike = Union[bytes, bytearray, memoryview]


def b58encode(data: BytesLike) -> str:
    """Bytes -> base58 string (Bitcoin alphabet, as used for NEAR keys and hashes)."""
    return base58.b58encode(bytes(data)).decode("ascii")


def b58decode(s: str) -> bytes:
    """
    base58 string -> bytes.

    Raises:
      ValueError on characters outside the alphabet.
    """
    if not isinstance(s, str):
        raise TypeError("b58decode expects a string")
    return base58.b58decode(s)


def b64encode(data: BytesLike) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def b64decode(s: Union[str, BytesLike]) -> bytes:
    return base64.b64decode(s)
