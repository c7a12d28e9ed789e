"""
Typed error classes for the NEAR Python client.

Every failure that reaches a caller of the RPC channel or the submission
engine is a `TypedError` carrying a machine-checkable `kind`. Callers branch
on `error.kind` (compare against `ErrorKind` members or plain strings) and can
still catch the base `NearClientError`.

Kinds are an open set: the client produces the members of `ErrorKind` itself,
while kinds taken from the node's structured error tree (e.g.
``NotEnoughBalance``, ``ExecutionError``) pass through unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Tuple

__all__ = [
    "NearClientError",
    "ErrorKind",
    "ErrorContext",
    "TypedError",
    "ArgumentError",
    "JsonRpcCode",
    "RETRYABLE_TRANSPORT_KINDS",
]


class NearClientError(Exception):
    """Base class for all client errors."""


class ErrorKind(str, Enum):
    KEY_NOT_FOUND = "KeyNotFound"
    INVALID_NONCE = "InvalidNonce"
    EXPIRED = "Expired"
    TIMEOUT = "TimeoutError"
    NETWORK = "NetworkError"
    RETRIES_EXCEEDED = "RetriesExceeded"
    UNTYPED = "UntypedError"
    ACCOUNT_DOES_NOT_EXIST = "AccountDoesNotExist"
    ACCESS_KEY_DOES_NOT_EXIST = "AccessKeyDoesNotExist"
    CODE_DOES_NOT_EXIST = "CodeDoesNotExist"

    def __str__(self) -> str:
        return self.value


# Transport-level kinds the RPC channel heals by itself.
RETRYABLE_TRANSPORT_KINDS = frozenset({ErrorKind.TIMEOUT.value, ErrorKind.NETWORK.value})


class JsonRpcCode(IntEnum):
    # JSON-RPC 2.0 reserved codes
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Server errors (implementation-defined range: -32099 to -32000)
    SERVER_ERROR = -32000


@dataclass(frozen=True)
class ErrorContext:
    """Transaction the error belongs to (base58 hash)."""

    transaction_hash: str


@dataclass(eq=False)
class TypedError(NearClientError):
    """
    Classified error with an inspectable `kind`.

    Fields:
      - message: human-readable description (leaf message for structured errors)
      - kind: error tag, e.g. "InvalidNonce", "RetriesExceeded", "ExecutionError"
      - context: transaction-hash context, attached by the submission engine
      - path: tag breadcrumb walked through a structured error tree
      - details: scalar fields collected on the way down (index, account_id, ...)
      - code: JSON-RPC error code when the error came from an `error` member
    """

    message: str
    kind: str = ErrorKind.UNTYPED.value
    context: Optional[ErrorContext] = None
    path: Tuple[str, ...] = ()
    details: Dict[str, Any] = field(default_factory=dict)
    code: Optional[int] = None

    def __post_init__(self) -> None:
        self.kind = str(self.kind)
        self.path = tuple(self.path)
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        where = ".".join(self.path)
        parts = [f"[{self.kind}]"]
        if where and where != self.kind:
            parts.append(f"at {where}")
        if "index" in self.details:
            parts.append(f"action #{self.details['index']}")
        if self.context is not None:
            parts.append(f"tx={self.context.transaction_hash}")
        return " ".join(parts) + f": {self.message}"

    def is_kind(self, *kinds: Any) -> bool:
        return self.kind in {str(k) for k in kinds}

    def with_context(self, transaction_hash: str) -> "TypedError":
        self.context = ErrorContext(transaction_hash)
        return self


class ArgumentError(NearClientError):
    """Raised when contract arguments are not a mapping or raw bytes."""

    def __init__(self, message: str = "Contract method calls expect named arguments wrapped in object, e.g. { argName1: argValue1, argName2: argValue2 }") -> None:
        super().__init__(message)
