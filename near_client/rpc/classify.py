"""
near_client.rpc.classify
========================

Turns raw node error payloads into `TypedError` values.

The node has reported failures in three shapes over time:

1. Legacy flat objects::

       {"error_message": "...", "error_type": "InvalidNonce"}

2. Structured tagged trees, where each level is keyed by a CamelCase tag and
   the leaf carries either a free-text message or a map of fields::

       {"TxExecutionError": {"InvalidTxError": {"InvalidNonce":
           {"tx_nonce": 5, "ak_nonce": 6}}}}
       {"index": 0, "kind": {"FunctionCallError": {"ExecutionError": "boom"}}}
       {"InvalidTxError": "Expired"}

3. Opaque strings (query errors, `error.data` on older nodes)::

       "access key ed25519:... does not exist while viewing"

`classify` accepts any of these and never raises. Deciding whether a kind is
retried or raised is left to the RPC channel and the submission engine.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import ErrorKind, TypedError

__all__ = [
    "MAX_ERROR_DEPTH",
    "classify",
    "classify_rpc_error",
    "classify_query_error",
    "error_kind_from_message",
    "format_error_message",
    "is_legacy_error",
]

# Deeper trees are treated as malformed input.
MAX_ERROR_DEPTH = 32

_TAG_RE = re.compile(r"^[A-Z][A-Za-z0-9_]*$")

# Fields that locate an error inside a transaction (action index, account).
_BREADCRUMB_FIELDS = ("index", "account_id", "receiver_id", "signer_id", "predecessor_id")

# -----------------------------------------------------------------------------
# Message templates for the kinds a caller is most likely to display
# -----------------------------------------------------------------------------

_MESSAGES: Dict[str, str] = {
    "InvalidNonce": "Transaction nonce {tx_nonce} must be larger than nonce of the used access key {ak_nonce}",
    "Expired": "Transaction has expired",
    "InvalidSignature": "Transaction is not signed with the given public key",
    "InvalidSignerId": "Invalid signer account ID {signer_id} according to requirements",
    "InvalidReceiverId": "Invalid receiver account ID {receiver_id} according to requirements",
    "SignerDoesNotExist": "Signer {signer_id} does not exist",
    "NotEnoughBalance": "Sender {signer_id} does not have enough balance {balance} for operation costing {cost}",
    "LackBalanceForState": "The account {account_id} wouldn't have enough balance to cover storage, required to have {amount}",
    "AccountDoesNotExist": "Can't complete the action because account {account_id} doesn't exist",
    "AccountAlreadyExists": "Can't create a new account {account_id}, because it already exists",
    "AccessKeyNotFound": "Signer \"{account_id}\" doesn't have access key with the given public_key {public_key}",
    "AccessKeyDoesNotExist": "Access key {public_key} does not exist for account {account_id}",
    "CodeDoesNotExist": "Cannot find contract code for account {account_id}",
    "MethodNotFound": "Contract method is not found",
    "ActorNoPermission": "Actor {actor_id} doesn't have permission to account {account_id} to complete the action",
    "DeleteKeyDoesNotExist": "Account {account_id} tries to remove an access key that doesn't exist",
    "AddKeyAlreadyExists": "The public key {public_key} is already used for an existing access key",
    "TriesToUnstake": "Account {account_id} is not yet staked, but tries to unstake",
    "TriesToStake": "Account {account_id} tries to stake {stake}, but has staked {locked} and only has {balance}",
    "RetriesExceeded": "Exceeded the retry budget",
    "TimeoutError": "Request timed out",
}

# Opaque-string patterns, checked in order.
_MESSAGE_PATTERNS: Tuple[Tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^account .*? does not exist while viewing$"), ErrorKind.ACCOUNT_DOES_NOT_EXIST.value),
    (re.compile(r"^Account .*? doesn't exist$"), ErrorKind.ACCOUNT_DOES_NOT_EXIST.value),
    (re.compile(r"^access key .*? does not exist while viewing$"), ErrorKind.ACCESS_KEY_DOES_NOT_EXIST.value),
    (
        re.compile(r"wasm execution failed with error: FunctionCallError\(CompilationError\(CodeDoesNotExist"),
        ErrorKind.CODE_DOES_NOT_EXIST.value,
    ),
    (
        re.compile(r"Transaction nonce \d+ must be larger than nonce of the used access key \d+"),
        ErrorKind.INVALID_NONCE.value,
    ),
)

# Names recognized when reverse-matching an opaque message.
_KNOWN_KINDS: Tuple[str, ...] = tuple(
    sorted({*_MESSAGES, *(k.value for k in ErrorKind)} - {ErrorKind.UNTYPED.value}, key=len, reverse=True)
)


class _SafeDict(dict):
    def __missing__(self, key: str) -> str:
        return f"{{{key}}}"


def format_error_message(kind: str, fields: Mapping[str, Any]) -> Optional[str]:
    """
    Fill the message template for `kind` from `fields`.

    Returns None when no template is known. Placeholders without a value are
    left in place rather than failing.
    """
    template = _MESSAGES.get(kind)
    if template is None:
        return None
    values = _SafeDict({k: _render(v) for k, v in fields.items()})
    return template.format_map(values)


def _render(v: Any) -> str:
    if isinstance(v, (dict, list)):
        return json.dumps(v, separators=(",", ":"), sort_keys=True)
    return str(v)


def _is_tag(s: Any) -> bool:
    return isinstance(s, str) and bool(_TAG_RE.match(s))


def is_legacy_error(payload: Any) -> bool:
    return (
        isinstance(payload, Mapping)
        and isinstance(payload.get("error_message"), str)
        and isinstance(payload.get("error_type"), str)
    )


# -----------------------------------------------------------------------------
# Opaque strings
# -----------------------------------------------------------------------------


def error_kind_from_message(message: str) -> str:
    """Map a free-text node message to a kind, or "UntypedError"."""
    for pattern, kind in _MESSAGE_PATTERNS:
        if pattern.search(message):
            return kind
    return ErrorKind.UNTYPED.value


def _classify_string(message: str) -> TypedError:
    if "Timeout" in message or "timed out" in message:
        return TypedError(message, ErrorKind.TIMEOUT)
    kind = error_kind_from_message(message)
    if kind == ErrorKind.UNTYPED.value:
        for name in _KNOWN_KINDS:
            if re.search(rf"\b{re.escape(name)}\b", message):
                kind = name
                break
    return TypedError(message, kind)


# -----------------------------------------------------------------------------
# Structured trees
# -----------------------------------------------------------------------------


def _leaf(path: List[str], details: Dict[str, Any], fields: Dict[str, Any]) -> TypedError:
    kind = path[-1] if path else ErrorKind.UNTYPED.value
    merged = {**details, **fields}
    message = format_error_message(kind, merged)
    if message is None:
        message = _render(fields) if fields else kind
    return TypedError(message, kind, path=tuple(path), details=merged)


def _descend(node: Any, path: List[str], details: Dict[str, Any], depth: int) -> TypedError:
    if depth > MAX_ERROR_DEPTH:
        return TypedError(
            f"Malformed error payload: nesting exceeds {MAX_ERROR_DEPTH} levels at {'.'.join(path) or '<root>'}",
            ErrorKind.UNTYPED,
            path=tuple(path),
            details=dict(details),
        )

    if isinstance(node, str):
        if _is_tag(node):
            # Unit variant such as "Expired"
            path = path + [node]
            return _leaf(path, details, {})
        if path:
            return TypedError(node, path[-1], path=tuple(path), details=dict(details))
        return _classify_string(node)

    if not isinstance(node, Mapping):
        if path:
            return _leaf(path, details, {} if node is None else {"value": node})
        return TypedError(f"Unrecognized error payload: {node!r}", ErrorKind.UNTYPED)

    fields: Dict[str, Any] = {}
    for key, value in node.items():
        if key == "kind" or _is_tag(key):
            continue
        if isinstance(value, Mapping):
            continue
        fields[key] = value
        if key in _BREADCRUMB_FIELDS:
            details[key] = value

    kind_node = node.get("kind")
    if isinstance(kind_node, Mapping) or _is_tag(kind_node):
        return _descend(kind_node, path, details, depth + 1)

    for key, value in node.items():
        if not _is_tag(key):
            continue
        next_path = path + [key]
        if isinstance(value, str) and not _is_tag(value):
            # Free-text leaf: {"ExecutionError": "Smart contract panicked: ..."}
            return TypedError(value, key, path=tuple(next_path), details={**details, **fields})
        if isinstance(value, (Mapping, str)):
            return _descend(value, next_path, details, depth + 1)
        return _leaf(next_path, details, {} if value is None else {"value": value})

    return _leaf(path, details, fields)


# -----------------------------------------------------------------------------
# Public entry points
# -----------------------------------------------------------------------------


def classify(payload: Any) -> TypedError:
    """
    Classify any error payload into a `TypedError`. Never raises.

    >>> classify({"error_message": "m", "error_type": "T"}).kind
    'T'
    >>> e = classify({"index": 2, "ActionError": {"kind": {"FunctionCallError": {"ExecutionError": "boom"}}}})
    >>> (e.kind, e.message, e.path)
    ('ExecutionError', 'boom', ('ActionError', 'FunctionCallError', 'ExecutionError'))
    """
    try:
        if is_legacy_error(payload):
            return TypedError(payload["error_message"], payload["error_type"])
        if isinstance(payload, str):
            return _classify_string(payload)
        return _descend(payload, [], {}, 0)
    except Exception as e:  # noqa: BLE001 - the classifier is total by contract
        return TypedError(f"Unclassifiable error payload ({type(e).__name__}): {payload!r}", ErrorKind.UNTYPED)


def classify_rpc_error(error_obj: Any, *, method: Optional[str] = None) -> TypedError:
    """
    Classify the `error` member of a JSON-RPC response.

    `error_obj` should resemble ``{"code": int, "message": str, "data": any?}``.
    """
    if not isinstance(error_obj, Mapping):
        return classify(error_obj)

    code = error_obj.get("code")
    data = error_obj.get("data")
    if isinstance(data, Mapping):
        err = classify(data)
    else:
        message = f"[{code}] {error_obj.get('message', 'Unknown JSON-RPC error')}: {data}"
        if data == "Timeout" or "Timeout error" in message or "query has timed out" in message:
            err = TypedError(message, ErrorKind.TIMEOUT)
        else:
            kind = _classify_string(data).kind if isinstance(data, str) else ErrorKind.UNTYPED.value
            err = TypedError(message, kind)

    if isinstance(code, int):
        err.code = code
    if method is not None:
        err.details.setdefault("method", method)
    return err


def classify_query_error(result: Mapping[str, Any], request: Any = None) -> TypedError:
    """
    Classify a `query` result that reports failure inline as ``{"error": "..."}``.
    """
    raw = str(result.get("error"))
    kind = error_kind_from_message(raw)
    message = f"Querying {request} failed: {raw}." if request is not None else raw
    return TypedError(message, kind, details={"error": raw})
