"""
near_client.tx.actions
======================

Action payloads carried by a NEAR transaction, plus small constructors.

Each action dataclass maps to one variant of the on-chain `Action` enum; the
Borsh variant index is the `TAG` class attribute (see `near_client.tx.encode`).

Examples
--------
    from near_client.tx import actions

    acts = [
        actions.transfer(10**24),
        actions.function_call("ft_transfer", {"receiver_id": "bob.testnet", "amount": "1"},
                              gas=actions.DEFAULT_FUNCTION_CALL_GAS, deposit=1),
    ]
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union

from ..wallet.keys import PublicKey

__all__ = [
    "DEFAULT_FUNCTION_CALL_GAS",
    "FunctionCallPermission",
    "FullAccessPermission",
    "AccessKey",
    "CreateAccount",
    "DeployContract",
    "FunctionCall",
    "Transfer",
    "Stake",
    "AddKey",
    "DeleteKey",
    "DeleteAccount",
    "Action",
    "create_account",
    "deploy_contract",
    "function_call",
    "transfer",
    "stake",
    "add_key",
    "delete_key",
    "delete_account",
    "full_access_key",
    "function_call_access_key",
    "stringify_json_or_bytes",
]

# 30 TGas
DEFAULT_FUNCTION_CALL_GAS = 30_000_000_000_000


# -----------------------------------------------------------------------------
# Access key permissions
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FunctionCallPermission:
    TAG = 0

    receiver_id: str
    method_names: Tuple[str, ...] = ()
    allowance: Optional[int] = None


@dataclass(frozen=True)
class FullAccessPermission:
    TAG = 1


@dataclass(frozen=True)
class AccessKey:
    nonce: int
    permission: Union[FunctionCallPermission, FullAccessPermission]


def full_access_key() -> AccessKey:
    return AccessKey(nonce=0, permission=FullAccessPermission())


def function_call_access_key(
    receiver_id: str, method_names: Sequence[str] = (), allowance: Optional[int] = None
) -> AccessKey:
    return AccessKey(
        nonce=0,
        permission=FunctionCallPermission(receiver_id, tuple(method_names), allowance),
    )


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateAccount:
    TAG = 0


@dataclass(frozen=True)
class DeployContract:
    TAG = 1

    code: bytes


@dataclass(frozen=True)
class FunctionCall:
    TAG = 2

    method_name: str
    args: bytes
    gas: int
    deposit: int


@dataclass(frozen=True)
class Transfer:
    TAG = 3

    deposit: int


@dataclass(frozen=True)
class Stake:
    TAG = 4

    stake: int
    public_key: PublicKey


@dataclass(frozen=True)
class AddKey:
    TAG = 5

    public_key: PublicKey
    access_key: AccessKey


@dataclass(frozen=True)
class DeleteKey:
    TAG = 6

    public_key: PublicKey


@dataclass(frozen=True)
class DeleteAccount:
    TAG = 7

    beneficiary_id: str


Action = Union[
    CreateAccount, DeployContract, FunctionCall, Transfer, Stake, AddKey, DeleteKey, DeleteAccount
]


# -----------------------------------------------------------------------------
# Constructors
# -----------------------------------------------------------------------------


def stringify_json_or_bytes(args: Any) -> bytes:
    """Raw bytes pass through; anything else is JSON-encoded."""
    if isinstance(args, (bytes, bytearray, memoryview)):
        return bytes(args)
    return json.dumps(args, separators=(",", ":")).encode("utf-8")


def create_account() -> CreateAccount:
    return CreateAccount()


def deploy_contract(code: bytes) -> DeployContract:
    return DeployContract(bytes(code))


def function_call(
    method_name: str,
    args: Union[Mapping[str, Any], bytes, None] = None,
    gas: int = DEFAULT_FUNCTION_CALL_GAS,
    deposit: int = 0,
    *,
    stringify: Callable[[Any], bytes] = stringify_json_or_bytes,
) -> FunctionCall:
    payload = stringify(args if args is not None else {})
    return FunctionCall(method_name, payload, int(gas), int(deposit))


def transfer(deposit: int) -> Transfer:
    return Transfer(int(deposit))


def stake(amount: int, public_key: Union[PublicKey, str]) -> Stake:
    return Stake(int(amount), PublicKey.from_value(public_key))


def add_key(public_key: Union[PublicKey, str], access_key: AccessKey) -> AddKey:
    return AddKey(PublicKey.from_value(public_key), access_key)


def delete_key(public_key: Union[PublicKey, str]) -> DeleteKey:
    return DeleteKey(PublicKey.from_value(public_key))


def delete_account(beneficiary_id: str) -> DeleteAccount:
    return DeleteAccount(beneficiary_id)
