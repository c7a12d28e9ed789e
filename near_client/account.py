"""
near_client.account
===================

`Account` signs and submits transactions for one account id and exposes the
common account/contract reads.

Submission
----------
`sign_and_send_transaction` runs one bounded backoff loop per call. Each
attempt resolves the access key (cached), fetches a final block hash, takes
the next nonce from the shared `AccessKeyCache`, signs and broadcasts.

- ``InvalidNonce``: the cached key is dropped and the attempt is retried with
  a freshly fetched nonce.
- ``Expired``: the attempt is retried with a new block hash. The cached key
  stays.
- any other classified error is raised, tagged with the transaction hash.

Transport timeouts never reach this loop; the RPC channel retries those on
its own.

Example
-------
    conn = Connection.from_client_config(ClientConfig.from_env())
    alice = Account(conn, "alice.testnet")
    outcome = await alice.send_money("bob.testnet", 10**24)
    assert outcome.succeeded
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .access_keys import AccessKeyCache, AccessKeyInfo
from .config import ClientConfig
from .connection import Connection
from .errors import ArgumentError, ErrorKind, TypedError
from .logging import logs_enabled, scope
from .rpc.classify import is_legacy_error
from .tx import actions as A
from .tx.build import SignedTransaction, sign_transaction
from .tx.send import Outcome, emit_receipt_reports, flatten_receipt_reports, parse_result_error
from .utils.encoding import b58decode, b58encode, b64decode, b64encode
from .utils.retry import RETRY, exponential_backoff
from .wallet.keys import PublicKey

log = logging.getLogger(__name__)

__all__ = [
    "Account",
    "SignAndSendOptions",
    "FunctionCallOptions",
    "validate_args",
    "parse_json_from_raw_response",
]

_OPTIMISTIC = {"finality": "optimistic"}


@dataclass(frozen=True)
class SignAndSendOptions:
    receiver_id: str
    actions: Sequence[Any]
    # Wallet redirect fields, carried untouched for wallet-backed signers
    wallet_meta: Optional[str] = None
    wallet_callback_url: Optional[str] = None
    return_error: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "actions", tuple(self.actions))


@dataclass(frozen=True)
class FunctionCallOptions:
    contract_id: str
    method_name: str
    args: Any = field(default_factory=dict)
    gas: int = A.DEFAULT_FUNCTION_CALL_GAS
    attached_deposit: int = 0
    wallet_meta: Optional[str] = None
    wallet_callback_url: Optional[str] = None
    stringify: Callable[[Any], bytes] = A.stringify_json_or_bytes


def validate_args(args: Any) -> None:
    """Contract arguments must be raw bytes or a mapping of named arguments."""
    if isinstance(args, (bytes, bytearray, memoryview)):
        return
    if not isinstance(args, Mapping):
        raise ArgumentError()


def parse_json_from_raw_response(response: bytes) -> Any:
    return json.loads(bytes(response).decode("utf-8"))


class Account:
    def __init__(
        self,
        connection: Connection,
        account_id: str,
        *,
        access_keys: Optional[AccessKeyCache] = None,
        config: Optional[ClientConfig] = None,
    ) -> None:
        self.connection = connection
        self.account_id = account_id
        self.config = config or connection.config or ClientConfig()
        self.access_keys = access_keys if access_keys is not None else AccessKeyCache(connection.provider)

    @property
    def network_id(self) -> str:
        return self.connection.network_id

    def __repr__(self) -> str:
        return f"Account({self.account_id!r}, network_id={self.network_id!r})"

    # ------------------------------------------------------------------
    # Signing & submission
    # ------------------------------------------------------------------

    async def find_access_key(self, receiver_id: Optional[str] = None, actions: Sequence[Any] = ()) -> Optional[AccessKeyInfo]:
        # receiver/actions are unused by the cache; wallet-backed signers may pick keys by them
        return await self.access_keys.resolve(self.account_id, self.connection.signer, self.network_id)

    async def _require_access_key(self, receiver_id: str, actions: Sequence[Any]) -> AccessKeyInfo:
        info = await self.find_access_key(receiver_id, actions)
        if info is None:
            raise TypedError(
                f"Can not sign transactions for account {self.account_id} on network {self.network_id}, "
                f"no matching key pair found in {self.connection.signer}.",
                ErrorKind.KEY_NOT_FOUND,
            )
        return info

    async def sign_transaction(self, receiver_id: str, actions: Sequence[Any]) -> tuple[bytes, SignedTransaction]:
        info = await self._require_access_key(receiver_id, actions)

        block = await self.connection.provider.block({"finality": "final"})
        block_hash = b58decode(block["header"]["hash"])
        try:
            nonce = self.access_keys.next_nonce(self.account_id, info.public_key)
        except KeyError:
            # Dropped by a concurrent InvalidNonce while the block was fetched
            info = await self._require_access_key(receiver_id, actions)
            nonce = self.access_keys.next_nonce(self.account_id, info.public_key)
        return await sign_transaction(
            receiver_id,
            nonce,
            actions,
            block_hash,
            self.connection.signer,
            self.account_id,
            self.network_id,
        )

    async def sign_and_send_transaction(self, options: SignAndSendOptions) -> Outcome:
        receiver_id = options.receiver_id

        async def attempt() -> Any:
            tx_hash, signed = await self.sign_transaction(receiver_id, options.actions)
            hash_b58 = b58encode(tx_hash)
            try:
                return await self.connection.provider.send_transaction(signed)
            except TypedError as e:
                if e.is_kind(ErrorKind.INVALID_NONCE):
                    if logs_enabled():
                        log.warning("Retrying transaction %s:%s with new nonce.", receiver_id, hash_b58)
                    self.access_keys.invalidate(self.account_id, signed.transaction.public_key)
                    return RETRY
                if e.is_kind(ErrorKind.EXPIRED):
                    if logs_enabled():
                        log.warning("Retrying transaction %s:%s due to expired block hash", receiver_id, hash_b58)
                    return RETRY
                raise e.with_context(hash_b58)

        cfg = self.config
        with scope(account_id=self.account_id, receiver_id=receiver_id, network_id=self.network_id):
            result = await exponential_backoff(
                cfg.nonce_retry_wait,
                cfg.nonce_retry_attempts,
                cfg.nonce_retry_backoff,
                attempt,
            )
            if result is RETRY:
                raise TypedError(
                    "nonce retries exceeded for transaction. This usually means there are too many "
                    "parallel requests with the same access key.",
                    ErrorKind.RETRIES_EXCEEDED,
                )

            reports = flatten_receipt_reports(result)
            emit_receipt_reports(receiver_id, reports)

        outcome = Outcome.from_json(result, reports)
        failure = outcome.failure
        if failure is not None and not options.return_error:
            if is_legacy_error(failure):
                raise TypedError(
                    f"Transaction {outcome.transaction_hash} failed. {failure['error_message']}",
                    failure["error_type"],
                )
            raise parse_result_error(result)
        return outcome

    # ------------------------------------------------------------------
    # Convenience operations
    # ------------------------------------------------------------------

    async def send_money(self, receiver_id: str, amount: int) -> Outcome:
        return await self.sign_and_send_transaction(SignAndSendOptions(receiver_id, [A.transfer(amount)]))

    async def create_account(self, new_account_id: str, public_key: Union[PublicKey, str], amount: int) -> Outcome:
        return await self.sign_and_send_transaction(
            SignAndSendOptions(
                new_account_id,
                [A.create_account(), A.transfer(amount), A.add_key(public_key, A.full_access_key())],
            )
        )

    async def create_and_deploy_contract(
        self, contract_id: str, public_key: Union[PublicKey, str], code: bytes, amount: int
    ) -> "Account":
        await self.sign_and_send_transaction(
            SignAndSendOptions(
                contract_id,
                [
                    A.create_account(),
                    A.transfer(amount),
                    A.add_key(public_key, A.full_access_key()),
                    A.deploy_contract(code),
                ],
            )
        )
        return Account(self.connection, contract_id, access_keys=self.access_keys, config=self.config)

    async def delete_account(self, beneficiary_id: str) -> Outcome:
        if logs_enabled():
            log.warning(
                "Deleting an account does not automatically transfer NFTs and FTs to the beneficiary "
                "address. Ensure to transfer assets before deleting."
            )
        return await self.sign_and_send_transaction(
            SignAndSendOptions(self.account_id, [A.delete_account(beneficiary_id)])
        )

    async def deploy_contract(self, code: bytes) -> Outcome:
        return await self.sign_and_send_transaction(SignAndSendOptions(self.account_id, [A.deploy_contract(code)]))

    async def function_call(self, opts: FunctionCallOptions) -> Outcome:
        validate_args(opts.args)
        action = A.function_call(
            opts.method_name, opts.args, opts.gas, opts.attached_deposit, stringify=opts.stringify
        )
        return await self.sign_and_send_transaction(
            SignAndSendOptions(
                opts.contract_id,
                [action],
                wallet_meta=opts.wallet_meta,
                wallet_callback_url=opts.wallet_callback_url,
            )
        )

    async def add_key(
        self,
        public_key: Union[PublicKey, str],
        contract_id: Optional[str] = None,
        method_names: Optional[Sequence[str]] = None,
        amount: Optional[int] = None,
    ) -> Outcome:
        """Full-access key without `contract_id`, else a function-call key limited to it."""
        if contract_id is None:
            access_key = A.full_access_key()
        else:
            access_key = A.function_call_access_key(contract_id, method_names or (), amount)
        return await self.sign_and_send_transaction(
            SignAndSendOptions(self.account_id, [A.add_key(public_key, access_key)])
        )

    async def delete_key(self, public_key: Union[PublicKey, str]) -> Outcome:
        return await self.sign_and_send_transaction(SignAndSendOptions(self.account_id, [A.delete_key(public_key)]))

    async def stake(self, public_key: Union[PublicKey, str], amount: int) -> Outcome:
        return await self.sign_and_send_transaction(
            SignAndSendOptions(self.account_id, [A.stake(amount, public_key)])
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def state(self) -> Dict[str, Any]:
        return await self.connection.provider.query(
            {"request_type": "view_account", "account_id": self.account_id, **_OPTIMISTIC}
        )

    async def view_function(
        self,
        contract_id: str,
        method_name: str,
        args: Any = None,
        *,
        parse: Optional[Callable[[bytes], Any]] = parse_json_from_raw_response,
        stringify: Callable[[Any], bytes] = A.stringify_json_or_bytes,
        block_query: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        args = {} if args is None else args
        validate_args(args)
        result = await self.connection.provider.query(
            {
                "request_type": "call_function",
                "account_id": contract_id,
                "method_name": method_name,
                "args_base64": b64encode(stringify(args)),
                **dict(block_query or _OPTIMISTIC),
            }
        )
        logs = result.get("logs") or []
        if logs and logs_enabled():
            for line in logs:
                log.info("Log [%s]: %s", contract_id, line)
        raw = result.get("result")
        if not raw:
            return None
        data = bytes(raw)
        return parse(data) if parse is not None else data

    async def view_state(
        self, prefix: Union[str, bytes] = b"", block_query: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, bytes]]:
        prefix_bytes = prefix.encode("utf-8") if isinstance(prefix, str) else bytes(prefix)
        result = await self.connection.provider.query(
            {
                "request_type": "view_state",
                "account_id": self.account_id,
                "prefix_base64": b64encode(prefix_bytes),
                **dict(block_query or _OPTIMISTIC),
            }
        )
        return [{"key": b64decode(v["key"]), "value": b64decode(v["value"])} for v in result.get("values") or []]

    async def get_access_keys(self) -> List[Dict[str, Any]]:
        response = await self.connection.provider.query(
            {"request_type": "view_access_key_list", "account_id": self.account_id, **_OPTIMISTIC}
        )
        if isinstance(response, list):
            return response
        return list(response.get("keys") or [])

    async def get_account_details(self) -> Dict[str, Any]:
        """Apps (contracts) this account has authorized with function-call keys."""
        keys = await self.get_access_keys()
        authorized_apps = []
        for item in keys:
            perm = (item.get("access_key") or {}).get("permission")
            if isinstance(perm, Mapping) and "FunctionCall" in perm:
                fc = perm["FunctionCall"]
                authorized_apps.append(
                    {
                        "contract_id": fc.get("receiver_id"),
                        "amount": fc.get("allowance"),
                        "public_key": item.get("public_key"),
                    }
                )
        return {"authorized_apps": authorized_apps}

    async def get_account_balance(self) -> Dict[str, str]:
        protocol_config = await self.connection.provider.experimental_protocol_config({"finality": "final"})
        state = await self.state()

        cost_per_byte = int(protocol_config["runtime_config"]["storage_amount_per_byte"])
        state_staked = int(state["storage_usage"]) * cost_per_byte
        staked = int(state["locked"])
        total = int(state["amount"]) + staked
        available = total - max(staked, state_staked)
        return {
            "total": str(total),
            "state_staked": str(state_staked),
            "staked": str(staked),
            "available": str(available),
        }
