"""
Shared pytest fixtures:
- Deterministic Ed25519 key pair and an in-memory signer holding it
- FakeProvider: in-memory node for submission-engine tests
- Fast ClientConfig (zero backoff) and an Account wired to the fake
- Outcome/RPC payload builders shared by the RPC and CLI tests
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from near_client.access_keys import AccessKeyCache
from near_client.account import Account
from near_client.config import ClientConfig
from near_client.connection import Connection
from near_client.errors import ErrorKind, TypedError
from near_client.tx.build import SignedTransaction
from near_client.utils.encoding import b58encode
from near_client.wallet.keys import KeyPair
from near_client.wallet.signer import InMemorySigner

NETWORK_ID = "testnet"
ACCOUNT_ID = "alice.testnet"
BLOCK_HASH = b58encode(bytes(range(32)))


# ---------- PAYLOAD BUILDERS ----------


def success_outcome(tx_hash: str, *, logs: Optional[List[str]] = None, value: str = "") -> Dict[str, Any]:
    return {
        "status": {"SuccessValue": value},
        "transaction": {"hash": tx_hash, "signer_id": ACCOUNT_ID},
        "transaction_outcome": {
            "id": tx_hash,
            "outcome": {"logs": [], "receipt_ids": ["r1"], "status": {"SuccessReceiptId": "r1"}},
        },
        "receipts_outcome": [
            {"id": "r1", "outcome": {"logs": list(logs or []), "receipt_ids": [], "status": {"SuccessValue": value}}},
        ],
    }


def rpc_result(result: Any, rid: int = 1) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rid, "result": result}


def rpc_error(data: Any, *, code: int = -32000, message: str = "Server error", rid: int = 1) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rid, "error": {"code": code, "message": message, "data": data}}


def decode_nonce(signed_b64: str) -> int:
    """Pull the nonce out of a base64 Borsh SignedTransaction."""
    raw = base64.b64decode(signed_b64)
    signer_len = int.from_bytes(raw[0:4], "little")
    off = 4 + signer_len + 33
    return int.from_bytes(raw[off : off + 8], "little")


def signed_tx_hash(signed_b64: str) -> str:
    raw = base64.b64decode(signed_b64)
    # ed25519 signature: 1 type byte + 64 bytes at the tail
    return b58encode(hashlib.sha256(raw[:-65]).digest())


# ---------- FAKES ----------


class FakeProvider:
    """
    Minimal in-memory node implementing only what the engine touches.

    `send_errors` is consumed front-to-back, one per broadcast; once empty,
    broadcasts succeed.
    """

    def __init__(self, *, nonce: int = 5, key_exists: bool = True) -> None:
        self.nonce = nonce
        self.key_exists = key_exists
        self.access_key_queries = 0
        self.sent: List[SignedTransaction] = []
        self.send_errors: List[Exception] = []
        self.query_results: Dict[str, Any] = {}
        self.outcome_override: Optional[Dict[str, Any]] = None
        self.calls: List[tuple] = []

    async def query(self, request: Any, data: str = "") -> Any:
        self.calls.append(("query", request))
        await asyncio.sleep(0)
        rtype = request["request_type"]
        if rtype == "view_access_key":
            self.access_key_queries += 1
            if not self.key_exists:
                raise TypedError(
                    f"access key {request['public_key']} does not exist while viewing",
                    ErrorKind.ACCESS_KEY_DOES_NOT_EXIST,
                )
            return {"nonce": self.nonce, "permission": "FullAccess", "block_height": 100, "block_hash": BLOCK_HASH}
        return self.query_results[rtype]

    async def block(self, block_query: Any) -> Any:
        self.calls.append(("block", block_query))
        return {"header": {"hash": BLOCK_HASH, "height": 100}}

    async def send_transaction(self, signed_tx: SignedTransaction) -> Any:
        self.calls.append(("broadcast_tx_commit", signed_tx))
        self.sent.append(signed_tx)
        await asyncio.sleep(0)
        if self.send_errors:
            raise self.send_errors.pop(0)
        if self.outcome_override is not None:
            return self.outcome_override
        return success_outcome(signed_tx.hash)

    async def experimental_protocol_config(self, block_reference: Any) -> Any:
        self.calls.append(("EXPERIMENTAL_protocol_config", block_reference))
        return self.query_results["protocol_config"]

    @property
    def sent_nonces(self) -> List[int]:
        return [s.transaction.nonce for s in self.sent]


# ---------- FIXTURES ----------


@pytest.fixture
def key_pair() -> KeyPair:
    return KeyPair(hashlib.sha256(b"near-client test seed").digest())


@pytest_asyncio.fixture
async def signer(key_pair: KeyPair) -> InMemorySigner:
    return await InMemorySigner.from_key_pair(NETWORK_ID, ACCOUNT_ID, key_pair)


@pytest.fixture
def fast_config() -> ClientConfig:
    return ClientConfig(
        network_id=NETWORK_ID,
        node_url="http://127.0.0.1:3030",
        rpc_retry_wait=0.0,
        nonce_retry_wait=0.0,
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def connection(provider: FakeProvider, signer: InMemorySigner, fast_config: ClientConfig) -> Connection:
    return Connection(NETWORK_ID, provider, signer, config=fast_config)


@pytest.fixture
def account(connection: Connection) -> Account:
    return Account(connection, ACCOUNT_ID, access_keys=AccessKeyCache(connection.provider))


@pytest.fixture(autouse=True)
def _logs_on(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NEAR_NO_LOGS", raising=False)
