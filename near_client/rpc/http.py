"""
Async JSON-RPC client for a NEAR node (httpx).

Every logical call runs under the bounded backoff executor. Transient
transport failures (timeouts, 408/429/502/503/504, dropped connections) are
retried; any other error is classified and raised on the spot.

Example:
    from near_client.rpc.http import JsonRpcProvider

    async with JsonRpcProvider("https://rpc.testnet.near.org") as rpc:
        status = await rpc.status()
        print(status["sync_info"]["latest_block_height"])
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Union

import httpx

from ..config import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_BACKOFF, DEFAULT_RETRY_WAIT, ClientConfig
from ..errors import RETRYABLE_TRANSPORT_KINDS, ErrorKind, TypedError
from ..logging import logs_enabled
from ..utils.encoding import b58encode, b64encode
from ..utils.retry import RETRY, exponential_backoff
from ..version import user_agent
from .classify import classify_query_error, classify_rpc_error

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]

__all__ = ["Provider", "JsonRpcProvider", "next_request_id"]


# Process-wide request ids. Shared by every provider; gaps are fine, reuse is not.
_id_lock = threading.Lock()
_next_id = 123


def next_request_id() -> int:
    global _next_id
    with _id_lock:
        rid = _next_id
        _next_id += 1
    return rid


def _is_retriable_http(status: int) -> bool:
    # Gateway/overload statuses: the request may not have reached the node
    return status in (408, 429, 502, 503, 504)


class Provider(Protocol):
    """Async surface the access-key cache and the submission engine depend on."""

    async def query(self, request: Any, data: str = "") -> Any: ...
    async def block(self, block_query: Mapping[str, Any]) -> Any: ...
    async def send_transaction(self, signed_tx: Any) -> Any: ...
    async def experimental_protocol_config(self, block_reference: Mapping[str, Any]) -> Any: ...


@dataclass
class JsonRpcProvider:
    """JSON-RPC 2.0 client for a NEAR node over HTTP."""

    url: str
    timeout: float = 30.0
    headers: Optional[Mapping[str, str]] = None
    retry_wait: float = DEFAULT_RETRY_WAIT
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_backoff: float = DEFAULT_RETRY_BACKOFF
    transport: Optional[httpx.AsyncBaseTransport] = None
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)
    _client: Any = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        merged_headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": user_agent(),
        }
        if self.headers:
            merged_headers.update(dict(self.headers))
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=merged_headers,
            transport=self.transport,
        )

    @classmethod
    def from_config(cls, cfg: ClientConfig, **kw: Any) -> "JsonRpcProvider":
        return cls(
            url=cfg.node_url,
            timeout=cfg.request_timeout,
            headers=cfg.headers,
            retry_wait=cfg.rpc_retry_wait,
            retry_attempts=cfg.rpc_retry_attempts,
            retry_backoff=cfg.rpc_retry_backoff,
            **kw,
        )

    # --- context manager -------------------------------------------------

    async def __aenter__(self) -> "JsonRpcProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    # --- generic call ----------------------------------------------------

    async def send_json_rpc(self, method: str, params: Params = None) -> JSON:
        """
        Perform one logical JSON-RPC call and return its `result`.

        Raises `TypedError`: the classified node error, or `RetriesExceeded`
        once every attempt timed out or failed to connect.
        """

        async def attempt() -> Any:
            payload = self._make_payload(method, params)
            try:
                return await self._send_once(payload)
            except TypedError as e:
                if e.kind not in RETRYABLE_TRANSPORT_KINDS:
                    raise
                if logs_enabled():
                    log.warning("Retrying request to %s as it has timed out: %s", method, e.message)
                return RETRY

        result = await exponential_backoff(
            self.retry_wait,
            self.retry_attempts,
            self.retry_backoff,
            attempt,
            sleep=self.sleep,
        )
        if result is RETRY:
            raise TypedError(
                f"Exceeded {self.retry_attempts} attempts for request to {method}.",
                ErrorKind.RETRIES_EXCEEDED,
            )
        return result

    # --- typed wrappers --------------------------------------------------

    async def query(self, request: Union[Mapping[str, Any], str], data: str = "") -> Any:
        """
        `query` RPC. Accepts the request mapping, or the legacy ``(path, data)``
        form (e.g. ``query("account/alice.testnet", "")``).
        """
        params: Params = [request, data] if isinstance(request, str) else dict(request)
        result = await self.send_json_rpc("query", params)
        if isinstance(result, Mapping) and result.get("error"):
            raise classify_query_error(result, request)
        return result

    async def block(self, block_query: Mapping[str, Any]) -> Any:
        """``{"finality": "final"}`` or ``{"block_id": <height|hash>}``."""
        return await self.send_json_rpc("block", dict(block_query))

    async def chunk(self, chunk_id: Union[str, Sequence[Any]]) -> Any:
        return await self.send_json_rpc("chunk", [chunk_id])

    async def status(self) -> Any:
        return await self.send_json_rpc("status", [])

    async def send_transaction(self, signed_tx: Any) -> Any:
        """Submit and wait for the final execution outcome."""
        return await self.send_json_rpc("broadcast_tx_commit", [b64encode(signed_tx.encode())])

    async def send_transaction_async(self, signed_tx: Any) -> Any:
        """Submit without waiting; returns the transaction hash."""
        return await self.send_json_rpc("broadcast_tx_async", [b64encode(signed_tx.encode())])

    async def tx_status(self, tx_hash: Union[bytes, str], account_id: str) -> Any:
        return await self.send_json_rpc("tx", [_hash_str(tx_hash), account_id])

    async def tx_status_receipts(self, tx_hash: Union[bytes, str], account_id: str) -> Any:
        return await self.send_json_rpc("EXPERIMENTAL_tx_status", [_hash_str(tx_hash), account_id])

    async def experimental_protocol_config(self, block_reference: Mapping[str, Any]) -> Any:
        return await self.send_json_rpc("EXPERIMENTAL_protocol_config", dict(block_reference))

    async def gas_price(self, block_id: Union[int, str, None] = None) -> Any:
        return await self.send_json_rpc("gas_price", [block_id])

    async def validators(self, block_id: Union[int, str, None] = None) -> Any:
        return await self.send_json_rpc("validators", [block_id])

    async def experimental_genesis_config(self) -> Any:
        """Protocol config as of genesis."""
        return await self.experimental_protocol_config({"sync_checkpoint": "genesis"})

    async def light_client_proof(self, request: Mapping[str, Any]) -> Any:
        """
        Execution proof for a transaction or receipt, e.g.
        ``{"type": "transaction", "transaction_hash": ..., "sender_id": ...,
        "light_client_head": ...}``.
        """
        return await self.send_json_rpc("EXPERIMENTAL_light_client_proof", dict(request))

    # Change queries take a block reference: ``{"finality": ...}`` or ``{"block_id": ...}``.

    async def block_changes(self, block_query: Mapping[str, Any]) -> Any:
        return await self.send_json_rpc("EXPERIMENTAL_changes_in_block", dict(block_query))

    async def account_changes(self, account_ids: Sequence[str], block_query: Mapping[str, Any]) -> Any:
        return await self._changes("account_changes", block_query, account_ids=list(account_ids))

    async def single_access_key_changes(
        self, keys: Sequence[Mapping[str, str]], block_query: Mapping[str, Any]
    ) -> Any:
        """`keys` holds ``{"account_id": ..., "public_key": ...}`` pairs."""
        return await self._changes("single_access_key_changes", block_query, keys=[dict(k) for k in keys])

    async def access_key_changes(self, account_ids: Sequence[str], block_query: Mapping[str, Any]) -> Any:
        return await self._changes("all_access_key_changes", block_query, account_ids=list(account_ids))

    async def contract_state_changes(
        self, account_ids: Sequence[str], block_query: Mapping[str, Any], key_prefix: str = ""
    ) -> Any:
        """`key_prefix` must already be base64."""
        return await self._changes(
            "data_changes", block_query, account_ids=list(account_ids), key_prefix_base64=key_prefix
        )

    async def contract_code_changes(self, account_ids: Sequence[str], block_query: Mapping[str, Any]) -> Any:
        return await self._changes("contract_code_changes", block_query, account_ids=list(account_ids))

    # --- internals -------------------------------------------------------

    async def _changes(self, changes_type: str, block_query: Mapping[str, Any], **fields: Any) -> Any:
        params = {"changes_type": changes_type, **fields, **block_query}
        return await self.send_json_rpc("EXPERIMENTAL_changes", params)

    def _make_payload(self, method: str, params: Params) -> Dict[str, Any]:
        if params is None:
            params = []
        elif isinstance(params, Mapping):
            params = dict(params)
        elif isinstance(params, Sequence) and not isinstance(params, (str, bytes, bytearray)):
            params = list(params)
        else:
            # Coerce single param into positional list
            params = [params]  # type: ignore[list-item]
        return {"jsonrpc": "2.0", "id": next_request_id(), "method": method, "params": params}

    async def _send_once(self, payload: Dict[str, Any]) -> JSON:
        method = payload["method"]
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        log.debug("rpc → %s id=%s", method, payload["id"])
        try:
            r = await self._client.post(self.url, content=body)
        except httpx.TimeoutException as e:
            raise TypedError(f"Request to {method} timed out: {e}", ErrorKind.TIMEOUT) from e
        except httpx.TransportError as e:
            raise TypedError(f"Request to {method} failed: {e}", ErrorKind.NETWORK) from e

        if _is_retriable_http(r.status_code):
            raise TypedError(f"HTTP {r.status_code} from {self.url} for {method}", ErrorKind.TIMEOUT)
        # Avoid raise_for_status() to keep error bodies visible below
        try:
            resp = r.json()
        except ValueError as e:
            raise TypedError(
                f"Non-JSON response from RPC (HTTP {r.status_code}): {r.text[:256]}",
                ErrorKind.UNTYPED,
            ) from e
        log.debug("rpc ← %s id=%s status=%s", method, payload["id"], r.status_code)

        if not isinstance(resp, dict):
            raise TypedError(f"Invalid JSON-RPC response type: {type(resp).__name__}", ErrorKind.UNTYPED)
        if resp.get("error") is not None:
            raise classify_rpc_error(resp["error"], method=method)
        if "result" not in resp:
            raise TypedError(f"Malformed JSON-RPC response for {method}: {resp!r}"[:512], ErrorKind.UNTYPED)
        return resp["result"]


def _hash_str(tx_hash: Union[bytes, bytearray, str]) -> str:
    if isinstance(tx_hash, (bytes, bytearray)):
        return b58encode(tx_hash)
    return tx_hash
