"""
Access-key cache shared by accounts and concurrent submissions.

Entries are keyed by ``(account_id, "ed25519:<public key>")`` and hold the
on-chain access-key view last fetched for that pair. The cache is the only
place nonces are handed out:

- `resolve` fetches a key once; racing resolvers all get the first stored view.
- `next_nonce` is an atomic read-increment-write under a per-key lock, so
  independent keys never wait on each other.
- `invalidate` drops an entry so the next `resolve` refetches it (used after
  an ``InvalidNonce`` rejection).

A per-key high-water mark outlives invalidation, so a refetched view that
still reports a stale nonce can never cause an issued nonce to be reused.

Locks are `threading.Lock` and are never held across an ``await``, which keeps
the cache safe from both coroutines and worker threads.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from .errors import ErrorKind, TypedError
from .wallet.keys import PublicKey
from .wallet.signer import Signer

log = logging.getLogger(__name__)

__all__ = ["AccessKeyState", "AccessKeyInfo", "AccessKeyCache"]

CacheKey = Tuple[str, str]


@dataclass
class AccessKeyState:
    """Cached `view_access_key` result. `nonce` is advanced in place."""

    nonce: int
    permission: Any
    block_height: Optional[int] = None
    block_hash: Optional[str] = None

    @classmethod
    def from_view(cls, view: Mapping[str, Any]) -> "AccessKeyState":
        return cls(
            nonce=int(view["nonce"]),
            permission=view.get("permission"),
            block_height=view.get("block_height"),
            block_hash=view.get("block_hash"),
        )

    @property
    def is_full_access(self) -> bool:
        return self.permission == "FullAccess"


@dataclass(frozen=True)
class AccessKeyInfo:
    public_key: PublicKey
    access_key: AccessKeyState


def _cache_key(account_id: str, public_key: Union[PublicKey, str]) -> CacheKey:
    return account_id, str(public_key)


class AccessKeyCache:
    def __init__(self, provider: Any) -> None:
        self.provider = provider
        self._lock = threading.Lock()
        self._entries: Dict[CacheKey, AccessKeyState] = {}
        self._key_locks: Dict[CacheKey, threading.Lock] = {}
        self._issued: Dict[CacheKey, int] = {}

    def _key_lock(self, key: CacheKey) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    async def resolve(self, account_id: str, signer: Signer, network_id: str) -> Optional[AccessKeyInfo]:
        """
        Find the access key the signer holds for `account_id`.

        Returns None when the signer has no key or the key is not registered
        on chain. Other query failures propagate.
        """
        public_key = await signer.get_public_key(account_id, network_id)
        if public_key is None:
            return None

        key = _cache_key(account_id, public_key)
        with self._lock:
            cached = self._entries.get(key)
        if cached is not None:
            return AccessKeyInfo(public_key, cached)

        try:
            view = await self.provider.query(
                {
                    "request_type": "view_access_key",
                    "account_id": account_id,
                    "public_key": str(public_key),
                    "finality": "optimistic",
                }
            )
        except TypedError as e:
            if e.is_kind(ErrorKind.ACCESS_KEY_DOES_NOT_EXIST):
                return None
            raise

        fetched = AccessKeyState.from_view(view)
        with self._lock:
            # A concurrent resolve may have stored first; keep its entry.
            stored = self._entries.setdefault(key, fetched)
        if stored is not fetched:
            log.debug("access key %s for %s already cached; dropping later fetch", public_key, account_id)
        return AccessKeyInfo(public_key, stored)

    def next_nonce(self, account_id: str, public_key: Union[PublicKey, str]) -> int:
        """
        Advance and return the nonce for a cached key.

        Raises KeyError when the key has not been resolved (or was invalidated).
        """
        key = _cache_key(account_id, public_key)
        with self._key_lock(key):
            # table lookup only; the increment is guarded by the key lock
            with self._lock:
                state = self._entries.get(key)
            if state is None:
                raise KeyError(f"access key {key[1]} for {account_id} is not cached")
            nonce = max(state.nonce, self._issued.get(key, 0)) + 1
            state.nonce = nonce
            self._issued[key] = nonce
        return nonce

    def invalidate(self, account_id: str, public_key: Union[PublicKey, str]) -> None:
        key = _cache_key(account_id, public_key)
        with self._key_lock(key):
            with self._lock:
                self._entries.pop(key, None)
        log.debug("invalidated access key %s for %s", key[1], account_id)

    def get(self, account_id: str, public_key: Union[PublicKey, str]) -> Optional[AccessKeyState]:
        with self._lock:
            return self._entries.get(_cache_key(account_id, public_key))

    def clear(self) -> None:
        """Drop every entry. Issued-nonce marks are kept."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, tuple) or len(item) != 2:
            return False
        with self._lock:
            return _cache_key(item[0], item[1]) in self._entries

    def __iter__(self) -> Iterator[CacheKey]:
        with self._lock:
            return iter(list(self._entries))
