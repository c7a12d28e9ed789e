import asyncio
import threading

import pytest

from near_client.access_keys import AccessKeyCache, AccessKeyState
from near_client.errors import TypedError

from .conftest import ACCOUNT_ID, NETWORK_ID, FakeProvider


@pytest.mark.asyncio
async def test_resolve_caches_after_first_fetch(signer, key_pair):
    provider = FakeProvider(nonce=5)
    cache = AccessKeyCache(provider)

    info = await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)
    assert info is not None
    assert info.public_key == key_pair.public_key
    assert info.access_key.nonce == 5
    assert info.access_key.is_full_access

    again = await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)
    assert again.access_key is info.access_key
    assert provider.access_key_queries == 1
    assert (ACCOUNT_ID, str(key_pair.public_key)) in cache
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_concurrent_resolve_keeps_first_writer(signer, key_pair):
    provider = FakeProvider(nonce=5)
    cache = AccessKeyCache(provider)

    infos = await asyncio.gather(*(cache.resolve(ACCOUNT_ID, signer, NETWORK_ID) for _ in range(8)))

    assert len(cache) == 1
    stored = cache.get(ACCOUNT_ID, key_pair.public_key)
    assert all(info.access_key is stored for info in infos)


@pytest.mark.asyncio
async def test_missing_key_resolves_to_none(signer):
    cache = AccessKeyCache(FakeProvider(key_exists=False))
    assert await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID) is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_signer_without_key_resolves_to_none(signer):
    provider = FakeProvider()
    cache = AccessKeyCache(provider)
    assert await cache.resolve("bob.testnet", signer, NETWORK_ID) is None
    assert provider.access_key_queries == 0


@pytest.mark.asyncio
async def test_other_query_errors_propagate(signer):
    class Broken(FakeProvider):
        async def query(self, request, data=""):
            raise TypedError("account alice.testnet does not exist while viewing", "AccountDoesNotExist")

    cache = AccessKeyCache(Broken())
    with pytest.raises(TypedError) as ei:
        await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)
    assert ei.value.kind == "AccountDoesNotExist"


@pytest.mark.asyncio
async def test_next_nonce_increments_and_survives_invalidation(signer, key_pair):
    provider = FakeProvider(nonce=5)
    cache = AccessKeyCache(provider)
    await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)

    assert cache.next_nonce(ACCOUNT_ID, key_pair.public_key) == 6
    assert cache.next_nonce(ACCOUNT_ID, str(key_pair.public_key)) == 7

    cache.invalidate(ACCOUNT_ID, key_pair.public_key)
    assert len(cache) == 0
    with pytest.raises(KeyError):
        cache.next_nonce(ACCOUNT_ID, key_pair.public_key)

    # the node still reports the stale nonce; issued nonces are never reused
    await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)
    assert provider.access_key_queries == 2
    assert cache.next_nonce(ACCOUNT_ID, key_pair.public_key) == 8


@pytest.mark.asyncio
async def test_refetched_higher_nonce_wins(signer, key_pair):
    provider = FakeProvider(nonce=5)
    cache = AccessKeyCache(provider)
    await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)
    cache.next_nonce(ACCOUNT_ID, key_pair.public_key)

    cache.invalidate(ACCOUNT_ID, key_pair.public_key)
    provider.nonce = 40
    await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)
    assert cache.next_nonce(ACCOUNT_ID, key_pair.public_key) == 41


@pytest.mark.asyncio
async def test_next_nonce_is_unique_across_threads(signer, key_pair):
    cache = AccessKeyCache(FakeProvider(nonce=0))
    await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)

    issued = []
    lock = threading.Lock()

    def worker():
        for _ in range(200):
            n = cache.next_nonce(ACCOUNT_ID, key_pair.public_key)
            with lock:
                issued.append(n)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(issued) == list(range(1, 1601))


@pytest.mark.asyncio
async def test_independent_keys_do_not_wait_on_each_other(signer, key_pair):
    cache = AccessKeyCache(FakeProvider(nonce=5))
    await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)
    bob_key = await signer.create_key("bob.testnet", NETWORK_ID)
    await cache.resolve("bob.testnet", signer, NETWORK_ID)

    issued = []

    def worker(account_id, public_key):
        issued.append(cache.next_nonce(account_id, public_key))

    # an in-flight increment on alice's key must not block bob's
    alice_lock = cache._key_lock((ACCOUNT_ID, str(key_pair.public_key)))
    with alice_lock:
        bob = threading.Thread(target=worker, args=("bob.testnet", bob_key))
        bob.start()
        bob.join(timeout=5)
        assert not bob.is_alive()
        assert issued == [6]

        alice = threading.Thread(target=worker, args=(ACCOUNT_ID, key_pair.public_key))
        alice.start()
        alice.join(timeout=0.1)
        assert alice.is_alive()
    alice.join(timeout=5)
    assert not alice.is_alive()
    assert issued == [6, 6]


def test_state_from_view():
    state = AccessKeyState.from_view(
        {
            "nonce": "12",
            "permission": {"FunctionCall": {"allowance": None, "receiver_id": "app.testnet", "method_names": []}},
            "block_height": 7,
            "block_hash": "abc",
        }
    )
    assert state.nonce == 12
    assert not state.is_full_access
    assert state.block_height == 7


@pytest.mark.asyncio
async def test_clear_drops_entries(signer):
    cache = AccessKeyCache(FakeProvider())
    await cache.resolve(ACCOUNT_ID, signer, NETWORK_ID)
    cache.clear()
    assert len(cache) == 0
    assert list(cache) == []
