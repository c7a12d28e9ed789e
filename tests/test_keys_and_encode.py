import hashlib

import pytest

from near_client.tx import actions
from near_client.tx.build import create_transaction
from near_client.tx.encode import BorshEncodeError, BorshWriter, serialize_action
from near_client.utils.encoding import b58decode, b58encode
from near_client.wallet.keys import KeyPair, KeyType, PublicKey


def _seed(n: int = 32) -> bytes:
    # Deterministic test seed: 0x00, 0x01, ..., 0x1f
    return bytes(range(n))


def test_key_pair_string_forms_roundtrip():
    kp = KeyPair(_seed())
    encoded = str(kp)
    assert encoded.startswith("ed25519:")
    assert len(b58decode(encoded.split(":")[1])) == 64

    again = KeyPair.from_string(encoded)
    assert again.public_key == kp.public_key
    assert str(kp.public_key).startswith("ed25519:")
    assert PublicKey.from_string(str(kp.public_key)) == kp.public_key


def test_secret_must_match_embedded_public_key():
    kp = KeyPair(_seed())
    other = KeyPair.from_random()
    forged = b58decode(kp.secret_key)[:32] + other.public_key.data
    with pytest.raises(ValueError):
        KeyPair(forged)


def test_sign_and_verify():
    kp = KeyPair(_seed())
    sig = kp.sign(b"near")
    assert sig.key_type == KeyType.ED25519
    assert len(sig.data) == 64
    assert kp.verify(b"near", sig.data)
    assert not kp.verify(b"tampered", sig.data)


def test_public_key_parsing_errors():
    with pytest.raises(ValueError):
        PublicKey.from_string("secp256k1:abc")
    with pytest.raises(ValueError):
        PublicKey.from_string("a:b:c")
    with pytest.raises(ValueError):
        PublicKey(KeyType.ED25519, b"\x00" * 31)


def test_borsh_primitives():
    w = BorshWriter().u8(1).u32(2).u64(3).u128(4).string("ab")
    assert w.getvalue() == (
        b"\x01" + b"\x02\x00\x00\x00" + (3).to_bytes(8, "little") + (4).to_bytes(16, "little") + b"\x02\x00\x00\x00ab"
    )
    with pytest.raises(BorshEncodeError):
        BorshWriter().u8(256)
    with pytest.raises(BorshEncodeError):
        BorshWriter().u128(-1)


def test_transfer_action_layout():
    assert serialize_action(actions.transfer(1)) == b"\x03" + (1).to_bytes(16, "little")


def test_function_call_action_layout():
    fc = actions.function_call("go", {"a": 1}, gas=10, deposit=2)
    assert fc.args == b'{"a":1}'
    assert serialize_action(fc) == (
        b"\x02"
        + b"\x02\x00\x00\x00go"
        + b"\x07\x00\x00\x00" + b'{"a":1}'
        + (10).to_bytes(8, "little")
        + (2).to_bytes(16, "little")
    )


def test_add_function_call_key_layout():
    pk = KeyPair(_seed()).public_key
    action = actions.add_key(pk, actions.function_call_access_key("app.near", ["m"], None))
    assert serialize_action(action) == (
        b"\x05"
        + b"\x00" + pk.data
        + (0).to_bytes(8, "little")
        + b"\x00"  # FunctionCall permission
        + b"\x00"  # allowance: None
        + b"\x08\x00\x00\x00app.near"
        + b"\x01\x00\x00\x00" + b"\x01\x00\x00\x00m"
    )
    full = serialize_action(actions.add_key(pk, actions.full_access_key()))
    assert full.endswith((0).to_bytes(8, "little") + b"\x01")


def test_transaction_hash_is_sha256_of_encoding():
    kp = KeyPair(_seed())
    block_hash = b58encode(b"\x07" * 32)
    tx = create_transaction("alice.near", kp.public_key, "bob.near", 9, [actions.transfer(5)], block_hash)
    encoded = tx.encode()
    assert encoded.startswith(b"\x0a\x00\x00\x00alice.near\x00" + kp.public_key.data + (9).to_bytes(8, "little"))
    assert tx.hash() == hashlib.sha256(encoded).digest()


def test_create_transaction_rejects_short_block_hash():
    kp = KeyPair(_seed())
    with pytest.raises(ValueError):
        create_transaction("a", kp.public_key, "b", 1, [], b"\x00" * 31)
