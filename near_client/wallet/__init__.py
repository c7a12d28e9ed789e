"""
Keys, key stores and signers.

    from near_client.wallet import InMemorySigner, InMemoryKeyStore, KeyPair
"""

from .keys import KeyPair, KeyType, PublicKey, Signature
from .keystore import InMemoryKeyStore, KeyStore, UnencryptedFileSystemKeyStore
from .signer import InMemorySigner, Signer

__all__ = [
    "KeyPair",
    "KeyType",
    "PublicKey",
    "Signature",
    "KeyStore",
    "InMemoryKeyStore",
    "UnencryptedFileSystemKeyStore",
    "Signer",
    "InMemorySigner",
]
