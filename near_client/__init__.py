"""
NEAR client for Python
Convenience exports for the most common client APIs.
"""

from .version import __version__  # noqa: F401

# Core config & errors
from .config import ClientConfig  # noqa: F401
from .errors import (  # noqa: F401
    ArgumentError,
    ErrorContext,
    ErrorKind,
    NearClientError,
    TypedError,
)

# RPC
from .rpc.http import JsonRpcProvider, Provider  # noqa: F401
from .rpc.classify import classify  # noqa: F401

# Wallet
from .wallet.keys import KeyPair, PublicKey  # noqa: F401
from .wallet.keystore import InMemoryKeyStore, UnencryptedFileSystemKeyStore  # noqa: F401
from .wallet.signer import InMemorySigner, Signer  # noqa: F401

# Tx helpers
from .tx import actions  # noqa: F401
from .tx.send import Outcome, ReceiptReport  # noqa: F401

# Accounts & contracts
from .access_keys import AccessKeyCache  # noqa: F401
from .connection import Connection  # noqa: F401
from .account import Account, FunctionCallOptions, SignAndSendOptions  # noqa: F401
from .contract import ChangeCallOptions, ContractInterface  # noqa: F401

__all__ = [
    "__version__",
    "ClientConfig",
    "NearClientError",
    "TypedError",
    "ErrorKind",
    "ErrorContext",
    "ArgumentError",
    "JsonRpcProvider",
    "Provider",
    "classify",
    "KeyPair",
    "PublicKey",
    "InMemoryKeyStore",
    "UnencryptedFileSystemKeyStore",
    "Signer",
    "InMemorySigner",
    "actions",
    "Outcome",
    "ReceiptReport",
    "AccessKeyCache",
    "Connection",
    "Account",
    "SignAndSendOptions",
    "FunctionCallOptions",
    "ContractInterface",
    "ChangeCallOptions",
]
