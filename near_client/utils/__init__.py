"""
Utility helpers for the NEAR client.

Re-exports:
- retry: bounded exponential backoff driven by a retry-signal
- encoding: base58/base64 helpers shared by keys, transactions and RPC
"""

from .encoding import b58decode, b58encode, b64decode, b64encode
from .retry import RETRY, RetrySignal, backoff_delay, exponential_backoff

__all__ = [
    # encoding
    "b58encode",
    "b58decode",
    "b64encode",
    "b64decode",
    # retry
    "RETRY",
    "RetrySignal",
    "backoff_delay",
    "exponential_backoff",
]
