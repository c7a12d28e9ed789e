"""
RPC layer: the JSON-RPC channel and the error classifier.

    from near_client.rpc import JsonRpcProvider, classify
"""

from .classify import (
    classify,
    classify_query_error,
    classify_rpc_error,
    error_kind_from_message,
    format_error_message,
)
from .http import JsonRpcProvider, Provider, next_request_id

__all__ = [
    "JsonRpcProvider",
    "Provider",
    "next_request_id",
    "classify",
    "classify_rpc_error",
    "classify_query_error",
    "error_kind_from_message",
    "format_error_message",
]
