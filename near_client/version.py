"""
Version helpers for the NEAR Python client.
We keep a static __version__ (PEP 440) and expose a user-agent string built
from it for the HTTP layer.
"""

from __future__ import annotations

# Bump this when publishing
__version__ = "0.1.0"


def user_agent() -> str:
    """User-Agent header value sent with every JSON-RPC request."""
    return f"near-client-py/{__version__}"


__all__ = ["__version__", "user_agent"]
