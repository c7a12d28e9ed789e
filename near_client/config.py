"""
Client configuration: node endpoint, network id, and retry/timeouts.

- Loads sane defaults and supports overrides via environment variables (NEAR_*).
- Provides helpers for building HTTP headers and validating endpoints.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .version import user_agent

_DEFAULT_NODE_URL = "https://rpc.testnet.near.org"
_DEFAULT_NETWORK = "testnet"
_DEFAULT_KEY_DIR = "~/.near-credentials"

# Shared by the RPC channel and the nonce-retry loop.
DEFAULT_RETRY_WAIT = 0.5
DEFAULT_RETRY_ATTEMPTS = 12
DEFAULT_RETRY_BACKOFF = 1.5


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None and v != "" else default


def _ensure_scheme(url: Optional[str], allowed: tuple[str, ...]) -> Optional[str]:
    if not url:
        return url
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ValueError(f"URL must start with {allowed}, got: {url!r}")
    return url


@dataclass
class ClientConfig:
    # Core
    network_id: str = _DEFAULT_NETWORK
    node_url: str = _DEFAULT_NODE_URL
    # HTTP behavior
    request_timeout: float = 30.0
    headers: Dict[str, str] = field(default_factory=dict)
    # RPC-channel retries (timeouts / transport failures)
    rpc_retry_wait: float = DEFAULT_RETRY_WAIT
    rpc_retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    rpc_retry_backoff: float = DEFAULT_RETRY_BACKOFF
    # Submission retries (invalid nonce / expired block hash)
    nonce_retry_wait: float = DEFAULT_RETRY_WAIT
    nonce_retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    nonce_retry_backoff: float = DEFAULT_RETRY_BACKOFF
    # File-system key store root
    key_dir: str = _DEFAULT_KEY_DIR

    def __post_init__(self) -> None:
        _ensure_scheme(self.node_url, ("http", "https"))
        if self.rpc_retry_attempts < 1 or self.nonce_retry_attempts < 1:
            raise ValueError("retry attempts must be >= 1")

    @classmethod
    def from_env(cls, prefix: str = "NEAR_") -> "ClientConfig":
        """
        Create config from environment variables:

        NEAR_NETWORK_ID             (str)
        NEAR_NODE_URL               (http/https)
        NEAR_TIMEOUT                (float seconds, HTTP)
        NEAR_RPC_RETRY_WAIT         (float seconds)
        NEAR_RPC_RETRY_ATTEMPTS     (int)
        NEAR_RPC_RETRY_BACKOFF      (float)
        NEAR_NONCE_RETRY_WAIT       (float seconds)
        NEAR_NONCE_RETRY_ATTEMPTS   (int)
        NEAR_NONCE_RETRY_BACKOFF    (float)
        NEAR_KEY_DIR                (path)
        """
        return cls(
            network_id=_env(f"{prefix}NETWORK_ID", _DEFAULT_NETWORK) or _DEFAULT_NETWORK,
            node_url=_env(f"{prefix}NODE_URL", _DEFAULT_NODE_URL) or _DEFAULT_NODE_URL,
            request_timeout=float(_env(f"{prefix}TIMEOUT", "30.0")),
            rpc_retry_wait=float(_env(f"{prefix}RPC_RETRY_WAIT", str(DEFAULT_RETRY_WAIT))),
            rpc_retry_attempts=int(_env(f"{prefix}RPC_RETRY_ATTEMPTS", str(DEFAULT_RETRY_ATTEMPTS))),
            rpc_retry_backoff=float(_env(f"{prefix}RPC_RETRY_BACKOFF", str(DEFAULT_RETRY_BACKOFF))),
            nonce_retry_wait=float(_env(f"{prefix}NONCE_RETRY_WAIT", str(DEFAULT_RETRY_WAIT))),
            nonce_retry_attempts=int(_env(f"{prefix}NONCE_RETRY_ATTEMPTS", str(DEFAULT_RETRY_ATTEMPTS))),
            nonce_retry_backoff=float(_env(f"{prefix}NONCE_RETRY_BACKOFF", str(DEFAULT_RETRY_BACKOFF))),
            key_dir=_env(f"{prefix}KEY_DIR", _DEFAULT_KEY_DIR) or _DEFAULT_KEY_DIR,
        )

    @classmethod
    def with_overrides(
        cls, base: Optional["ClientConfig"] = None, **overrides: Any
    ) -> "ClientConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys and None values are ignored.
        """
        base = base or cls.from_env()
        data = base.to_dict()
        data.update({k: v for k, v in overrides.items() if k in data and v is not None})
        return cls(**data)

    @property
    def key_path(self) -> Path:
        return Path(self.key_dir).expanduser()

    def http_headers(self) -> Dict[str, str]:
        merged = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": user_agent(),
        }
        merged.update(self.headers)
        return merged

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


__all__ = [
    "ClientConfig",
    "DEFAULT_RETRY_WAIT",
    "DEFAULT_RETRY_ATTEMPTS",
    "DEFAULT_RETRY_BACKOFF",
]
