"""
Connection: the (network, provider, signer) triple an `Account` works against.

    conn = Connection.from_config({
        "network_id": "testnet",
        "provider": {"type": "JsonRpcProvider", "args": {"url": "https://rpc.testnet.near.org"}},
        "signer": {"type": "InMemorySigner", "key_store": InMemoryKeyStore()},
    })

Descriptors without a ``type`` (or non-mapping objects) are used as given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .config import ClientConfig
from .rpc.http import JsonRpcProvider, Provider
from .wallet.keystore import UnencryptedFileSystemKeyStore
from .wallet.signer import InMemorySigner, Signer

__all__ = ["Connection"]


def _get_provider(desc: Any) -> Any:
    if not isinstance(desc, Mapping) or "type" not in desc:
        return desc
    if desc["type"] == "JsonRpcProvider":
        return JsonRpcProvider(**dict(desc.get("args") or {}))
    raise ValueError(f"Unknown provider type {desc['type']}")


def _get_signer(desc: Any) -> Any:
    if not isinstance(desc, Mapping) or "type" not in desc:
        return desc
    if desc["type"] == "InMemorySigner":
        key_store = desc.get("key_store") or desc.get("keyStore")
        if isinstance(key_store, str):
            key_store = UnencryptedFileSystemKeyStore(key_store)
        if key_store is None:
            raise ValueError("InMemorySigner descriptor requires a key_store")
        return InMemorySigner(key_store)
    raise ValueError(f"Unknown signer type {desc['type']}")


@dataclass
class Connection:
    network_id: str
    provider: Provider
    signer: Signer
    config: Optional[ClientConfig] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "Connection":
        return cls(
            network_id=config["network_id"],
            provider=_get_provider(config["provider"]),
            signer=_get_signer(config["signer"]),
            config=config.get("client_config"),
        )

    @classmethod
    def from_client_config(cls, cfg: ClientConfig, signer: Optional[Signer] = None, **provider_kw: Any) -> "Connection":
        """Provider from the config's node settings; file-system key store by default."""
        if signer is None:
            signer = InMemorySigner(UnencryptedFileSystemKeyStore(cfg.key_path))
        return cls(
            network_id=cfg.network_id,
            provider=JsonRpcProvider.from_config(cfg, **provider_kw),
            signer=signer,
            config=cfg,
        )

    async def close(self) -> None:
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()
