"""
Key stores: where the signer looks up a `KeyPair` by (network, account).

- `InMemoryKeyStore`: process-local dict, handy for tests and temporary keys.
- `UnencryptedFileSystemKeyStore`: one JSON file per account under
  ``<key_dir>/<network_id>/<account_id>.json``, the layout used by the NEAR
  CLI's ``~/.near-credentials``::

      {"account_id": "alice.testnet",
       "public_key": "ed25519:...",
       "private_key": "ed25519:..."}

  Writes are atomic (tmp file + replace) and chmod 0600 on POSIX.

Both implement the async `KeyStore` protocol so a signer can sit on top of
either one (or an HSM/remote store) without change.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .keys import KeyPair

__all__ = ["KeyStore", "KeyStoreIOError", "InMemoryKeyStore", "UnencryptedFileSystemKeyStore"]


class KeyStoreIOError(OSError):
    pass


@runtime_checkable
class KeyStore(Protocol):
    async def set_key(self, network_id: str, account_id: str, key_pair: KeyPair) -> None: ...
    async def get_key(self, network_id: str, account_id: str) -> Optional[KeyPair]: ...
    async def remove_key(self, network_id: str, account_id: str) -> None: ...
    async def clear(self) -> None: ...
    async def get_networks(self) -> List[str]: ...
    async def get_accounts(self, network_id: str) -> List[str]: ...


class InMemoryKeyStore:
    def __init__(self) -> None:
        self._keys: Dict[Tuple[str, str], KeyPair] = {}

    async def set_key(self, network_id: str, account_id: str, key_pair: KeyPair) -> None:
        self._keys[(network_id, account_id)] = key_pair

    async def get_key(self, network_id: str, account_id: str) -> Optional[KeyPair]:
        return self._keys.get((network_id, account_id))

    async def remove_key(self, network_id: str, account_id: str) -> None:
        self._keys.pop((network_id, account_id), None)

    async def clear(self) -> None:
        self._keys.clear()

    async def get_networks(self) -> List[str]:
        return sorted({net for net, _ in self._keys})

    async def get_accounts(self, network_id: str) -> List[str]:
        return sorted(acc for net, acc in self._keys if net == network_id)

    def __str__(self) -> str:
        return "InMemoryKeyStore"


class UnencryptedFileSystemKeyStore:
    def __init__(self, key_dir: os.PathLike[str] | str) -> None:
        self.key_dir = Path(key_dir).expanduser()

    def _path(self, network_id: str, account_id: str) -> Path:
        return self.key_dir / network_id / f"{account_id}.json"

    async def set_key(self, network_id: str, account_id: str, key_pair: KeyPair) -> None:
        path = self._path(network_id, account_id)
        _atomic_write_json(
            path,
            {
                "account_id": account_id,
                "public_key": str(key_pair.public_key),
                "private_key": str(key_pair),
            },
        )
        _chmod_private(path)

    async def get_key(self, network_id: str, account_id: str) -> Optional[KeyPair]:
        path = self._path(network_id, account_id)
        if not path.exists():
            return None
        data = _read_json(path)
        secret = data.get("private_key") or data.get("secret_key")
        if not secret:
            raise KeyStoreIOError(f"No private_key in {path}")
        return KeyPair.from_string(secret)

    async def remove_key(self, network_id: str, account_id: str) -> None:
        self._path(network_id, account_id).unlink(missing_ok=True)

    async def clear(self) -> None:
        for network_id in await self.get_networks():
            for account_id in await self.get_accounts(network_id):
                await self.remove_key(network_id, account_id)

    async def get_networks(self) -> List[str]:
        if not self.key_dir.is_dir():
            return []
        return sorted(p.name for p in self.key_dir.iterdir() if p.is_dir())

    async def get_accounts(self, network_id: str) -> List[str]:
        net_dir = self.key_dir / network_id
        if not net_dir.is_dir():
            return []
        return sorted(p.stem for p in net_dir.glob("*.json"))

    def __str__(self) -> str:
        return f"UnencryptedFileSystemKeyStore({self.key_dir})"


def _atomic_write_json(path: Path, obj: Dict[str, str]) -> None:
    tmp_name: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(obj, indent=2).encode("utf-8")
        with tempfile.NamedTemporaryFile("wb", delete=False, dir=str(path.parent)) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)  # atomic on POSIX
    except OSError as e:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise KeyStoreIOError(f"Failed to write key file: {e}") from e


def _read_json(path: Path) -> Dict[str, str]:
    try:
        with open(path, "rb") as f:
            return json.loads(f.read().decode("utf-8"))
    except (OSError, ValueError) as e:
        raise KeyStoreIOError(f"Failed to read key file {path}: {e}") from e


def _chmod_private(path: Path) -> None:
    if os.name == "posix":
        os.chmod(path, 0o600)
