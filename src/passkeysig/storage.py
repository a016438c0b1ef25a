"""
Bookkeeping storage for credential identifiers and address preferences.

Only public data is ever stored here: credential identifiers, bound
addresses, derived signer addresses and the user's address selection.
PINs, PIN digests, PRF secrets and private keys never reach a store.

The persistence policy is a configuration flag rather than separate code
paths:

- Persistence.NONE: NullStore, nothing is remembered.
- Persistence.SESSION: MemoryStore, forgotten when the process exits.
- Persistence.PERSISTENT: JsonFileStore, survives restarts.
"""

import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from .config import Persistence
from .exceptions import StorageError


logger = logging.getLogger(__name__)

CREDENTIAL_PREFIX = "credential:"


class KeyValueStore(ABC):
    """Minimal string key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> Iterator[str]:
        ...


class NullStore(KeyValueStore):
    """Store that remembers nothing."""

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str) -> None:
        pass

    def delete(self, key: str) -> None:
        pass

    def keys(self) -> Iterator[str]:
        return iter(())


class MemoryStore(KeyValueStore):
    """Process-lifetime store."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._data))


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON object on disk.

    Writes go to a temporary file that then replaces the original, so a
    crash never leaves a half-written store behind.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Store {self.path} does not contain a JSON object")
        return data

    def _dump(self, data: dict) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"Failed to write store {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._dump(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._dump(data)

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._load()))


def open_store(persistence: Persistence, path: Path | str | None = None) -> KeyValueStore:
    """Create the store matching a persistence policy."""
    if persistence is Persistence.NONE:
        return NullStore()
    if persistence is Persistence.SESSION:
        return MemoryStore()
    if persistence is Persistence.PERSISTENT:
        if path is None:
            raise ValueError("A path is required for persistent storage")
        return JsonFileStore(path)
    raise ValueError(f"Unknown persistence policy: {persistence!r}")


@dataclass
class CredentialRecord:
    """
    Public bookkeeping for one passkey credential used with one address.

    The platform returns the same credential whichever address is bound,
    so a credential has one record per address it was used for.

    Attributes:
        credential_id: base64url credential identifier.
        address: External address the credential was used for, or None for
            an unbound session.
        username: Display name given to the platform (truncated address).
        created_at: Milliseconds since the epoch.
        signer_address: Address of the key derived through this credential,
            recorded for mismatch detection.
    """

    credential_id: str
    address: str | None
    username: str = ""
    created_at: int = 0
    signer_address: str | None = None

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = int(time.time() * 1000)

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> "CredentialRecord":
        try:
            return cls(**json.loads(raw))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Corrupted credential record: {e}") from e


class CredentialRegistry:
    """
    Credential records kept in a KeyValueStore, one per
    (credential_id, address) pair.

    Addresses are compared case-insensitively.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(credential_id: str, address: Optional[str] = None) -> str:
        key = CREDENTIAL_PREFIX + credential_id
        if address:
            key += ":" + address.lower()
        return key

    @staticmethod
    def _belongs_to(key: str, credential_id: str) -> bool:
        base = CREDENTIAL_PREFIX + credential_id
        return key == base or key.startswith(base + ":")

    def save(self, record: CredentialRecord) -> None:
        self.store.set(self._key(record.credential_id, record.address), record.to_json())
        logger.debug("Saved credential record %s... for %s", record.credential_id[:8], record.address)

    def find(self, credential_id: str, address: Optional[str]) -> Optional[CredentialRecord]:
        """Return the record for exactly this credential and address (None: unbound)."""
        raw = self.store.get(self._key(credential_id, address))
        return CredentialRecord.from_json(raw) if raw is not None else None

    def get(self, credential_id: str) -> Optional[CredentialRecord]:
        """Return the most recently created record of a credential, for any address."""
        matches = [r for r in self.all() if r.credential_id == credential_id]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)

    def get_by_address(self, address: str) -> Optional[CredentialRecord]:
        """Return the most recently created record for address."""
        matches = [r for r in self.all() if r.address and r.address.lower() == address.lower()]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)

    def all(self) -> List[CredentialRecord]:
        records = []
        for key in self.store.keys():
            if key.startswith(CREDENTIAL_PREFIX):
                raw = self.store.get(key)
                if raw is not None:
                    records.append(CredentialRecord.from_json(raw))
        return records

    def delete(self, credential_id: str) -> None:
        """Remove every record of a credential."""
        for key in list(self.store.keys()):
            if self._belongs_to(key, credential_id):
                self.store.delete(key)

    def clear(self) -> None:
        for key in list(self.store.keys()):
            if key.startswith(CREDENTIAL_PREFIX):
                self.store.delete(key)
