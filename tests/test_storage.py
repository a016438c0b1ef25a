"""Tests for bookkeeping storage."""

import json
import pytest

from passkeysig.config import Persistence
from passkeysig.exceptions import StorageError
from passkeysig.storage import (
    CredentialRecord,
    CredentialRegistry,
    JsonFileStore,
    MemoryStore,
    NullStore,
    open_store,
)


ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
OTHER_ADDRESS = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"


class TestStores:
    """Test the key-value stores."""

    def test_null_store_remembers_nothing(self):
        store = NullStore()
        store.set("key", "value")

        assert store.get("key") is None
        assert list(store.keys()) == []

    def test_memory_store(self):
        store = MemoryStore()
        store.set("key", "value")

        assert store.get("key") == "value"
        assert list(store.keys()) == ["key"]

        store.delete("key")
        store.delete("missing")
        assert store.get("key") is None

    def test_json_file_store_survives_reopen(self, tmp_path):
        path = tmp_path / "store.json"
        JsonFileStore(path).set("key", "value")

        assert JsonFileStore(path).get("key") == "value"
        assert json.loads(path.read_text()) == {"key": "value"}

    def test_json_file_store_missing_file(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested" / "store.json")

        assert store.get("key") is None
        store.set("key", "value")
        assert store.get("key") == "value"

    def test_json_file_store_corrupted(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")

        with pytest.raises(StorageError):
            JsonFileStore(path).get("key")

    def test_json_file_store_wrong_shape(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[]")

        with pytest.raises(StorageError):
            JsonFileStore(path).get("key")


class TestOpenStore:
    def test_policies(self, tmp_path):
        assert isinstance(open_store(Persistence.NONE), NullStore)
        assert isinstance(open_store(Persistence.SESSION), MemoryStore)
        assert isinstance(open_store(Persistence.PERSISTENT, tmp_path / "s.json"), JsonFileStore)

    def test_persistent_requires_path(self):
        with pytest.raises(ValueError):
            open_store(Persistence.PERSISTENT)


class TestCredentialRegistry:
    """Test credential record bookkeeping."""

    def test_save_and_get(self):
        registry = CredentialRegistry(MemoryStore())
        record = CredentialRecord("cred-1", ADDRESS, username="0x5aAe...eAed")

        registry.save(record)

        assert registry.get("cred-1") == record
        assert registry.get("missing") is None

    def test_created_at_defaults_to_now(self):
        assert CredentialRecord("cred-1", ADDRESS).created_at > 0

    def test_get_by_address_is_case_insensitive(self):
        registry = CredentialRegistry(MemoryStore())
        registry.save(CredentialRecord("cred-1", ADDRESS))

        assert registry.get_by_address(ADDRESS.lower()).credential_id == "cred-1"

    def test_get_by_address_returns_newest(self):
        registry = CredentialRegistry(MemoryStore())
        registry.save(CredentialRecord("old", ADDRESS, created_at=1))
        registry.save(CredentialRecord("new", ADDRESS, created_at=2))

        assert registry.get_by_address(ADDRESS).credential_id == "new"

    def test_all_ignores_other_keys(self):
        store = MemoryStore()
        store.set("manual_address", ADDRESS)
        registry = CredentialRegistry(store)
        registry.save(CredentialRecord("cred-1", ADDRESS))

        assert [r.credential_id for r in registry.all()] == ["cred-1"]

    def test_one_record_per_address(self):
        registry = CredentialRegistry(MemoryStore())
        registry.save(CredentialRecord("cred-1", ADDRESS, created_at=1))
        registry.save(CredentialRecord("cred-1", OTHER_ADDRESS, created_at=2))

        assert registry.get_by_address(ADDRESS).address == ADDRESS
        assert registry.get_by_address(OTHER_ADDRESS).address == OTHER_ADDRESS
        assert registry.find("cred-1", ADDRESS.lower()).created_at == 1
        assert registry.get("cred-1").address == OTHER_ADDRESS
        assert len(registry.all()) == 2

    def test_unbound_record(self):
        registry = CredentialRegistry(MemoryStore())
        registry.save(CredentialRecord("cred-1", None, signer_address=ADDRESS))

        assert registry.find("cred-1", None).signer_address == ADDRESS
        assert registry.find("cred-1", ADDRESS) is None
        assert registry.get_by_address(ADDRESS) is None

    def test_delete_removes_every_address(self):
        registry = CredentialRegistry(MemoryStore())
        registry.save(CredentialRecord("cred-1", ADDRESS))
        registry.save(CredentialRecord("cred-1", OTHER_ADDRESS))
        registry.save(CredentialRecord("cred-10", ADDRESS))

        registry.delete("cred-1")

        assert [r.credential_id for r in registry.all()] == ["cred-10"]

    def test_delete_and_clear(self):
        registry = CredentialRegistry(MemoryStore())
        registry.save(CredentialRecord("cred-1", ADDRESS))
        registry.save(CredentialRecord("cred-2", ADDRESS))

        registry.delete("cred-1")
        assert registry.get("cred-1") is None

        registry.clear()
        assert registry.all() == []

    def test_corrupted_record(self):
        store = MemoryStore()
        store.set("credential:bad", '{"unexpected": 1}')

        with pytest.raises(StorageError):
            CredentialRegistry(store).get("bad")
