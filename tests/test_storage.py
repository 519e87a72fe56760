from pathlib import Path

import pytest

from gamebook.services.storage import (
    FileStorageProvider,
    InMemoryStorageProvider,
    StorageAccessError,
    StorageQuotaExceededError,
)


def test_in_memory_round_trip() -> None:
    storage = InMemoryStorageProvider()
    assert storage.get_item("a") is None
    storage.set_item("a", "1")
    storage.set_item("b", "2")
    assert storage.get_item("a") == "1"
    assert storage.keys() == ["a", "b"]
    storage.remove_item("a")
    storage.remove_item("missing")
    assert storage.keys() == ["b"]


def test_in_memory_quota_counts_other_keys() -> None:
    storage = InMemoryStorageProvider(quota_bytes=10)
    storage.set_item("a", "12345")
    storage.set_item("a", "1234567890")
    with pytest.raises(StorageQuotaExceededError):
        storage.set_item("b", "x")
    assert storage.get_item("b") is None


def test_in_memory_access_denied() -> None:
    storage = InMemoryStorageProvider(access_denied=True)
    with pytest.raises(StorageAccessError):
        storage.get_item("a")
    with pytest.raises(StorageAccessError):
        storage.set_item("a", "1")


def test_file_storage_round_trip(tmp_path: Path) -> None:
    storage = FileStorageProvider(tmp_path / "saves")
    assert storage.keys() == []
    assert storage.get_item("slot_1") is None

    storage.set_item("slot_1", '{"a": 1}')
    assert (tmp_path / "saves" / "slot_1.json").read_text(encoding="utf-8") == '{"a": 1}'
    assert storage.get_item("slot_1") == '{"a": 1}'
    assert storage.keys() == ["slot_1"]

    storage.remove_item("slot_1")
    storage.remove_item("slot_1")
    assert storage.keys() == []


def test_file_storage_rejects_path_like_keys(tmp_path: Path) -> None:
    storage = FileStorageProvider(tmp_path)
    with pytest.raises(ValueError):
        storage.set_item("../escape", "x")


def test_file_storage_defaults_to_save_dir(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GAMEBOOK_SAVE_DIR", str(tmp_path / "env_saves"))
    assert FileStorageProvider().base_dir == tmp_path / "env_saves"
