"""Tests for LocalFileStore atomic writes."""

import os

import pytest

from src.infrastructure.persistence.file_store import LocalFileStore


@pytest.fixture()
def store(tmp_path):
    return LocalFileStore(tmp_path / "store")


class TestLocalFileStore:
    """Tests for LocalFileStore."""

    def test_write_and_read(self, store):
        store.write_bytes_atomic("deploy/abc.json", b'{"a": 1}')
        assert store.read_bytes("deploy/abc.json") == b'{"a": 1}'

    def test_overwrite_leaves_no_temp_files(self, store):
        store.write_bytes_atomic("deploy/abc.json", b"one")
        store.write_bytes_atomic("deploy/abc.json", b"two")
        assert store.read_bytes("deploy/abc.json") == b"two"
        assert [p.name for p in (store.root / "deploy").iterdir()] == ["abc.json"]

    def test_failed_rename_keeps_old_content(self, store, monkeypatch):
        store.write_bytes_atomic("deploy/abc.json", b"old")

        def crash(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", crash)
        with pytest.raises(OSError, match="disk full"):
            store.write_bytes_atomic("deploy/abc.json", b"new")

        assert store.read_bytes("deploy/abc.json") == b"old"
        assert [p.name for p in (store.root / "deploy").iterdir()] == ["abc.json"]

    def test_read_missing(self, store):
        with pytest.raises(FileNotFoundError):
            store.read_bytes("nope.json")

    def test_delete(self, store):
        store.write_bytes_atomic("a.json", b"x")
        assert store.delete("a.json") is True
        assert store.delete("a.json") is False

    def test_list_keys_skips_temp_files(self, store):
        store.write_bytes_atomic("a/1.json", b"x")
        store.write_bytes_atomic("b/2.json", b"y")
        (store.root / "a" / "1_abc.tmp").write_bytes(b"partial")
        assert store.list_keys(suffix=".json") == ["a/1.json", "b/2.json"]
        assert store.list_keys(prefix="b", suffix=".json") == ["b/2.json"]
        assert store.list_keys(prefix="missing") == []

    def test_rejects_escaping_keys(self, store):
        with pytest.raises(ValueError, match="escapes store root"):
            store.write_bytes_atomic("../outside.json", b"x")
