"""Tests for the workflow blob store."""

from __future__ import annotations

import pytest

from conftest import make_workflow_doc

from n8n_sync.errors import StoreError
from n8n_sync.sync.blobs import BlobSlot, BlobStore
from n8n_sync.sync.hashing import compute_workflow_hash


@pytest.fixture
def store(tmp_path) -> BlobStore:
    return BlobStore(tmp_path / "workflows")


class TestBlobStore:
    def test_read_missing_returns_none(self, store):
        assert store.read("conn", "wf-1") is None
        assert store.content_hash("conn", "wf-1") is None

    def test_write_then_read(self, store):
        doc = make_workflow_doc()
        path = store.write("conn", "wf-1", doc)
        assert path == store.root / "conn" / "wf-1" / "workflow.json"
        assert store.read("conn", "wf-1") == doc
        assert store.content_hash("conn", "wf-1") == compute_workflow_hash(doc)

    def test_slots_are_independent(self, store):
        store.write("conn", "wf-1", make_workflow_doc(name="local"))
        store.write("conn", "wf-1", make_workflow_doc(name="remote"), BlobSlot.PENDING_REMOTE)
        assert store.read("conn", "wf-1")["name"] == "local"
        assert store.read("conn", "wf-1", BlobSlot.PENDING_REMOTE)["name"] == "remote"

        store.delete("conn", "wf-1", BlobSlot.PENDING_REMOTE)
        assert not store.exists("conn", "wf-1", BlobSlot.PENDING_REMOTE)
        assert store.exists("conn", "wf-1")

    def test_invalid_json_raises(self, store):
        path = store.path("conn", "wf-1")
        path.parent.mkdir(parents=True)
        path.write_text("[1, 2", encoding="utf-8")
        with pytest.raises(StoreError):
            store.read("conn", "wf-1")

    def test_non_object_raises(self, store):
        path = store.path("conn", "wf-1")
        path.parent.mkdir(parents=True)
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StoreError):
            store.read("conn", "wf-1")

    def test_move_rekeys_all_slots(self, store):
        store.write("conn", "local-id", make_workflow_doc())
        store.write("conn", "local-id", make_workflow_doc(), BlobSlot.PENDING_REMOTE)
        store.move("conn", "local-id", "wf-9")
        assert not (store.root / "conn" / "local-id").exists()
        assert store.exists("conn", "wf-9")
        assert store.exists("conn", "wf-9", BlobSlot.PENDING_REMOTE)

    def test_remove_connection(self, store):
        store.write("conn", "wf-1", make_workflow_doc())
        store.write("other", "wf-1", make_workflow_doc())
        store.remove_connection("conn")
        assert not (store.root / "conn").exists()
        assert store.exists("other", "wf-1")
