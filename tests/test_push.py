"""Tests for pushing local workflow edits to n8n."""

from __future__ import annotations

from conftest import FakeGateway, edit_local, make_workflow_doc

from n8n_sync.sync.blobs import BlobSlot
from n8n_sync.sync.engine import SyncEngine
from n8n_sync.sync.hashing import compute_workflow_hash
from n8n_sync.sync.state import HistoryAction, SyncStatus


def _pulled(engine, gateway, workflow_id="wf-1"):
    gateway.put(make_workflow_doc(workflow_id))
    engine.pull()


class TestPushLocalChanges:
    def test_nothing_to_push(self, engine, gateway):
        _pulled(engine, gateway)

        result = engine.push()

        assert result.total == 0
        assert gateway.writes() == []

    def test_local_edit_updates_remote(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        local = edit_local(ctx, connection.id, "wf-1", name="Edited locally")

        result = engine.push()

        assert result.updated == 1
        assert result.conflicts == []
        assert gateway.workflows["wf-1"]["name"] == "Edited locally"
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")
        assert record.sync_status == SyncStatus.SYNCED
        assert record.content_hash == compute_workflow_hash(local)

    def test_server_echo_becomes_new_base(self, ctx, connection):
        gateway = FakeGateway(normalize=True)
        engine = SyncEngine(ctx, connection.id, gateway=gateway)
        _pulled(engine, gateway)
        edit_local(ctx, connection.id, "wf-1", name="Edited locally")

        engine.push()

        echo = gateway.get_workflow("wf-1")
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")
        assert record.content_hash == compute_workflow_hash(echo)
        assert ctx.blobs.read(connection.id, "wf-1")["settings"]["timezone"] == "UTC"
        assert engine.get_status().synced[0].workflow_id == record.id

    def test_records_push_history(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        edit_local(ctx, connection.id, "wf-1", name="Edited locally")

        engine.push()

        entry = ctx.state.list_history(connection.id)[0]
        assert entry.action == HistoryAction.PUSH
        assert entry.details["updated"] == 1


class TestPushConflicts:
    def test_both_changed_blocks_remote_write(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        edit_local(ctx, connection.id, "wf-1", name="Local name")
        gateway.edit("wf-1", name="Remote name")

        result = engine.push()

        assert len(result.conflicts) == 1
        assert gateway.writes() == []
        assert gateway.workflows["wf-1"]["name"] == "Remote name"
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")
        assert record.sync_status == SyncStatus.CONFLICT
        assert ctx.blobs.exists(connection.id, "wf-1", BlobSlot.PENDING_REMOTE)

    def test_conflict_symmetry_then_pull(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        edit_local(ctx, connection.id, "wf-1", name="Local name")
        gateway.edit("wf-1", name="Remote name")
        engine.push()

        pull_result = engine.pull()

        assert len(pull_result.conflicts) == 1
        assert ctx.blobs.read(connection.id, "wf-1")["name"] == "Local name"

    def test_conflict_records_are_skipped(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        edit_local(ctx, connection.id, "wf-1", name="Local name")
        gateway.edit("wf-1", name="Remote name")
        engine.push()

        result = engine.push()

        assert result.total == 0
        assert gateway.writes() == []

    def test_force_overwrites_remote(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        edit_local(ctx, connection.id, "wf-1", name="Local name")
        gateway.edit("wf-1", name="Remote name")
        engine.push()

        result = engine.push(force=True)

        assert result.updated == 1
        assert gateway.workflows["wf-1"]["name"] == "Local name"
        assert not ctx.blobs.exists(connection.id, "wf-1", BlobSlot.PENDING_REMOTE)

    def test_remote_only_change_is_deferred(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")
        ctx.state.update_workflow(record.id, sync_status=SyncStatus.NEW_LOCAL)
        gateway.edit("wf-1", name="Remote name")

        result = engine.push(workflow_ids=["wf-1"])

        assert result.deferred == 1
        assert gateway.writes() == []
        assert record.sync_status == SyncStatus.REMOTE_MODIFIED

    def test_converged_content_repairs_base(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        edit_local(ctx, connection.id, "wf-1", name="Same")
        gateway.edit("wf-1", name="Same")

        result = engine.push()

        assert result.unchanged == 1
        assert gateway.writes() == []
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")
        assert record.sync_status == SyncStatus.SYNCED
        assert record.content_hash == ctx.blobs.content_hash(connection.id, "wf-1")


class TestPushCreate:
    def test_new_local_is_created_and_rekeyed(self, engine, ctx, connection, gateway):
        doc = make_workflow_doc(name="Brand new")
        del doc["id"], doc["createdAt"], doc["updatedAt"]
        record = engine.create_local(doc)
        assert ctx.blobs.exists(connection.id, record.id)

        result = engine.push()

        assert result.created == 1
        assert record.remote_id == "wf-100"
        assert record.sync_status == SyncStatus.SYNCED
        assert ctx.blobs.exists(connection.id, "wf-100")
        assert not ctx.blobs.exists(connection.id, record.id)
        assert gateway.workflows["wf-100"]["name"] == "Brand new"

    def test_missing_remote_is_recreated(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        edit_local(ctx, connection.id, "wf-1", name="Still wanted")
        gateway.remove("wf-1")

        result = engine.push()

        assert result.created == 1
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-100")
        assert record is not None
        assert ctx.blobs.read(connection.id, "wf-100")["name"] == "Still wanted"

    def test_force_push_recreates_missing_remote(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        gateway.remove("wf-1")

        result = engine.push(force=True)

        assert (result.created, result.updated, result.errors) == (1, 0, [])
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-100")
        assert record.sync_status == SyncStatus.SYNCED
        assert not ctx.blobs.exists(connection.id, "wf-1")
        assert gateway.writes() == [("update", "wf-1"), ("create", "wf-100")]


class TestPushErrors:
    def test_missing_blob_is_item_error(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")
        ctx.state.update_workflow(record.id, sync_status=SyncStatus.LOCAL_MODIFIED)
        ctx.blobs.path(connection.id, "wf-1").unlink()

        result = engine.push()

        assert [e.code for e in result.errors] == ["STORE_ERROR"]
        assert gateway.writes() == []

    def test_invalid_content_is_item_error(self, engine, ctx, connection, gateway):
        _pulled(engine, gateway)
        edit_local(ctx, connection.id, "wf-1", nodes=[{"name": "no type"}])

        result = engine.push()

        assert [e.code for e in result.errors] == ["VALIDATION_ERROR"]
        assert gateway.writes() == []

    def test_failed_item_does_not_stop_batch(self, engine, ctx, connection, gateway):
        gateway.put(make_workflow_doc("wf-1", "Broken"))
        gateway.put(make_workflow_doc("wf-2", "Healthy"))
        engine.pull()
        edit_local(ctx, connection.id, "wf-1", nodes=[{"name": "no type"}])
        edit_local(ctx, connection.id, "wf-2", name="Healthy, edited")

        result = engine.push()

        assert result.total == 2
        assert result.updated == 1
        assert [(e.code, e.workflow_id) for e in result.errors] == [
            ("VALIDATION_ERROR", ctx.state.get_workflow_by_remote_id(connection.id, "wf-1").id)
        ]
        assert gateway.workflows["wf-2"]["name"] == "Healthy, edited"
        assert gateway.writes() == [("update", "wf-2")]
