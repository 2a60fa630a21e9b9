"""Tests for field-level workflow diffing."""

from __future__ import annotations

import copy

import pytest

from conftest import edit_local, make_workflow_doc

from n8n_sync.errors import StoreError
from n8n_sync.sync.differ import SyncDiffer, diff_workflows
from n8n_sync.sync.hashing import compute_workflow_hash
from n8n_sync.sync.models import ChangeKind


@pytest.fixture
def base_doc():
    return make_workflow_doc()


class TestSyncDiffer:
    def test_identical_workflows_have_no_changes(self, base_doc):
        assert diff_workflows(base_doc, copy.deepcopy(base_doc)) == []

    def test_volatile_fields_only_means_no_changes(self, base_doc):
        other = dict(base_doc, id="x", updatedAt="2030-01-01T00:00:00Z")
        assert diff_workflows(base_doc, other) == []
        assert compute_workflow_hash(base_doc) == compute_workflow_hash(other)

    def test_scalar_changes(self, base_doc):
        local = dict(base_doc, name="Local", active=True)
        changes = diff_workflows(local, base_doc)
        assert [(c.path, c.kind) for c in changes] == [
            ("name", ChangeKind.MODIFIED),
            ("active", ChangeKind.MODIFIED),
        ]
        assert changes[0].local_value == "Local"
        assert changes[0].remote_value == "Daily report"

    def test_added_and_removed_nodes(self, base_doc):
        local = copy.deepcopy(base_doc)
        local["nodes"].append(
            {"id": "node-slack", "name": "Notify", "type": "n8n-nodes-base.slack", "parameters": {}}
        )
        remote = copy.deepcopy(base_doc)
        remote["nodes"] = remote["nodes"][:1]

        changes = diff_workflows(local, remote)

        kinds = {c.path: c.kind for c in changes}
        assert kinds["nodes.node-slack"] == ChangeKind.ADDED
        assert kinds["nodes.node-http"] == ChangeKind.ADDED

        changes = diff_workflows(remote, local)
        kinds = {c.path: c.kind for c in changes}
        assert kinds["nodes.node-slack"] == ChangeKind.REMOVED

    def test_nested_parameter_change(self, base_doc):
        local = copy.deepcopy(base_doc)
        local["nodes"][1]["parameters"]["url"] = "https://example.com/v2"

        changes = diff_workflows(local, base_doc)

        assert len(changes) == 1
        assert changes[0].path == 'node "Fetch Report".parameters.url'
        assert changes[0].kind == ChangeKind.MODIFIED
        assert changes[0].remote_value == "https://example.com/report"

    def test_position_is_ignored(self, base_doc):
        local = copy.deepcopy(base_doc)
        local["nodes"][0]["position"] = [500, 500]
        assert diff_workflows(local, base_doc) == []

    def test_nodes_match_by_name_without_id(self, base_doc):
        local = copy.deepcopy(base_doc)
        for node in local["nodes"]:
            del node["id"]
        remote = copy.deepcopy(local)
        remote["nodes"][0]["parameters"] = {}
        changes = diff_workflows(local, remote)
        assert [c.path for c in changes] == ['node "Schedule Trigger".parameters.rule']

    def test_connections_are_one_change(self, base_doc):
        local = copy.deepcopy(base_doc)
        local["connections"] = {}
        changes = SyncDiffer().diff(local, base_doc)
        assert [(c.path, c.kind) for c in changes] == [("connections", ChangeKind.MODIFIED)]


class TestDiffWorkflow:
    def test_reports_local_edits(self, engine, ctx, connection, gateway):
        gateway.put(make_workflow_doc())
        engine.pull()
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")
        edit_local(ctx, connection.id, "wf-1", name="Edited")

        result = engine.diff(record.id)

        assert result.has_changes
        assert result.local_hash != result.remote_hash
        assert [c.path for c in result.changes] == ["name"]
        assert record.sync_status.value == "synced"

    def test_unchanged_workflow(self, engine, ctx, connection, gateway):
        gateway.put(make_workflow_doc())
        engine.pull()
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")

        result = engine.diff(record.id)

        assert not result.has_changes
        assert result.changes == []

    def test_missing_remote(self, engine, ctx, connection, gateway):
        gateway.put(make_workflow_doc())
        engine.pull()
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")
        gateway.remove("wf-1")

        result = engine.diff(record.id)

        assert result.has_changes
        assert result.remote_hash is None
        assert result.changes == []

    def test_missing_local_copy_raises(self, engine, ctx, connection, gateway):
        gateway.put(make_workflow_doc())
        engine.pull()
        record = ctx.state.get_workflow_by_remote_id(connection.id, "wf-1")
        ctx.blobs.path(connection.id, "wf-1").unlink()

        with pytest.raises(StoreError):
            engine.diff(record.id)

    def test_diff_all(self, engine, gateway):
        gateway.put(make_workflow_doc("wf-1"))
        gateway.put(make_workflow_doc("wf-2", "Second"))
        engine.pull()

        diffs = engine.diff_all()

        assert len(diffs) == 2
        assert not any(d.has_changes for d in diffs)
