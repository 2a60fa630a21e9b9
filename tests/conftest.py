"""Pytest configuration and shared fixtures.

This module provides fixtures for testing n8n-sync, including a
temporary project, its sync context, a stored connection and an
in-memory stand-in for the n8n workflows API.
"""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from n8n_sync.config import init_project, load_settings
from n8n_sync.context import SyncContext
from n8n_sync.errors import NotFoundError
from n8n_sync.n8n_client.schemas import Workflow, WorkflowInput
from n8n_sync.sync.engine import SyncEngine
from n8n_sync.sync.state import ConnectionRecord

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_workflow_doc(
    workflow_id: str = "wf-1",
    name: str = "Daily report",
    *,
    active: bool = False,
) -> dict[str, Any]:
    """Build a realistic workflow document as the n8n API returns it."""
    nodes = [
        {
            "id": "node-trigger",
            "name": "Schedule Trigger",
            "type": "n8n-nodes-base.scheduleTrigger",
            "typeVersion": 1.2,
            "position": [0, 0],
            "parameters": {"rule": {"interval": [{"field": "days"}]}},
        },
        {
            "id": "node-http",
            "name": "Fetch Report",
            "type": "n8n-nodes-base.httpRequest",
            "typeVersion": 4,
            "position": [220, 0],
            "parameters": {"url": "https://example.com/report", "method": "GET"},
        },
    ]
    return {
        "id": workflow_id,
        "name": name,
        "active": active,
        "nodes": nodes,
        "connections": {
            "Schedule Trigger": {
                "main": [[{"node": "Fetch Report", "type": "main", "index": 0}]]
            }
        },
        "settings": {"executionOrder": "v1"},
        "createdAt": BASE_TIME.isoformat(),
        "updatedAt": BASE_TIME.isoformat(),
    }


class FakeGateway:
    """In-memory n8n workflows API.

    Writes echo the stored workflow back with fresh timestamps.  With
    ``normalize`` set, the server also fills in a default ``timezone``
    setting, mimicking n8n adding defaults to what it stores.
    """

    def __init__(self, normalize: bool = False) -> None:
        self.normalize = normalize
        self.workflows: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str | None]] = []
        self._clock = BASE_TIME
        self._next_id = 100

    def _tick(self) -> str:
        self._clock += timedelta(minutes=1)
        return self._clock.isoformat()

    # -- seeding helpers -------------------------------------------------

    def put(self, document: dict[str, Any]) -> Workflow:
        self.workflows[document["id"]] = copy.deepcopy(document)
        return Workflow.model_validate(document)

    def edit(self, workflow_id: str, **changes: Any) -> None:
        doc = self.workflows[workflow_id]
        doc.update(changes)
        doc["updatedAt"] = self._tick()

    def remove(self, workflow_id: str) -> None:
        del self.workflows[workflow_id]

    # -- gateway ---------------------------------------------------------

    def list_all_workflows(
        self, *, active: bool | None = None, limit: int | None = None
    ) -> list[dict[str, Any]]:
        self.calls.append(("list", None))
        return [
            copy.deepcopy(doc)
            for doc in self.workflows.values()
            if active is None or doc.get("active") == active
        ]

    def get_workflow(self, workflow_id: str) -> Workflow:
        self.calls.append(("get", workflow_id))
        if workflow_id not in self.workflows:
            raise NotFoundError(f"Workflow {workflow_id} not found", 404)
        return Workflow.model_validate(copy.deepcopy(self.workflows[workflow_id]))

    def create_workflow(self, workflow: WorkflowInput) -> Workflow:
        workflow_id = f"wf-{self._next_id}"
        self._next_id += 1
        self.calls.append(("create", workflow_id))
        now = self._tick()
        doc = {
            "id": workflow_id,
            "active": False,
            **self._stored(workflow),
            "createdAt": now,
            "updatedAt": now,
        }
        self.workflows[workflow_id] = doc
        return Workflow.model_validate(copy.deepcopy(doc))

    def update_workflow(self, workflow_id: str, workflow: WorkflowInput) -> Workflow:
        self.calls.append(("update", workflow_id))
        if workflow_id not in self.workflows:
            raise NotFoundError(f"Workflow {workflow_id} not found", 404)
        doc = self.workflows[workflow_id]
        for key in ("name", "nodes", "connections", "settings", "staticData"):
            doc.pop(key, None)
        doc.update(self._stored(workflow))
        doc["updatedAt"] = self._tick()
        return Workflow.model_validate(copy.deepcopy(doc))

    def _stored(self, workflow: WorkflowInput) -> dict[str, Any]:
        content = workflow.to_document()
        if self.normalize:
            settings = dict(content.get("settings") or {})
            settings.setdefault("timezone", "UTC")
            content["settings"] = settings
        return content

    def writes(self) -> list[tuple[str, str | None]]:
        return [c for c in self.calls if c[0] in ("create", "update")]


# ============================================================================
# Project Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "N8N_SYNC_PROJECT_ROOT",
        "N8N_SYNC_STATE_FILE",
        "N8N_SYNC_WORKFLOWS_DIR",
        "N8N_SYNC_TIMEOUT",
        "N8N_SYNC_LOG_LEVEL",
        "N8N_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    init_project(root)
    return root


@pytest.fixture
def ctx(project_root: Path) -> SyncContext:
    return SyncContext.from_settings(load_settings(project_root))


@pytest.fixture
def connection(ctx: SyncContext) -> ConnectionRecord:
    record = ConnectionRecord(
        name="prod", base_url="https://n8n.example.com", api_key="test-key"
    )
    ctx.state.add_connection(record)
    return record


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def engine(ctx: SyncContext, connection: ConnectionRecord, gateway: FakeGateway) -> SyncEngine:
    return SyncEngine(ctx, connection.id, gateway=gateway)


def edit_local(ctx: SyncContext, connection_id: str, key: str, **changes: Any) -> dict[str, Any]:
    """Simulate a user editing the local workflow file."""
    document = ctx.blobs.read(connection_id, key)
    assert document is not None
    document.update(changes)
    ctx.blobs.write(connection_id, key, document)
    return document
