"""Sync state persistence using JSON-backed Pydantic models.

Tracks connections, the per-workflow sync metadata and the append-only
sync history in a single JSON file.  Full workflow content lives in the
blob store; this file only holds what the engine needs to decide what to
do next.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path
from typing import Any

import pydantic
from pydantic import BaseModel, Field

from n8n_sync.errors import ConnectionNotFoundError, StoreError, WorkflowNotFoundError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return uuid.uuid4().hex


class SyncStatus(StrEnum):
    """Sync status of a tracked workflow."""

    SYNCED = "synced"
    LOCAL_MODIFIED = "local_modified"
    REMOTE_MODIFIED = "remote_modified"
    CONFLICT = "conflict"
    NEW_LOCAL = "new_local"
    DELETED_REMOTE = "deleted_remote"


class HistoryAction(StrEnum):
    PULL = "pull"
    PUSH = "push"
    CONFLICT_RESOLVED = "conflict_resolved"


class ConnectionRecord(BaseModel):
    """A configured n8n instance."""

    id: str = Field(default_factory=generate_id)
    name: str
    base_url: str
    api_key: str
    created_at: datetime = Field(default_factory=utcnow)
    last_sync_at: datetime | None = None


class WorkflowRecord(BaseModel):
    """Sync metadata for one locally tracked workflow.

    ``content_hash`` is the hash at the last moment the record was
    ``synced``; it is the common base for three-way change detection.
    """

    id: str = Field(default_factory=generate_id)
    connection_id: str
    remote_id: str | None = None
    name: str
    active: bool = False
    content_hash: str = ""
    local_updated_at: datetime | None = None
    remote_updated_at: datetime | None = None
    sync_status: SyncStatus = SyncStatus.SYNCED
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def blob_key(self) -> str:
        """Blob store key: the remote id, or the local id before creation."""
        return self.remote_id or self.id


class SyncHistoryEntry(BaseModel):
    """Append-only audit record of a sync action."""

    id: int
    connection_id: str
    workflow_id: str | None = None
    action: HistoryAction
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class SyncState(BaseModel):
    """Root model for the persisted sync state file."""

    version: int = 1
    connections: list[ConnectionRecord] = Field(default_factory=list)
    workflows: list[WorkflowRecord] = Field(default_factory=list)
    history: list[SyncHistoryEntry] = Field(default_factory=list)


class SyncStateManager:
    """Manages reading, writing, and querying the JSON sync state file.

    Every mutation is persisted immediately.  There is no cross-process
    locking: two processes mutating the same file concurrently is
    unsupported and the last writer wins.

    Args:
        state_file: Path to the JSON state file.
    """

    def __init__(self, state_file: str | Path) -> None:
        self._state_file = Path(state_file)
        self._state: SyncState | None = None

    @property
    def state_file(self) -> Path:
        return self._state_file

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> SyncState:
        """Load sync state from disk, returning an empty state if the file
        does not exist or is empty.

        Raises:
            StoreError: If the file cannot be read or parsed.
        """
        try:
            if self._state_file.exists() and self._state_file.stat().st_size > 0:
                raw = self._state_file.read_text(encoding="utf-8")
                self._state = SyncState.model_validate_json(raw)
            else:
                self._state = SyncState()
        except (OSError, pydantic.ValidationError) as exc:
            raise StoreError(f"Cannot load sync state {self._state_file}: {exc}") from exc
        return self._state

    def save(self, state: SyncState) -> None:
        """Persist the given sync state to disk as pretty-printed JSON.

        The file is written to a sibling temp file and renamed into place.
        """
        self._state = state
        tmp = self._state_file.with_name(self._state_file.name + ".tmp")
        try:
            self._state_file.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(state.model_dump_json(indent=2) + "\n", encoding="utf-8")
            tmp.replace(self._state_file)
        except OSError as exc:
            raise StoreError(f"Cannot write sync state {self._state_file}: {exc}") from exc

    def _ensure_loaded(self) -> SyncState:
        if self._state is None:
            self.load()
        assert self._state is not None  # noqa: S101
        return self._state

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def list_connections(self) -> list[ConnectionRecord]:
        return list(self._ensure_loaded().connections)

    def get_connection(self, id_or_name: str) -> ConnectionRecord | None:
        """Look up a connection by id first, then by name."""
        state = self._ensure_loaded()
        for conn in state.connections:
            if conn.id == id_or_name:
                return conn
        for conn in state.connections:
            if conn.name == id_or_name:
                return conn
        return None

    def require_connection(self, id_or_name: str) -> ConnectionRecord:
        conn = self.get_connection(id_or_name)
        if conn is None:
            raise ConnectionNotFoundError(f"Connection not found: {id_or_name}")
        return conn

    def add_connection(self, connection: ConnectionRecord) -> None:
        state = self._ensure_loaded()
        state.connections.append(connection)
        self.save(state)

    def update_connection(self, connection_id: str, **updates: object) -> ConnectionRecord:
        state = self._ensure_loaded()
        conn = self.require_connection(connection_id)
        for key, value in updates.items():
            setattr(conn, key, value)
        self.save(state)
        return conn

    def touch_connection(self, connection_id: str) -> None:
        """Stamp the connection's ``last_sync_at`` with the current time."""
        self.update_connection(connection_id, last_sync_at=utcnow())

    def remove_connection(self, connection_id: str) -> bool:
        """Remove a connection together with its workflows and history."""
        state = self._ensure_loaded()
        if not any(c.id == connection_id for c in state.connections):
            return False
        state.workflows = [w for w in state.workflows if w.connection_id != connection_id]
        state.history = [h for h in state.history if h.connection_id != connection_id]
        state.connections = [c for c in state.connections if c.id != connection_id]
        self.save(state)
        return True

    # ------------------------------------------------------------------
    # Workflow records
    # ------------------------------------------------------------------

    def list_workflows(
        self,
        connection_id: str | None = None,
        status: SyncStatus | None = None,
    ) -> list[WorkflowRecord]:
        return [
            w
            for w in self._ensure_loaded().workflows
            if (connection_id is None or w.connection_id == connection_id)
            and (status is None or w.sync_status == status)
        ]

    def get_workflow(self, workflow_id: str) -> WorkflowRecord | None:
        for w in self._ensure_loaded().workflows:
            if w.id == workflow_id:
                return w
        return None

    def require_workflow(self, workflow_id: str) -> WorkflowRecord:
        record = self.get_workflow(workflow_id)
        if record is None:
            raise WorkflowNotFoundError(f"Workflow not found: {workflow_id}")
        return record

    def get_workflow_by_remote_id(
        self, connection_id: str, remote_id: str
    ) -> WorkflowRecord | None:
        for w in self._ensure_loaded().workflows:
            if w.connection_id == connection_id and w.remote_id == remote_id:
                return w
        return None

    def add_workflow(self, record: WorkflowRecord) -> None:
        """Add a new record and persist.

        Raises:
            StoreError: If the connection already tracks the remote id.
        """
        state = self._ensure_loaded()
        if record.remote_id is not None and self.get_workflow_by_remote_id(
            record.connection_id, record.remote_id
        ):
            raise StoreError(
                f"Workflow {record.remote_id} is already tracked for "
                f"connection {record.connection_id}"
            )
        state.workflows.append(record)
        self.save(state)

    def update_workflow(self, workflow_id: str, **updates: object) -> WorkflowRecord:
        """Update fields on an existing record and persist.

        Raises:
            WorkflowNotFoundError: If no record exists for the id.
        """
        state = self._ensure_loaded()
        record = self.require_workflow(workflow_id)
        for key, value in updates.items():
            setattr(record, key, value)
        self.save(state)
        return record

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def append_history(
        self,
        connection_id: str,
        action: HistoryAction,
        details: dict[str, Any] | None = None,
        workflow_id: str | None = None,
    ) -> SyncHistoryEntry:
        state = self._ensure_loaded()
        next_id = max((h.id for h in state.history), default=0) + 1
        entry = SyncHistoryEntry(
            id=next_id,
            connection_id=connection_id,
            workflow_id=workflow_id,
            action=action,
            details=details or {},
        )
        state.history.append(entry)
        self.save(state)
        return entry

    def list_history(
        self, connection_id: str | None = None, limit: int | None = None
    ) -> list[SyncHistoryEntry]:
        """Return history entries, newest first."""
        entries = [
            h
            for h in reversed(self._ensure_loaded().history)
            if connection_id is None or h.connection_id == connection_id
        ]
        return entries[:limit] if limit is not None else entries
