"""Pydantic models for sync operation results and status reports."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from n8n_sync.sync.state import SyncStatus


class SyncError(BaseModel):
    """An item-level failure inside a pull or push batch."""

    workflow_id: str | None = None
    message: str
    code: str


class ConflictInfo(BaseModel):
    """A workflow whose local and remote content diverged independently."""

    workflow_id: str
    workflow_name: str
    local_hash: str
    remote_hash: str
    local_updated_at: datetime | None = None
    remote_updated_at: datetime | None = None


class PullResult(BaseModel):
    total: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0
    conflicts: list[ConflictInfo] = Field(default_factory=list)
    errors: list[SyncError] = Field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        """Aggregate counts recorded in the sync history."""
        return {
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "deleted": self.deleted,
            "conflicts": len(self.conflicts),
            "errors": len(self.errors),
        }


class PushResult(BaseModel):
    total: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deferred: int = 0
    conflicts: list[ConflictInfo] = Field(default_factory=list)
    errors: list[SyncError] = Field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "deferred": self.deferred,
            "conflicts": len(self.conflicts),
            "errors": len(self.errors),
        }


class SyncResult(BaseModel):
    """Combined outcome of a pull followed by a push."""

    pulled: int = 0
    pushed: int = 0
    conflicts: list[ConflictInfo] = Field(default_factory=list)
    errors: list[SyncError] = Field(default_factory=list)
    pull: PullResult = Field(default_factory=PullResult)
    push: PushResult = Field(default_factory=PushResult)


class ConflictResolution(StrEnum):
    KEEP_LOCAL = "keep-local"
    KEEP_REMOTE = "keep-remote"


class StatusEntry(BaseModel):
    """Status snapshot for one tracked workflow."""

    workflow_id: str
    name: str
    remote_id: str | None = None
    path: str
    status: SyncStatus
    blob_missing: bool = False


class StatusReport(BaseModel):
    """Per-connection workflows grouped by their reconciled status."""

    connection_id: str
    total: int = 0
    synced: list[StatusEntry] = Field(default_factory=list)
    local_modified: list[StatusEntry] = Field(default_factory=list)
    remote_modified: list[StatusEntry] = Field(default_factory=list)
    conflict: list[StatusEntry] = Field(default_factory=list)
    new_local: list[StatusEntry] = Field(default_factory=list)
    deleted_remote: list[StatusEntry] = Field(default_factory=list)

    def add(self, entry: StatusEntry) -> None:
        getattr(self, entry.status.value).append(entry)
        self.total += 1

    def counts(self) -> dict[str, int]:
        return {status.value: len(getattr(self, status.value)) for status in SyncStatus}


class ChangeKind(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class FieldChange(BaseModel):
    """One field-level difference; "added" means present only locally."""

    path: str
    kind: ChangeKind
    local_value: Any = None
    remote_value: Any = None


class WorkflowDiff(BaseModel):
    workflow_id: str
    workflow_name: str
    remote_id: str | None = None
    has_changes: bool
    local_hash: str
    remote_hash: str | None = None
    changes: list[FieldChange] = Field(default_factory=list)
