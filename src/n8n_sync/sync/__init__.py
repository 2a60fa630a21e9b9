"""Sync engine package for bidirectional n8n <-> local workflow synchronization."""

from n8n_sync.sync.blobs import BlobSlot, BlobStore
from n8n_sync.sync.conflict import ConflictDetector, ConflictType
from n8n_sync.sync.differ import SyncDiffer, diff_workflows
from n8n_sync.sync.engine import SyncEngine, reconcile_status
from n8n_sync.sync.hashing import compute_content_hash, compute_file_hash, compute_workflow_hash
from n8n_sync.sync.models import (
    ConflictInfo,
    ConflictResolution,
    PullResult,
    PushResult,
    StatusReport,
    SyncResult,
    WorkflowDiff,
)
from n8n_sync.sync.state import (
    ConnectionRecord,
    SyncState,
    SyncStateManager,
    SyncStatus,
    WorkflowRecord,
)

__all__ = [
    "BlobSlot",
    "BlobStore",
    "ConflictDetector",
    "ConflictInfo",
    "ConflictResolution",
    "ConflictType",
    "ConnectionRecord",
    "PullResult",
    "PushResult",
    "StatusReport",
    "SyncDiffer",
    "SyncEngine",
    "SyncResult",
    "SyncState",
    "SyncStateManager",
    "SyncStatus",
    "WorkflowDiff",
    "WorkflowRecord",
    "compute_content_hash",
    "compute_file_hash",
    "compute_workflow_hash",
    "diff_workflows",
    "reconcile_status",
]
