"""Conflict detection for bidirectional sync.

A single hash-based policy is shared by pull and push: each side is
compared against the content hash recorded at the last successful sync.
Modification timestamps are stored for display only and never decide a
conflict.
"""

from __future__ import annotations

from enum import StrEnum

from n8n_sync.sync.state import SyncStatus, WorkflowRecord


class ConflictType(StrEnum):
    """Classification of changes detected between sync points."""

    NONE = "none"
    LOCAL_ONLY = "local_only"
    REMOTE_ONLY = "remote_only"
    BOTH_CHANGED = "both_changed"
    CONVERGED = "converged"


class ConflictDetector:
    """Detects and classifies conflicts between local and remote state."""

    @staticmethod
    def has_local_changes(record: WorkflowRecord, local_hash: str | None) -> bool:
        """Whether the local copy diverged from the last-synced base.

        A record explicitly flagged ``local_modified`` counts as changed even
        when its blob still matches.  A missing blob does not: it is repaired
        by the next pull rather than pushed.
        """
        if record.sync_status == SyncStatus.LOCAL_MODIFIED:
            return True
        if local_hash is None:
            return False
        return local_hash != record.content_hash

    @staticmethod
    def has_remote_changes(record: WorkflowRecord, remote_hash: str) -> bool:
        return remote_hash != record.content_hash

    def detect(
        self,
        record: WorkflowRecord,
        local_hash: str | None,
        remote_hash: str,
    ) -> ConflictType:
        """Classify the change state for a record.

        Args:
            record: The tracked workflow; its ``content_hash`` is the base.
            local_hash: Hash of the local blob, ``None`` if it is missing.
            remote_hash: Hash of the current remote workflow.

        Returns:
            - ``CONVERGED`` -- both sides hold identical content, whatever
              the base says.
            - ``NONE`` -- neither side changed.
            - ``LOCAL_ONLY`` / ``REMOTE_ONLY`` -- one side changed.
            - ``BOTH_CHANGED`` -- both sides changed independently.
        """
        if local_hash is not None and local_hash == remote_hash:
            return ConflictType.CONVERGED

        local_changed = self.has_local_changes(record, local_hash)
        remote_changed = self.has_remote_changes(record, remote_hash)

        if local_changed and remote_changed:
            return ConflictType.BOTH_CHANGED
        if local_changed:
            return ConflictType.LOCAL_ONLY
        if remote_changed:
            return ConflictType.REMOTE_ONLY
        return ConflictType.NONE
