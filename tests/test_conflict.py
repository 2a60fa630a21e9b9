"""Tests for hash-based conflict detection."""

from __future__ import annotations

import pytest

from n8n_sync.sync.conflict import ConflictDetector, ConflictType
from n8n_sync.sync.state import SyncStatus, WorkflowRecord

BASE = "base-hash"


def _record(status: SyncStatus = SyncStatus.SYNCED) -> WorkflowRecord:
    return WorkflowRecord(
        connection_id="conn", remote_id="wf-1", name="A", content_hash=BASE, sync_status=status
    )


class TestConflictDetector:
    @pytest.fixture
    def detector(self) -> ConflictDetector:
        return ConflictDetector()

    @pytest.mark.parametrize(
        ("local", "remote", "expected"),
        [
            (BASE, BASE, ConflictType.CONVERGED),
            (BASE, "remote-2", ConflictType.REMOTE_ONLY),
            ("local-2", BASE, ConflictType.LOCAL_ONLY),
            ("local-2", "remote-2", ConflictType.BOTH_CHANGED),
            ("same-2", "same-2", ConflictType.CONVERGED),
        ],
    )
    def test_classification(self, detector, local, remote, expected):
        assert detector.detect(_record(), local, remote) == expected

    def test_missing_blob_is_not_a_local_change(self, detector):
        assert detector.detect(_record(), None, BASE) == ConflictType.NONE
        assert detector.detect(_record(), None, "remote-2") == ConflictType.REMOTE_ONLY

    def test_local_modified_flag_counts_as_local_change(self, detector):
        record = _record(SyncStatus.LOCAL_MODIFIED)
        assert detector.detect(record, BASE, "remote-2") == ConflictType.BOTH_CHANGED

    def test_symmetric_for_pull_and_push(self, detector):
        """Both directions see the same outcome for the same three hashes."""
        record = _record()
        assert detector.detect(record, "local-2", "remote-2") == ConflictType.BOTH_CHANGED
        assert detector.has_local_changes(record, "local-2")
        assert detector.has_remote_changes(record, "remote-2")
