"""Sync engine orchestrator for bidirectional n8n <-> local sync.

Sequences pull and push for one connection, answers status queries and
drives conflict resolution.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pydantic

from n8n_sync.errors import ConflictResolutionError, InvalidStateError, StoreError, ValidationError
from n8n_sync.n8n_client.client import N8nClient
from n8n_sync.n8n_client.schemas import WorkflowInput
from n8n_sync.n8n_client.workflows import WorkflowGateway
from n8n_sync.sync.blobs import BlobSlot
from n8n_sync.sync.differ import diff_all_workflows, diff_workflow
from n8n_sync.sync.models import (
    ConflictInfo,
    ConflictResolution,
    PullResult,
    PushResult,
    StatusEntry,
    StatusReport,
    SyncResult,
    WorkflowDiff,
)
from n8n_sync.sync.pull import pull_workflows
from n8n_sync.sync.push import push_workflows
from n8n_sync.sync.state import (
    HistoryAction,
    SyncHistoryEntry,
    SyncStatus,
    WorkflowRecord,
    utcnow,
)

if TYPE_CHECKING:
    from n8n_sync.context import SyncContext

logger = logging.getLogger(__name__)


def reconcile_status(
    stored_status: SyncStatus,
    stored_hash: str,
    current_hash: str | None,
) -> SyncStatus:
    """Cross-check a stored status against the blob on disk.

    A ``synced`` record whose blob no longer hashes to the stored base was
    edited outside the engine and is reported as ``local_modified``.  Pure:
    the stored record is not updated.
    """
    if (
        stored_status == SyncStatus.SYNCED
        and current_hash is not None
        and current_hash != stored_hash
    ):
        return SyncStatus.LOCAL_MODIFIED
    return stored_status


class SyncEngine:
    """Orchestrates sync between one n8n connection and the local project.

    Args:
        ctx: Project context (settings, record store, blob store).
        connection_id: Connection id or name.
        gateway: Workflows API to use; built from the stored connection
            credentials when omitted.

    Raises:
        ConnectionNotFoundError: If the connection does not exist.
    """

    def __init__(
        self,
        ctx: SyncContext,
        connection_id: str,
        gateway: WorkflowGateway | None = None,
    ) -> None:
        self._ctx = ctx
        self._connection = ctx.state.require_connection(connection_id)
        if gateway is None:
            client = N8nClient(
                base_url=self._connection.base_url,
                api_key=self._connection.api_key,
                timeout=ctx.settings.timeout,
            )
            gateway = client.workflows
        self._gateway = gateway

    @property
    def connection_id(self) -> str:
        return self._connection.id

    # ------------------------------------------------------------------
    # Pull / push
    # ------------------------------------------------------------------

    def sync(self, workflow_ids: list[str] | None = None, force: bool = False) -> SyncResult:
        """Full sync: pull then push."""
        logger.info("Starting sync...")
        pull_result = self.pull(workflow_ids=workflow_ids, force=force)
        push_result = self.push(workflow_ids=workflow_ids, force=force)

        result = SyncResult(
            pulled=pull_result.created + pull_result.updated,
            pushed=push_result.created + push_result.updated,
            conflicts=[*pull_result.conflicts, *push_result.conflicts],
            errors=[*pull_result.errors, *push_result.errors],
            pull=pull_result,
            push=push_result,
        )
        logger.info(
            "Sync complete: %d pulled, %d pushed, %d conflicts",
            result.pulled,
            result.pushed,
            len(result.conflicts),
        )
        return result

    def pull(self, workflow_ids: list[str] | None = None, force: bool = False) -> PullResult:
        return pull_workflows(
            self._ctx, self._gateway, self.connection_id, workflow_ids=workflow_ids, force=force
        )

    def push(self, workflow_ids: list[str] | None = None, force: bool = False) -> PushResult:
        return push_workflows(
            self._ctx, self._gateway, self.connection_id, workflow_ids=workflow_ids, force=force
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> StatusReport:
        """Classify every tracked workflow, checking blobs on disk."""
        report = StatusReport(connection_id=self.connection_id)
        blobs = self._ctx.blobs

        for record in self._ctx.state.list_workflows(self.connection_id):
            path = blobs.path(self.connection_id, record.blob_key)
            try:
                current_hash = blobs.content_hash(self.connection_id, record.blob_key)
            except StoreError as exc:
                # An unreadable blob is a local edit gone wrong, not a sync.
                logger.warning("Cannot hash %s: %s", path, exc)
                current_hash = ""
            report.add(
                StatusEntry(
                    workflow_id=record.id,
                    name=record.name,
                    remote_id=record.remote_id,
                    path=str(path),
                    status=reconcile_status(
                        record.sync_status, record.content_hash, current_hash
                    ),
                    blob_missing=current_hash is None,
                )
            )
        return report

    def get_conflicts(self) -> list[ConflictInfo]:
        """List every workflow of this connection in ``conflict`` status."""
        conflicts: list[ConflictInfo] = []
        blobs = self._ctx.blobs
        for record in self._ctx.state.list_workflows(self.connection_id, SyncStatus.CONFLICT):
            local_hash = blobs.content_hash(self.connection_id, record.blob_key)
            remote_hash = blobs.content_hash(
                self.connection_id, record.blob_key, BlobSlot.PENDING_REMOTE
            )
            conflicts.append(
                ConflictInfo(
                    workflow_id=record.id,
                    workflow_name=record.name,
                    local_hash=local_hash or record.content_hash,
                    remote_hash=remote_hash or "",
                    local_updated_at=record.local_updated_at,
                    remote_updated_at=record.remote_updated_at,
                )
            )
        return conflicts

    # ------------------------------------------------------------------
    # Conflict resolution
    # ------------------------------------------------------------------

    def resolve_conflict(
        self,
        workflow_id: str,
        resolution: ConflictResolution | str,
    ) -> PullResult | PushResult:
        """Resolve a conflict by keeping the local or the remote version.

        Raises:
            WorkflowNotFoundError: If the record does not exist.
            InvalidStateError: If the record is not in conflict.
            ConflictResolutionError: If the forced pull/push failed.
        """
        resolution = ConflictResolution(resolution)
        record = self._ctx.state.require_workflow(workflow_id)
        if record.connection_id != self.connection_id:
            raise InvalidStateError(
                f"Workflow {workflow_id} belongs to another connection"
            )
        if record.sync_status != SyncStatus.CONFLICT:
            raise InvalidStateError(f"Workflow {record.name} is not in conflict state")

        outcome: PullResult | PushResult
        if resolution == ConflictResolution.KEEP_LOCAL:
            outcome = self.push(workflow_ids=[record.id], force=True)
        else:
            if record.remote_id is None:
                raise InvalidStateError(f"Workflow {record.name} has no remote counterpart")
            outcome = self.pull(workflow_ids=[record.remote_id], force=True)

        if outcome.errors:
            raise ConflictResolutionError(
                f"Could not resolve conflict for {record.name}: {outcome.errors[0].message}"
            )

        self._ctx.state.append_history(
            self.connection_id,
            HistoryAction.CONFLICT_RESOLVED,
            {"resolution": resolution.value},
            workflow_id=record.id,
        )
        logger.info("Conflict resolved for %s: %s", record.name, resolution.value)
        return outcome

    # ------------------------------------------------------------------
    # Local creation, diff and history
    # ------------------------------------------------------------------

    def create_local(self, document: dict[str, Any]) -> WorkflowRecord:
        """Stage a workflow that exists only locally as ``new_local``.

        The next push creates it remotely and re-keys its blob.

        Raises:
            ValidationError: If *document* is not valid workflow content.
        """
        try:
            workflow = WorkflowInput.model_validate(document)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid workflow content: {exc}") from exc

        content = workflow.to_document()
        record = WorkflowRecord(
            connection_id=self.connection_id,
            name=workflow.name,
            active=False,
            content_hash="",
            local_updated_at=utcnow(),
            sync_status=SyncStatus.NEW_LOCAL,
        )
        self._ctx.blobs.write(self.connection_id, record.blob_key, content)
        self._ctx.state.add_workflow(record)
        logger.info("Staged new workflow %s", record.name)
        return record

    def diff(self, workflow_id: str) -> WorkflowDiff:
        return diff_workflow(self._ctx, self._gateway, self.connection_id, workflow_id)

    def diff_all(self) -> list[WorkflowDiff]:
        return diff_all_workflows(self._ctx, self._gateway, self.connection_id)

    def history(self, limit: int | None = 20) -> list[SyncHistoryEntry]:
        return self._ctx.state.list_history(self.connection_id, limit=limit)
