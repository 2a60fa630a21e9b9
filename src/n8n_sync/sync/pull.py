"""Pull: reconcile remote n8n workflows into local state.

Each remote workflow is processed to completion (hash, compare, write blob,
write record) before the next one.  The blob is always written before the
record so that an interrupted pull leaves a blob/record divergence that the
next run detects, never a record that vouches for content it lacks.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pydantic

from n8n_sync.errors import N8nSyncError, ValidationError
from n8n_sync.n8n_client.schemas import Workflow
from n8n_sync.n8n_client.workflows import WorkflowGateway
from n8n_sync.sync.blobs import BlobSlot
from n8n_sync.sync.conflict import ConflictDetector, ConflictType
from n8n_sync.sync.hashing import compute_workflow_hash
from n8n_sync.sync.models import ConflictInfo, PullResult, SyncError
from n8n_sync.sync.state import (
    HistoryAction,
    SyncStatus,
    WorkflowRecord,
    utcnow,
)

if TYPE_CHECKING:
    from n8n_sync.context import SyncContext

logger = logging.getLogger(__name__)


def pull_workflows(
    ctx: SyncContext,
    gateway: WorkflowGateway,
    connection_id: str,
    *,
    workflow_ids: list[str] | None = None,
    force: bool = False,
) -> PullResult:
    """Pull remote workflows into the local record and blob stores.

    Args:
        ctx: Project context.
        gateway: Workflows API.
        connection_id: Connection whose workflows are pulled.
        workflow_ids: Optional subset of remote workflow ids.
        force: Remote always wins; conflict detection is skipped.

    Returns:
        Aggregate counts, detected conflicts and per-item errors.

    Raises:
        ConnectionNotFoundError: If the connection does not exist.
        NetworkError: If listing all workflows fails.
    """
    connection = ctx.state.require_connection(connection_id)
    result = PullResult()

    logger.info("Fetching workflows from %s...", connection.base_url)
    remote_items = _fetch_remote(gateway, workflow_ids, result)
    result.total = len(remote_items) + len(result.errors)
    logger.info("Found %d workflows", len(remote_items))

    detector = ConflictDetector()
    seen: set[str] = set()
    for item in remote_items:
        workflow_id = _remote_id(item)
        if workflow_id:
            seen.add(workflow_id)
        try:
            remote = _as_workflow(item)
            _process_workflow(ctx, connection.id, remote, force, detector, result)
        except Exception as exc:  # noqa: BLE001
            code = exc.code if isinstance(exc, N8nSyncError) else "PULL_ERROR"
            result.errors.append(
                SyncError(workflow_id=workflow_id or None, message=str(exc), code=code)
            )
            logger.error("Error processing workflow %s: %s", workflow_id, exc)

    if not workflow_ids:
        _mark_deleted_remote(ctx, connection.id, seen, result)

    ctx.state.append_history(connection.id, HistoryAction.PULL, result.summary())
    ctx.state.touch_connection(connection.id)

    logger.info(
        "Pull complete: %d created, %d updated, %d unchanged, %d conflicts, %d errors",
        result.created,
        result.updated,
        result.unchanged,
        len(result.conflicts),
        len(result.errors),
    )
    return result


def _fetch_remote(
    gateway: WorkflowGateway,
    workflow_ids: list[str] | None,
    result: PullResult,
) -> list[Workflow | dict[str, Any]]:
    if not workflow_ids:
        return list(gateway.list_all_workflows())

    workflows: list[Workflow | dict[str, Any]] = []
    for workflow_id in workflow_ids:
        try:
            workflows.append(gateway.get_workflow(workflow_id))
        except N8nSyncError as exc:
            result.errors.append(
                SyncError(workflow_id=workflow_id, message=str(exc), code=exc.code)
            )
            logger.error("Error fetching workflow %s: %s", workflow_id, exc)
    return workflows


def _remote_id(item: Workflow | dict[str, Any]) -> str:
    if isinstance(item, Workflow):
        return item.id
    return str(item.get("id") or "")


def _as_workflow(item: Workflow | dict[str, Any]) -> Workflow:
    """Validate one listed document; a malformed one fails only itself."""
    if isinstance(item, Workflow):
        return item
    try:
        return Workflow.model_validate(item)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Invalid workflow {item.get('id') or '(no id)'}: {exc}"
        ) from exc


def _process_workflow(
    ctx: SyncContext,
    connection_id: str,
    remote: Workflow,
    force: bool,
    detector: ConflictDetector,
    result: PullResult,
) -> None:
    remote_hash = compute_workflow_hash(remote)
    document = remote.to_document()
    existing = ctx.state.get_workflow_by_remote_id(connection_id, remote.id)

    if existing is None:
        ctx.blobs.write(connection_id, remote.id, document)
        now = utcnow()
        ctx.state.add_workflow(
            WorkflowRecord(
                connection_id=connection_id,
                remote_id=remote.id,
                name=remote.name,
                active=remote.active,
                content_hash=remote_hash,
                remote_updated_at=remote.updated_at,
                local_updated_at=now,
                sync_status=SyncStatus.SYNCED,
                created_at=now,
            )
        )
        result.created += 1
        logger.info("Created workflow: %s", remote.name)
        return

    key = existing.blob_key

    if not force and existing.sync_status == SyncStatus.CONFLICT:
        ctx.blobs.write(connection_id, key, document, BlobSlot.PENDING_REMOTE)
        result.conflicts.append(
            _conflict_info(existing, ctx.blobs.content_hash(connection_id, key), remote_hash, remote)
        )
        logger.warning("Workflow %s is in conflict; resolve it before pulling", remote.name)
        return

    if not force and existing.content_hash == remote_hash:
        _handle_unchanged(ctx, connection_id, existing, document, result)
        return

    local_hash = ctx.blobs.content_hash(connection_id, key)
    if not force and detector.detect(existing, local_hash, remote_hash) == ConflictType.BOTH_CHANGED:
        ctx.blobs.write(connection_id, key, document, BlobSlot.PENDING_REMOTE)
        ctx.state.update_workflow(
            existing.id,
            sync_status=SyncStatus.CONFLICT,
            remote_updated_at=remote.updated_at,
        )
        result.conflicts.append(_conflict_info(existing, local_hash, remote_hash, remote))
        logger.warning("Conflict detected for workflow %s", remote.name)
        return

    ctx.blobs.write(connection_id, key, document)
    ctx.blobs.delete(connection_id, key, BlobSlot.PENDING_REMOTE)
    ctx.state.update_workflow(
        existing.id,
        name=remote.name,
        active=remote.active,
        content_hash=remote_hash,
        remote_updated_at=remote.updated_at,
        local_updated_at=utcnow(),
        sync_status=SyncStatus.SYNCED,
    )
    result.updated += 1
    logger.info("Updated workflow: %s", remote.name)


def _handle_unchanged(
    ctx: SyncContext,
    connection_id: str,
    record: WorkflowRecord,
    document: dict[str, Any],
    result: PullResult,
) -> None:
    """Remote matches the base; repair local state that drifted from it."""
    if not ctx.blobs.exists(connection_id, record.blob_key):
        ctx.blobs.write(connection_id, record.blob_key, document)
        ctx.state.update_workflow(
            record.id, sync_status=SyncStatus.SYNCED, local_updated_at=utcnow()
        )
        result.updated += 1
        logger.info("Restored missing local copy of workflow %s", record.name)
        return

    if record.sync_status in (SyncStatus.DELETED_REMOTE, SyncStatus.REMOTE_MODIFIED):
        local_hash = ctx.blobs.content_hash(connection_id, record.blob_key)
        restored = (
            SyncStatus.SYNCED if local_hash == record.content_hash else SyncStatus.LOCAL_MODIFIED
        )
        ctx.state.update_workflow(record.id, sync_status=restored)

    result.unchanged += 1
    logger.debug("Workflow %s unchanged", record.name)


def _mark_deleted_remote(
    ctx: SyncContext,
    connection_id: str,
    seen: set[str],
    result: PullResult,
) -> None:
    """Flag records whose workflow vanished from a full remote listing."""
    skip = {SyncStatus.NEW_LOCAL, SyncStatus.CONFLICT, SyncStatus.DELETED_REMOTE}
    for record in ctx.state.list_workflows(connection_id):
        if record.remote_id is None or record.remote_id in seen or record.sync_status in skip:
            continue
        ctx.state.update_workflow(record.id, sync_status=SyncStatus.DELETED_REMOTE)
        result.deleted += 1
        logger.warning("Workflow %s no longer exists remotely", record.name)


def _conflict_info(
    record: WorkflowRecord,
    local_hash: str | None,
    remote_hash: str,
    remote: Workflow,
) -> ConflictInfo:
    return ConflictInfo(
        workflow_id=record.id,
        workflow_name=record.name,
        local_hash=local_hash or record.content_hash,
        remote_hash=remote_hash,
        local_updated_at=record.local_updated_at,
        remote_updated_at=remote.updated_at,
    )
