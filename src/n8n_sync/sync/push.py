"""Push: reconcile local workflow edits into n8n.

Local edits are detected from the blob content itself, not only from the
stored status, so files edited outside this tool are still picked up.
After a successful write the server's echo becomes both the new blob and
the new base hash, because n8n may normalize what it stores.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pydantic

from n8n_sync.errors import N8nSyncError, NotFoundError, StoreError, ValidationError
from n8n_sync.n8n_client.schemas import Workflow, WorkflowInput
from n8n_sync.n8n_client.workflows import WorkflowGateway
from n8n_sync.sync.blobs import BlobSlot
from n8n_sync.sync.conflict import ConflictDetector, ConflictType
from n8n_sync.sync.hashing import compute_workflow_hash
from n8n_sync.sync.models import ConflictInfo, PushResult, SyncError
from n8n_sync.sync.state import HistoryAction, SyncStatus, WorkflowRecord, utcnow

if TYPE_CHECKING:
    from n8n_sync.context import SyncContext

logger = logging.getLogger(__name__)

PUSHABLE_STATUSES = frozenset({SyncStatus.LOCAL_MODIFIED, SyncStatus.NEW_LOCAL})
BLOCKED_STATUSES = frozenset({SyncStatus.CONFLICT, SyncStatus.DELETED_REMOTE})


def push_workflows(
    ctx: SyncContext,
    gateway: WorkflowGateway,
    connection_id: str,
    *,
    workflow_ids: list[str] | None = None,
    force: bool = False,
) -> PushResult:
    """Push local workflow changes to the remote instance.

    Args:
        ctx: Project context.
        gateway: Workflows API.
        connection_id: Connection whose workflows are pushed.
        workflow_ids: Optional subset; entries match local or remote ids.
        force: Push every selected record, skipping conflict detection.

    Returns:
        Aggregate counts, detected conflicts and per-item errors.

    Raises:
        ConnectionNotFoundError: If the connection does not exist.
    """
    connection = ctx.state.require_connection(connection_id)
    result = PushResult()

    records = select_workflows(ctx, connection.id, workflow_ids=workflow_ids, force=force)
    result.total = len(records)
    logger.info("Found %d workflows to push", len(records))

    detector = ConflictDetector()
    for record in records:
        try:
            _process_push(ctx, gateway, record, force, detector, result)
        except Exception as exc:  # noqa: BLE001
            code = exc.code if isinstance(exc, N8nSyncError) else "PUSH_ERROR"
            result.errors.append(
                SyncError(workflow_id=record.id, message=str(exc), code=code)
            )
            logger.error("Error pushing workflow %s: %s", record.name, exc)

    ctx.state.append_history(connection.id, HistoryAction.PUSH, result.summary())

    logger.info(
        "Push complete: %d created, %d updated, %d conflicts, %d errors",
        result.created,
        result.updated,
        len(result.conflicts),
        len(result.errors),
    )
    return result


def select_workflows(
    ctx: SyncContext,
    connection_id: str,
    *,
    workflow_ids: list[str] | None = None,
    force: bool = False,
) -> list[WorkflowRecord]:
    """Return the records a push would process."""
    records = ctx.state.list_workflows(connection_id)
    if workflow_ids:
        wanted = set(workflow_ids)
        records = [r for r in records if r.id in wanted or r.remote_id in wanted]
    if force:
        return records
    return [r for r in records if _needs_push(ctx, r)]


def _needs_push(ctx: SyncContext, record: WorkflowRecord) -> bool:
    if record.sync_status in BLOCKED_STATUSES:
        return False
    if record.sync_status in PUSHABLE_STATUSES:
        return True
    try:
        current = ctx.blobs.content_hash(record.connection_id, record.blob_key)
    except StoreError as exc:
        # Unreadable blobs are still selected so the failure is reported.
        logger.warning("Cannot hash local copy of %s: %s", record.name, exc)
        return True
    return current is not None and current != record.content_hash


def _process_push(
    ctx: SyncContext,
    gateway: WorkflowGateway,
    record: WorkflowRecord,
    force: bool,
    detector: ConflictDetector,
    result: PushResult,
) -> None:
    connection_id = record.connection_id
    document = ctx.blobs.read(connection_id, record.blob_key)
    if document is None:
        raise StoreError(
            f"Workflow file not found: {ctx.blobs.path(connection_id, record.blob_key)}"
        )
    payload = _build_payload(document)

    if record.remote_id is None:
        _write(ctx, gateway, record, payload, result, create=True)
        return

    if force:
        _write(ctx, gateway, record, payload, result, create=False)
        return

    try:
        remote = gateway.get_workflow(record.remote_id)
    except NotFoundError:
        logger.debug("Remote workflow not found, will create: %s", record.name)
        _write(ctx, gateway, record, payload, result, create=True)
        return

    local_hash = compute_workflow_hash(document)
    remote_hash = compute_workflow_hash(remote)
    outcome = detector.detect(record, local_hash, remote_hash)

    if outcome == ConflictType.BOTH_CHANGED:
        ctx.blobs.write(connection_id, record.blob_key, remote.to_document(), BlobSlot.PENDING_REMOTE)
        ctx.state.update_workflow(
            record.id,
            sync_status=SyncStatus.CONFLICT,
            remote_updated_at=remote.updated_at,
        )
        result.conflicts.append(
            ConflictInfo(
                workflow_id=record.id,
                workflow_name=record.name,
                local_hash=local_hash,
                remote_hash=remote_hash,
                local_updated_at=record.local_updated_at,
                remote_updated_at=remote.updated_at,
            )
        )
        logger.warning("Conflict detected for workflow %s", record.name)
    elif outcome == ConflictType.REMOTE_ONLY:
        ctx.state.update_workflow(record.id, sync_status=SyncStatus.REMOTE_MODIFIED)
        result.deferred += 1
        logger.info("Workflow %s changed remotely only; pull to update", record.name)
    elif outcome in (ConflictType.CONVERGED, ConflictType.NONE):
        ctx.blobs.delete(connection_id, record.blob_key, BlobSlot.PENDING_REMOTE)
        ctx.state.update_workflow(
            record.id,
            content_hash=remote_hash,
            remote_updated_at=remote.updated_at,
            sync_status=SyncStatus.SYNCED,
        )
        result.unchanged += 1
        logger.debug("Workflow %s already matches remote", record.name)
    else:
        _write(ctx, gateway, record, payload, result, create=False)


def _build_payload(document: dict[str, Any]) -> WorkflowInput:
    try:
        return WorkflowInput.model_validate(document)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid workflow content: {exc}") from exc


def _write(
    ctx: SyncContext,
    gateway: WorkflowGateway,
    record: WorkflowRecord,
    payload: WorkflowInput,
    result: PushResult,
    *,
    create: bool,
) -> None:
    if not create:
        assert record.remote_id is not None  # noqa: S101
        try:
            echo = gateway.update_workflow(record.remote_id, payload)
        except NotFoundError:
            logger.info("Remote workflow %s is gone, re-creating %s", record.remote_id, record.name)
            create = True
    if create:
        echo = gateway.create_workflow(payload)

    _store_echo(ctx, record, echo)

    if create:
        result.created += 1
        logger.info("Created remote workflow: %s (%s)", echo.name, echo.id)
    else:
        result.updated += 1
        logger.info("Pushed workflow: %s", echo.name)


def _store_echo(ctx: SyncContext, record: WorkflowRecord, echo: Workflow) -> None:
    """Adopt the server's representation as the new synced base."""
    connection_id = record.connection_id
    if record.blob_key != echo.id:
        ctx.blobs.move(connection_id, record.blob_key, echo.id)

    ctx.blobs.write(connection_id, echo.id, echo.to_document())
    ctx.blobs.delete(connection_id, echo.id, BlobSlot.PENDING_REMOTE)
    ctx.state.update_workflow(
        record.id,
        remote_id=echo.id,
        name=echo.name,
        active=echo.active,
        content_hash=compute_workflow_hash(echo),
        remote_updated_at=echo.updated_at,
        local_updated_at=utcnow(),
        sync_status=SyncStatus.SYNCED,
    )
