"""Field-level diffing between a local workflow copy and its remote version.

Change kinds are expressed from the local side: ``added`` means the value
exists only locally, ``removed`` means it exists only remotely.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from n8n_sync.errors import InvalidStateError, NotFoundError, StoreError
from n8n_sync.n8n_client.schemas import Workflow, as_document
from n8n_sync.n8n_client.workflows import WorkflowGateway
from n8n_sync.sync.hashing import compute_workflow_hash
from n8n_sync.sync.models import ChangeKind, FieldChange, WorkflowDiff

if TYPE_CHECKING:
    from n8n_sync.context import SyncContext

logger = logging.getLogger(__name__)

_MISSING = object()

SCALAR_FIELDS = ("name", "active")
# Compared as opaque values: one change per differing block, no expansion.
BLOCK_FIELDS = ("connections", "settings", "staticData", "tags")
# Layout-only node fields that never produce a change.
IGNORED_NODE_FIELDS = frozenset({"position"})


class SyncDiffer:
    """Stateless helper computing field-level workflow differences."""

    def diff(
        self,
        local: Workflow | Mapping[str, Any],
        remote: Workflow | Mapping[str, Any],
    ) -> list[FieldChange]:
        """Compute the ordered list of changes from *remote* to *local*."""
        local_doc = as_document(local)
        remote_doc = as_document(remote)
        changes: list[FieldChange] = []

        for field in SCALAR_FIELDS:
            local_value = local_doc.get(field)
            remote_value = remote_doc.get(field)
            if local_value != remote_value:
                changes.append(
                    FieldChange(
                        path=field,
                        kind=ChangeKind.MODIFIED,
                        local_value=local_value,
                        remote_value=remote_value,
                    )
                )

        changes.extend(
            self._diff_nodes(local_doc.get("nodes") or [], remote_doc.get("nodes") or [])
        )

        for field in BLOCK_FIELDS:
            local_value = local_doc.get(field)
            remote_value = remote_doc.get(field)
            if local_value != remote_value:
                changes.append(
                    FieldChange(
                        path=field,
                        kind=ChangeKind.MODIFIED,
                        local_value=local_value,
                        remote_value=remote_value,
                    )
                )

        return changes

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    @staticmethod
    def node_key(node: Mapping[str, Any]) -> str:
        return node.get("id") or node.get("name") or ""

    def _diff_nodes(
        self,
        local_nodes: list[Mapping[str, Any]],
        remote_nodes: list[Mapping[str, Any]],
    ) -> list[FieldChange]:
        local_by_key = {self.node_key(n): n for n in local_nodes}
        remote_by_key = {self.node_key(n): n for n in remote_nodes}
        changes: list[FieldChange] = []

        for key, node in local_by_key.items():
            if key not in remote_by_key:
                changes.append(
                    FieldChange(
                        path=f"nodes.{key}",
                        kind=ChangeKind.ADDED,
                        local_value=node.get("name", key),
                    )
                )

        for key, node in remote_by_key.items():
            if key not in local_by_key:
                changes.append(
                    FieldChange(
                        path=f"nodes.{key}",
                        kind=ChangeKind.REMOVED,
                        remote_value=node.get("name", key),
                    )
                )

        for key, local_node in local_by_key.items():
            remote_node = remote_by_key.get(key)
            if remote_node is None:
                continue
            prefix = f'node "{local_node.get("name", key)}"'
            changes.extend(
                self._diff_mapping(
                    prefix,
                    {k: v for k, v in local_node.items() if k not in IGNORED_NODE_FIELDS},
                    {k: v for k, v in remote_node.items() if k not in IGNORED_NODE_FIELDS},
                )
            )

        return changes

    def _diff_mapping(
        self,
        prefix: str,
        local: Mapping[str, Any],
        remote: Mapping[str, Any],
    ) -> list[FieldChange]:
        """Recursively diff two mappings, keying changes by dotted path."""
        changes: list[FieldChange] = []
        keys = list(local) + [k for k in remote if k not in local]

        for key in keys:
            path = f"{prefix}.{key}"
            local_value = local.get(key, _MISSING)
            remote_value = remote.get(key, _MISSING)

            if remote_value is _MISSING:
                changes.append(FieldChange(path=path, kind=ChangeKind.ADDED, local_value=local_value))
            elif local_value is _MISSING:
                changes.append(FieldChange(path=path, kind=ChangeKind.REMOVED, remote_value=remote_value))
            elif isinstance(local_value, Mapping) and isinstance(remote_value, Mapping):
                changes.extend(self._diff_mapping(path, local_value, remote_value))
            elif local_value != remote_value:
                changes.append(
                    FieldChange(
                        path=path,
                        kind=ChangeKind.MODIFIED,
                        local_value=local_value,
                        remote_value=remote_value,
                    )
                )

        return changes


def diff_workflows(
    local: Workflow | Mapping[str, Any],
    remote: Workflow | Mapping[str, Any],
) -> list[FieldChange]:
    """Module-level shortcut for ``SyncDiffer().diff``."""
    return SyncDiffer().diff(local, remote)


def diff_workflow(
    ctx: SyncContext,
    gateway: WorkflowGateway,
    connection_id: str,
    workflow_id: str,
) -> WorkflowDiff:
    """Compare a tracked workflow's local copy with its remote version.

    Never mutates records or blobs.  A workflow missing remotely yields a
    diff with ``remote_hash=None`` and no field changes.

    Raises:
        ConnectionNotFoundError: If the connection does not exist.
        WorkflowNotFoundError: If the record does not exist.
        StoreError: If the local copy is missing or unreadable.
    """
    ctx.state.require_connection(connection_id)
    record = ctx.state.require_workflow(workflow_id)
    if record.connection_id != connection_id:
        raise InvalidStateError(f"Workflow {workflow_id} belongs to another connection")

    local_doc = ctx.blobs.read(connection_id, record.blob_key)
    if local_doc is None:
        raise StoreError(
            f"Local workflow file not found: {ctx.blobs.path(connection_id, record.blob_key)}"
        )
    local_hash = compute_workflow_hash(local_doc)

    remote: Workflow | None = None
    if record.remote_id is not None:
        try:
            remote = gateway.get_workflow(record.remote_id)
        except NotFoundError:
            logger.debug("Workflow %s has no remote counterpart", record.name)

    if remote is None:
        return WorkflowDiff(
            workflow_id=record.id,
            workflow_name=record.name,
            remote_id=record.remote_id,
            has_changes=True,
            local_hash=local_hash,
        )

    remote_hash = compute_workflow_hash(remote)
    return WorkflowDiff(
        workflow_id=record.id,
        workflow_name=record.name,
        remote_id=record.remote_id,
        has_changes=local_hash != remote_hash,
        local_hash=local_hash,
        remote_hash=remote_hash,
        changes=diff_workflows(local_doc, remote),
    )


def diff_all_workflows(
    ctx: SyncContext,
    gateway: WorkflowGateway,
    connection_id: str,
) -> list[WorkflowDiff]:
    """Diff every tracked workflow of a connection."""
    return [
        diff_workflow(ctx, gateway, connection_id, record.id)
        for record in ctx.state.list_workflows(connection_id)
    ]
