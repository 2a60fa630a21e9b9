"""MCP tools for syncing n8n workflows and inspecting sync state."""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from n8n_sync.context import SyncContext
from n8n_sync.errors import N8nSyncError
from n8n_sync.sync.engine import SyncEngine
from n8n_sync.sync.models import ConflictResolution


def _engine(ctx: SyncContext, connection: str | None) -> SyncEngine:
    """Build an engine for *connection*, or the only configured one."""
    if connection is None:
        available = ctx.state.list_connections()
        if len(available) != 1:
            raise N8nSyncError(
                f"{len(available)} connections configured; specify one by id or name."
            )
        connection = available[0].id
    return SyncEngine(ctx, connection)


def _failure(exc: N8nSyncError) -> dict[str, Any]:
    return {"success": False, "code": exc.code, "message": str(exc)}


def register_sync_tools(mcp: FastMCP, ctx: SyncContext) -> None:
    """Register pull/push/status/conflict tools with the MCP server."""

    @mcp.tool()
    def pull_workflows(
        connection: str | None = None,
        workflow_ids: list[str] | None = None,
        force: bool = False,
    ) -> dict[str, Any]:
        """Pull workflows from n8n into the local project.

        Workflows edited on both sides are reported as conflicts and left
        untouched unless force=True.

        Args:
            connection: Connection id or name. Optional with one connection.
            workflow_ids: Remote workflow ids to pull. Defaults to all.
            force: If True, remote always wins.
        """
        try:
            result = _engine(ctx, connection).pull(workflow_ids=workflow_ids, force=force)
        except N8nSyncError as exc:
            return _failure(exc)
        return {"success": not result.errors, **result.model_dump(mode="json")}

    @mcp.tool()
    def push_workflows(
        connection: str | None = None,
        workflow_ids: list[str] | None = None,
        force: bool = False,
    ) -> dict[str, Any]:
        """Push local workflow changes to n8n.

        Args:
            connection: Connection id or name. Optional with one connection.
            workflow_ids: Local or remote workflow ids to push. Defaults to
                every locally modified workflow.
            force: If True, overwrite remote even if conflicts detected.
        """
        try:
            result = _engine(ctx, connection).push(workflow_ids=workflow_ids, force=force)
        except N8nSyncError as exc:
            return _failure(exc)
        return {"success": not result.errors, **result.model_dump(mode="json")}

    @mcp.tool()
    def sync_workflows(connection: str | None = None, force: bool = False) -> dict[str, Any]:
        """Pull then push every workflow of a connection."""
        try:
            result = _engine(ctx, connection).sync(force=force)
        except N8nSyncError as exc:
            return _failure(exc)
        return {"success": not result.errors, **result.model_dump(mode="json")}

    @mcp.tool()
    def get_sync_status(connection: str | None = None) -> dict[str, Any]:
        """Check sync status of every tracked workflow.

        Args:
            connection: Connection id or name. Optional with one connection.
        """
        try:
            report = _engine(ctx, connection).get_status()
        except N8nSyncError as exc:
            return _failure(exc)
        return {"success": True, "counts": report.counts(), **report.model_dump(mode="json")}

    @mcp.tool()
    def diff_workflow(workflow_id: str, connection: str | None = None) -> dict[str, Any]:
        """Show field-level differences between a local workflow and n8n.

        Args:
            workflow_id: Local workflow id.
            connection: Connection id or name. Optional with one connection.
        """
        try:
            result = _engine(ctx, connection).diff(workflow_id)
        except N8nSyncError as exc:
            return _failure(exc)
        return {"success": True, **result.model_dump(mode="json")}

    @mcp.tool()
    def list_conflicts(connection: str | None = None) -> list[dict[str, Any]]:
        """List workflows changed both locally and remotely since last sync."""
        try:
            found = _engine(ctx, connection).get_conflicts()
        except N8nSyncError as exc:
            return [_failure(exc)]
        return [c.model_dump(mode="json") for c in found]

    @mcp.tool()
    def resolve_conflict(
        workflow_id: str,
        resolution: str,
        connection: str | None = None,
    ) -> dict[str, Any]:
        """Resolve a conflict by keeping one side.

        Args:
            workflow_id: Local workflow id of the conflicted workflow.
            resolution: "keep-local" pushes the local copy, "keep-remote"
                replaces it with the n8n version.
            connection: Connection id or name. Optional with one connection.
        """
        try:
            choice = ConflictResolution(resolution)
        except ValueError:
            return {
                "success": False,
                "code": "INVALID_RESOLUTION",
                "message": f"Unknown resolution: {resolution}",
            }
        try:
            _engine(ctx, connection).resolve_conflict(workflow_id, choice)
        except N8nSyncError as exc:
            return _failure(exc)
        return {"success": True, "workflow_id": workflow_id, "resolution": choice.value}
