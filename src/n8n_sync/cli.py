"""CLI entrypoint for n8n-sync.

Provides commands to manage connections and to pull, push and inspect
workflows of an n8n instance from a local project directory.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from n8n_sync import connections
from n8n_sync.config import Settings, find_project_root, init_project, is_initialized, load_settings
from n8n_sync.context import SyncContext
from n8n_sync.errors import N8nSyncError, WorkflowNotFoundError
from n8n_sync.sync.engine import SyncEngine
from n8n_sync.sync.models import ConflictInfo, ConflictResolution, PullResult, PushResult, SyncError
from n8n_sync.sync.state import ConnectionRecord, SyncStatus, WorkflowRecord

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

STATUS_LABELS = {
    SyncStatus.SYNCED: "Synced",
    SyncStatus.LOCAL_MODIFIED: "Modified locally",
    SyncStatus.REMOTE_MODIFIED: "Modified remotely",
    SyncStatus.CONFLICT: "Conflicts",
    SyncStatus.NEW_LOCAL: "New (local only)",
    SyncStatus.DELETED_REMOTE: "Deleted remotely",
}


class CliState:
    """Options shared by every sub-command."""

    def __init__(self, project: Path | None, timeout: float | None) -> None:
        self.project = project
        self.timeout = timeout
        self._context: SyncContext | None = None

    def context(self) -> SyncContext:
        if self._context is None:
            settings = load_settings(self.project, timeout=self.timeout)
            self._context = SyncContext.from_settings(settings)
        return self._context


pass_state = click.make_pass_decorator(CliState)


def _configure_logging(verbose: bool, project: Path | None, timeout: float | None) -> None:
    settings = Settings(project, timeout=timeout, log_level="DEBUG" if verbose else None)
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _resolve_connection(ctx: SyncContext, id_or_name: str | None) -> ConnectionRecord:
    """Pick the named connection, or the only one when none is named."""
    if id_or_name:
        return ctx.state.require_connection(id_or_name)
    available = ctx.state.list_connections()
    if not available:
        raise click.UsageError('No connections configured. Run "n8n-sync connect add" first.')
    if len(available) > 1:
        raise click.UsageError("Multiple connections configured; pass --connection.")
    return available[0]


def _build_engine(ctx: SyncContext, connection: ConnectionRecord) -> SyncEngine:
    return SyncEngine(ctx, connection.id)


def _echo_errors(errors: list[SyncError]) -> None:
    for error in errors:
        click.echo(f"  FAIL: {error.workflow_id or '?'}: {error.message} [{error.code}]", err=True)


def _echo_conflicts(conflicts: list[ConflictInfo]) -> None:
    for conflict in conflicts:
        click.echo(f"  CONFLICT: {conflict.workflow_name} ({conflict.workflow_id})")


def _report(label: str, result: PullResult | PushResult) -> None:
    counts = ", ".join(f"{k}={v}" for k, v in result.summary().items())
    click.echo(f"{label}: {counts}")
    _echo_conflicts(result.conflicts)
    _echo_errors(result.errors)


connection_option = click.option(
    "--connection", "-c", "connection_name", default=None, help="Connection id or name."
)
workflow_option = click.option(
    "--workflow",
    "-w",
    "workflow_ids",
    multiple=True,
    help="Restrict to this workflow id (repeatable).",
)
force_option = click.option("--force", is_flag=True, help="Skip conflict detection.")


@click.group()
@click.option("--project", type=click.Path(path_type=Path), default=None, help="Project directory.")
@click.option("--timeout", type=float, default=None, help="HTTP timeout in seconds.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(click_ctx: click.Context, project: Path | None, timeout: float | None, verbose: bool) -> None:
    """n8n-sync CLI: keep local copies of n8n workflows in sync."""
    try:
        _configure_logging(verbose, project, timeout)
    except N8nSyncError as exc:
        _fail(str(exc))
    click_ctx.obj = CliState(project, timeout)


@cli.command()
@click.argument("path", type=click.Path(path_type=Path), default=".")
def init(path: Path) -> None:
    """Initialize an n8n-sync project in PATH."""
    root = path.resolve()
    if is_initialized(root):
        click.echo(f"Project already initialized: {root}")
        return
    enclosing = find_project_root(root)
    if enclosing is not None:
        click.echo(f"Note: nested inside existing project {enclosing}")
    settings = init_project(root)
    click.echo(f"Initialized n8n-sync project in {settings.project_root}")


# ----------------------------------------------------------------------
# Connections
# ----------------------------------------------------------------------


@cli.group()
def connect() -> None:
    """Manage n8n connections."""


@connect.command("add")
@click.argument("name")
@click.argument("base_url")
@click.option("--api-key", prompt=True, hide_input=True, envvar="N8N_API_KEY", help="n8n API key.")
@click.option("--no-verify", is_flag=True, help="Save without testing the connection.")
@pass_state
def connect_add(state: CliState, name: str, base_url: str, api_key: str, no_verify: bool) -> None:
    """Add a connection NAME for the instance at BASE_URL."""
    try:
        connection = connections.add_connection(
            state.context(), name, base_url, api_key, verify=not no_verify
        )
    except N8nSyncError as exc:
        _fail(str(exc))
    click.echo(f"OK: added connection {connection.name} ({connection.id})")


@connect.command("list")
@pass_state
def connect_list(state: CliState) -> None:
    """List configured connections."""
    try:
        items = connections.list_connections(state.context())
    except N8nSyncError as exc:
        _fail(str(exc))
    if not items:
        click.echo("No connections configured.")
        return
    for conn in items:
        last = conn.last_sync_at.isoformat() if conn.last_sync_at else "never"
        click.echo(f"{conn.name}\t{conn.base_url}\t{conn.id}\tlast sync: {last}")


@connect.command("remove")
@click.argument("name")
@click.confirmation_option(prompt="Remove the connection and all its local workflows?")
@pass_state
def connect_remove(state: CliState, name: str) -> None:
    """Remove connection NAME with its local workflows and history."""
    try:
        removed = connections.remove_connection(state.context(), name)
    except N8nSyncError as exc:
        _fail(str(exc))
    if not removed:
        _fail(f"Connection not found: {name}")
    click.echo(f"OK: removed connection {name}")


@connect.command("test")
@click.argument("name")
@pass_state
def connect_test(state: CliState, name: str) -> None:
    """Check that connection NAME answers authenticated requests."""
    try:
        with connections.get_client(state.context(), name) as client:
            ok = client.test_connection()
    except N8nSyncError as exc:
        _fail(str(exc))
    if not ok:
        _fail(f"Connection {name} failed")
    click.echo(f"OK: connection {name} works")


# ----------------------------------------------------------------------
# Sync
# ----------------------------------------------------------------------


@cli.command()
@connection_option
@workflow_option
@force_option
@pass_state
def pull(state: CliState, connection_name: str | None, workflow_ids: tuple[str, ...], force: bool) -> None:
    """Pull workflows from n8n into the local project."""
    try:
        ctx = state.context()
        engine = _build_engine(ctx, _resolve_connection(ctx, connection_name))
        result = engine.pull(workflow_ids=list(workflow_ids) or None, force=force)
    except N8nSyncError as exc:
        _fail(str(exc))
    _report("Pull", result)
    if result.errors:
        sys.exit(1)


@cli.command()
@connection_option
@workflow_option
@force_option
@pass_state
def push(state: CliState, connection_name: str | None, workflow_ids: tuple[str, ...], force: bool) -> None:
    """Push local workflow changes to n8n."""
    try:
        ctx = state.context()
        engine = _build_engine(ctx, _resolve_connection(ctx, connection_name))
        result = engine.push(workflow_ids=list(workflow_ids) or None, force=force)
    except N8nSyncError as exc:
        _fail(str(exc))
    _report("Push", result)
    if result.errors:
        sys.exit(1)


@cli.command()
@connection_option
@workflow_option
@force_option
@pass_state
def sync(state: CliState, connection_name: str | None, workflow_ids: tuple[str, ...], force: bool) -> None:
    """Pull, then push."""
    try:
        ctx = state.context()
        engine = _build_engine(ctx, _resolve_connection(ctx, connection_name))
        result = engine.sync(workflow_ids=list(workflow_ids) or None, force=force)
    except N8nSyncError as exc:
        _fail(str(exc))
    _report("Pull", result.pull)
    _report("Push", result.push)
    click.echo(
        f"Sync complete: {result.pulled} pulled, {result.pushed} pushed, "
        f"{len(result.conflicts)} conflicts"
    )
    if result.errors:
        sys.exit(1)


# ----------------------------------------------------------------------
# Inspection
# ----------------------------------------------------------------------


@cli.command()
@connection_option
@pass_state
def status(state: CliState, connection_name: str | None) -> None:
    """Show the sync status of every tracked workflow."""
    try:
        ctx = state.context()
        engine = _build_engine(ctx, _resolve_connection(ctx, connection_name))
        report = engine.get_status()
    except N8nSyncError as exc:
        _fail(str(exc))

    click.echo(f"Total workflows: {report.total}")
    for sync_status, label in STATUS_LABELS.items():
        entries = getattr(report, sync_status.value)
        if not entries:
            continue
        click.echo(f"\n{label} ({len(entries)}):")
        for entry in entries:
            suffix = " [file missing]" if entry.blob_missing else ""
            click.echo(f"  {entry.name} ({entry.workflow_id}){suffix}")


def _find_workflow(ctx: SyncContext, name_or_id: str, connection_id: str | None) -> WorkflowRecord:
    """Match by local or remote id, then exact name, then partial name."""
    records = ctx.state.list_workflows(connection_id)
    needle = name_or_id.lower()
    for matches in (
        [r for r in records if name_or_id in (r.id, r.remote_id)],
        [r for r in records if r.name == name_or_id],
        [r for r in records if needle in r.name.lower()],
    ):
        if len(matches) == 1:
            return matches[0]
        if matches:
            listed = ", ".join(f"{r.name} ({r.blob_key})" for r in matches)
            raise click.UsageError(
                f'Multiple workflows match "{name_or_id}": {listed}. Use the full id.'
            )
    raise WorkflowNotFoundError(f"Workflow not found: {name_or_id}")


def _short_value(value: object) -> str:
    text = value if isinstance(value, str) else json.dumps(value, sort_keys=True)
    return text if len(text) <= 50 else f"{text[:50]}..."


@cli.command("list")
@connection_option
@click.option("--active", "only_active", is_flag=True, help="Only active workflows.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@pass_state
def list_workflows(state: CliState, connection_name: str | None, only_active: bool, as_json: bool) -> None:
    """List tracked workflows."""
    try:
        ctx = state.context()
        connection_id = ctx.state.require_connection(connection_name).id if connection_name else None
        records = ctx.state.list_workflows(connection_id)
        names = {c.id: c.name for c in ctx.state.list_connections()}
    except N8nSyncError as exc:
        _fail(str(exc))
    if only_active:
        records = [r for r in records if r.active]

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return
    if not records:
        click.echo('No workflows found. Run "n8n-sync pull" to sync workflows.')
        return

    click.echo(f"Workflows ({len(records)}):")
    for record in records:
        marker = "*" if record.active else " "
        click.echo(f"  {marker} {record.sync_status.value:<15} {record.name}")
        click.echo(
            f"      id: {record.remote_id or '(not pushed)'}  local: {record.id}"
            f"  connection: {names.get(record.connection_id, 'unknown')}"
        )


@cli.command()
@click.argument("name_or_id")
@click.option("--json", "as_json", is_flag=True, help="Print the full workflow JSON.")
@click.option("--nodes", "show_parameters", is_flag=True, help="Show node parameters.")
@connection_option
@pass_state
def show(
    state: CliState,
    name_or_id: str,
    as_json: bool,
    show_parameters: bool,
    connection_name: str | None,
) -> None:
    """Show one workflow by id or (partial) name."""
    try:
        ctx = state.context()
        connection_id = ctx.state.require_connection(connection_name).id if connection_name else None
        record = _find_workflow(ctx, name_or_id, connection_id)
        document = ctx.blobs.read(record.connection_id, record.blob_key)
    except N8nSyncError as exc:
        _fail(str(exc))
    if document is None:
        _fail('Workflow file not found. Run "n8n-sync pull" first.')

    if as_json:
        click.echo(json.dumps(document, indent=2))
        return

    click.echo(document.get("name", record.name))
    click.echo(f"ID: {record.remote_id or '(not pushed)'}")
    click.echo(f"Active: {'yes' if record.active else 'no'}")
    click.echo(f"Status: {record.sync_status.value}")

    nodes = document.get("nodes") or []
    click.echo(f"\nNodes ({len(nodes)}):")
    for node in nodes:
        node_type = str(node.get("type", "?")).replace("n8n-nodes-base.", "")
        click.echo(f"  {node.get('name', '?')} ({node_type})")
        if not show_parameters:
            continue
        shown = [(k, v) for k, v in (node.get("parameters") or {}).items() if v not in (None, "")]
        for key, value in shown[:5]:
            click.echo(f"    {key}: {_short_value(value)}")

    click.echo(f"\nConnections: {len(document.get('connections') or {})} nodes connected")


@cli.command()
@click.argument("workflow_id", required=False)
@click.option("--all", "diff_all", is_flag=True, help="Diff every tracked workflow.")
@connection_option
@pass_state
def diff(state: CliState, workflow_id: str | None, diff_all: bool, connection_name: str | None) -> None:
    """Show field-level differences between local and remote WORKFLOW_ID."""
    if not workflow_id and not diff_all:
        raise click.UsageError("Pass a WORKFLOW_ID or --all.")
    try:
        ctx = state.context()
        engine = _build_engine(ctx, _resolve_connection(ctx, connection_name))
        diffs = engine.diff_all() if diff_all else [engine.diff(workflow_id or "")]
    except N8nSyncError as exc:
        _fail(str(exc))

    for wf_diff in diffs:
        if not wf_diff.has_changes:
            click.echo(f"{wf_diff.workflow_name}: no changes")
            continue
        if wf_diff.remote_hash is None:
            click.echo(f"{wf_diff.workflow_name}: not present remotely")
            continue
        click.echo(f"{wf_diff.workflow_name}: {len(wf_diff.changes)} change(s)")
        for change in wf_diff.changes:
            click.echo(f"  {change.kind.value:<8} {change.path}")


@cli.command()
@connection_option
@pass_state
def conflicts(state: CliState, connection_name: str | None) -> None:
    """List workflows in conflict."""
    try:
        ctx = state.context()
        engine = _build_engine(ctx, _resolve_connection(ctx, connection_name))
        found = engine.get_conflicts()
    except N8nSyncError as exc:
        _fail(str(exc))
    if not found:
        click.echo("No conflicts.")
        return
    _echo_conflicts(found)


@cli.command()
@click.argument("workflow_id")
@click.option(
    "--keep",
    type=click.Choice(["local", "remote"]),
    required=True,
    help="Which side wins.",
)
@connection_option
@pass_state
def resolve(state: CliState, workflow_id: str, keep: str, connection_name: str | None) -> None:
    """Resolve the conflict on WORKFLOW_ID."""
    resolution = ConflictResolution.KEEP_LOCAL if keep == "local" else ConflictResolution.KEEP_REMOTE
    try:
        ctx = state.context()
        record = ctx.state.require_workflow(workflow_id)
        engine = _build_engine(ctx, _resolve_connection(ctx, connection_name or record.connection_id))
        engine.resolve_conflict(record.id, resolution)
    except N8nSyncError as exc:
        _fail(str(exc))
    click.echo(f"OK: resolved {record.name} ({resolution.value})")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@connection_option
@pass_state
def create(state: CliState, file: Path, connection_name: str | None) -> None:
    """Stage the workflow JSON in FILE for creation on the next push."""
    try:
        document = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _fail(f"Cannot read {file}: {exc}")
    try:
        ctx = state.context()
        engine = _build_engine(ctx, _resolve_connection(ctx, connection_name))
        record = engine.create_local(document)
    except N8nSyncError as exc:
        _fail(str(exc))
    click.echo(f"OK: staged {record.name} ({record.id})")


@cli.command()
@connection_option
@click.option("--limit", type=int, default=20, show_default=True)
@pass_state
def history(state: CliState, connection_name: str | None, limit: int) -> None:
    """Show recent sync history."""
    try:
        ctx = state.context()
        engine = _build_engine(ctx, _resolve_connection(ctx, connection_name))
        entries = engine.history(limit=limit)
    except N8nSyncError as exc:
        _fail(str(exc))
    if not entries:
        click.echo("No history.")
        return
    for entry in entries:
        details = json.dumps(entry.details, sort_keys=True)
        target = f" {entry.workflow_id}" if entry.workflow_id else ""
        click.echo(f"{entry.created_at.isoformat()} {entry.action.value}{target} {details}")


if __name__ == "__main__":
    cli()
