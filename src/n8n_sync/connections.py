"""Management of n8n connections (instance URL + API key) for a project."""

from __future__ import annotations

import logging

import httpx

from n8n_sync.config import DEFAULT_TIMEOUT
from n8n_sync.context import SyncContext
from n8n_sync.errors import ConnectionExistsError, NetworkError
from n8n_sync.n8n_client.auth import normalize_base_url
from n8n_sync.n8n_client.client import N8nClient
from n8n_sync.sync.state import ConnectionRecord

logger = logging.getLogger(__name__)


def verify_connection(
    base_url: str,
    api_key: str,
    *,
    timeout: float | None = None,
    transport: httpx.BaseTransport | None = None,
) -> bool:
    """Return ``True`` if *base_url* accepts *api_key*."""
    with N8nClient(
        base_url=base_url,
        api_key=api_key,
        timeout=timeout or DEFAULT_TIMEOUT,
        transport=transport,
    ) as client:
        return client.test_connection()


def add_connection(
    ctx: SyncContext,
    name: str,
    base_url: str,
    api_key: str,
    *,
    verify: bool = True,
    transport: httpx.BaseTransport | None = None,
) -> ConnectionRecord:
    """Register a new connection.

    Args:
        ctx: Project context.
        name: Unique, human-readable connection name.
        base_url: Root URL of the n8n instance.
        api_key: n8n API key, stored as given.
        verify: Make an authenticated request before saving.
        transport: Optional ``httpx`` transport override for testing.

    Raises:
        ConnectionExistsError: If a connection named *name* already exists.
        NetworkError: If *verify* is set and the instance rejects the key.
    """
    if any(c.name == name for c in ctx.state.list_connections()):
        raise ConnectionExistsError(f'Connection with name "{name}" already exists')

    if verify and not verify_connection(
        base_url, api_key, timeout=ctx.settings.timeout, transport=transport
    ):
        raise NetworkError("Connection test failed. Check URL and API key.")

    connection = ConnectionRecord(
        name=name,
        base_url=normalize_base_url(base_url),
        api_key=api_key,
    )
    ctx.state.add_connection(connection)
    logger.info("Added connection %s (%s)", connection.name, connection.base_url)
    return connection


def list_connections(ctx: SyncContext) -> list[ConnectionRecord]:
    return ctx.state.list_connections()


def get_connection(ctx: SyncContext, id_or_name: str) -> ConnectionRecord | None:
    return ctx.state.get_connection(id_or_name)


def update_connection(
    ctx: SyncContext,
    id_or_name: str,
    *,
    name: str | None = None,
    base_url: str | None = None,
    api_key: str | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ConnectionRecord:
    """Rename a connection or change its URL or key.

    A new API key is verified against the (possibly new) URL first.

    Raises:
        ConnectionNotFoundError: If the connection does not exist.
        ConnectionExistsError: If *name* is taken by another connection.
        NetworkError: If the new API key is rejected.
    """
    connection = ctx.state.require_connection(id_or_name)
    updates: dict[str, object] = {}

    if name and name != connection.name:
        if ctx.state.get_connection(name) is not None:
            raise ConnectionExistsError(f'Connection with name "{name}" already exists')
        updates["name"] = name
    if base_url:
        updates["base_url"] = normalize_base_url(base_url)
    if api_key:
        if not verify_connection(
            base_url or connection.base_url,
            api_key,
            timeout=ctx.settings.timeout,
            transport=transport,
        ):
            raise NetworkError("New API key failed validation")
        updates["api_key"] = api_key

    if not updates:
        return connection
    return ctx.state.update_connection(connection.id, **updates)


def remove_connection(ctx: SyncContext, id_or_name: str) -> bool:
    """Remove a connection with its workflow records, history and blobs.

    Returns ``False`` if no such connection exists.
    """
    connection = ctx.state.get_connection(id_or_name)
    if connection is None:
        return False
    ctx.state.remove_connection(connection.id)
    ctx.blobs.remove_connection(connection.id)
    logger.info("Removed connection %s", connection.name)
    return True


def get_client(
    ctx: SyncContext,
    id_or_name: str,
    *,
    transport: httpx.BaseTransport | None = None,
) -> N8nClient:
    """Build an API client for a stored connection.

    Raises:
        ConnectionNotFoundError: If the connection does not exist.
    """
    connection = ctx.state.require_connection(id_or_name)
    return N8nClient(
        base_url=connection.base_url,
        api_key=connection.api_key,
        timeout=ctx.settings.timeout,
        transport=transport,
    )
