"""Composed n8n API client that exposes all sub-clients.

``N8nClient`` is the single entry point for n8n API operations.  It builds
the underlying ``httpx.Client`` via ``auth.build_http_client`` and exposes
domain-specific sub-clients as properties.
"""

from __future__ import annotations

import logging

import httpx

from n8n_sync.config import DEFAULT_TIMEOUT
from n8n_sync.errors import N8nSyncError
from n8n_sync.n8n_client.auth import build_http_client
from n8n_sync.n8n_client.workflows import WorkflowsClient

logger = logging.getLogger(__name__)


class N8nClient:
    """Unified n8n API client composing all domain sub-clients.

    Usage::

        client = N8nClient(base_url="https://n8n.example.com", api_key="...")
        workflows = client.workflows.list_all_workflows()
        wf = client.workflows.get_workflow(workflows[0]["id"])

    Args:
        base_url: Root URL of the n8n instance.
        api_key: n8n API key.
        timeout: Per-request timeout in seconds.
        transport: Optional ``httpx`` transport override for testing.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http: httpx.Client = build_http_client(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            transport=transport,
        )
        self._workflows: WorkflowsClient | None = None

    @property
    def workflows(self) -> WorkflowsClient:
        """Workflow CRUD operations."""
        if self._workflows is None:
            self._workflows = WorkflowsClient(self._http)
        return self._workflows

    def test_connection(self) -> bool:
        """Return ``True`` if the instance answers an authenticated request."""
        try:
            self.workflows.list_workflows(limit=1)
        except N8nSyncError as exc:
            logger.error("Connection test failed: %s", exc)
            return False
        return True

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> N8nClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
