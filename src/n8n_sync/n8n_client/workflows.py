"""Workflow CRUD operations against the n8n public API.

Wraps ``/api/v1/workflows`` endpoints: list (cursor paginated), get,
create, update and delete.  Every call is a single attempt with the
client's timeout; retries are left to callers.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
import pydantic

from n8n_sync.errors import N8nApiError, NetworkError, NotFoundError, ValidationError
from n8n_sync.n8n_client.schemas import Workflow, WorkflowInput, WorkflowListResponse

logger = logging.getLogger(__name__)

WORKFLOWS_PATH = "/api/v1/workflows"


class WorkflowGateway(Protocol):
    """The subset of the workflows API the sync engine depends on."""

    def list_all_workflows(
        self, *, active: bool | None = None, limit: int | None = None
    ) -> list[dict[str, Any]]: ...

    def get_workflow(self, workflow_id: str) -> Workflow: ...

    def create_workflow(self, workflow: WorkflowInput) -> Workflow: ...

    def update_workflow(self, workflow_id: str, workflow: WorkflowInput) -> Workflow: ...


class WorkflowsClient:
    """Client for n8n workflow resources.

    Args:
        http: A configured ``httpx.Client`` (see ``build_http_client``).
    """

    def __init__(self, http: httpx.Client) -> None:
        self._http = http

    # ------------------------------------------------------------------
    # List (paginated)
    # ------------------------------------------------------------------

    def list_workflows(
        self,
        *,
        active: bool | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> tuple[list[dict[str, Any]], str | None]:
        """List workflows, returning one page of raw documents.

        Args:
            active: Only return workflows with this activation state.
            limit: Page size.
            cursor: Pagination cursor from a previous call.

        Returns:
            A tuple of ``(documents, next_cursor)``.  Documents are not
            validated individually; see ``Workflow.model_validate``.  ``next_cursor`` is
            ``None`` when there are no more pages.
        """
        params: dict[str, str] = {}
        if active is not None:
            params["active"] = str(active).lower()
        if limit is not None:
            params["limit"] = str(limit)
        if cursor:
            params["cursor"] = cursor

        payload = self._request("GET", WORKFLOWS_PATH, "list workflows", params=params)
        page = self._parse(WorkflowListResponse, payload, "list workflows")
        return page.data, page.next_cursor or None

    def list_all_workflows(
        self, *, active: bool | None = None, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """Collect every page of ``list_workflows`` into one list."""
        workflows: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            page, cursor = self.list_workflows(active=active, limit=limit, cursor=cursor)
            workflows.extend(page)
            if cursor is None:
                break
        logger.debug("Listed %d workflows", len(workflows))
        return workflows

    # ------------------------------------------------------------------
    # Single resource
    # ------------------------------------------------------------------

    def get_workflow(self, workflow_id: str) -> Workflow:
        """Fetch one workflow.

        Raises:
            NotFoundError: If the workflow does not exist.
        """
        operation = f"get workflow {workflow_id}"
        payload = self._request("GET", f"{WORKFLOWS_PATH}/{workflow_id}", operation)
        return self._parse(Workflow, payload, operation)

    def create_workflow(self, workflow: WorkflowInput) -> Workflow:
        payload = self._request(
            "POST", WORKFLOWS_PATH, "create workflow", json=workflow.to_document()
        )
        return self._parse(Workflow, payload, "create workflow")

    def update_workflow(self, workflow_id: str, workflow: WorkflowInput) -> Workflow:
        operation = f"update workflow {workflow_id}"
        payload = self._request(
            "PUT",
            f"{WORKFLOWS_PATH}/{workflow_id}",
            operation,
            json=workflow.to_document(),
        )
        return self._parse(Workflow, payload, operation)

    def delete_workflow(self, workflow_id: str) -> None:
        self._request("DELETE", f"{WORKFLOWS_PATH}/{workflow_id}", f"delete workflow {workflow_id}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Perform one HTTP call and return the decoded JSON body.

        Raises:
            NetworkError: On transport failures and timeouts.
            NotFoundError: On HTTP 404.
            N8nApiError: On any other non-success status.
        """
        try:
            response = self._http.request(method, path, params=params, json=json)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Timed out during '{operation}': {exc}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Network error during '{operation}': {exc}") from exc

        self._check_response(response, operation)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ValidationError(
                f"n8n returned invalid JSON during '{operation}'"
            ) from exc

    @staticmethod
    def _check_response(response: httpx.Response, operation: str) -> None:
        """Raise an ``N8nApiError`` if the response indicates failure."""
        if response.is_success:
            return
        message = (
            f"n8n API error during '{operation}': "
            f"{response.status_code} {response.reason_phrase}"
        )
        if response.status_code == 404:
            raise NotFoundError(message, response.status_code, response.text)
        raise N8nApiError(message, response.status_code, response.text)

    @staticmethod
    def _parse(model: type[Any], payload: Any, operation: str) -> Any:
        try:
            return model.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(
                f"Unexpected response shape during '{operation}': {exc}"
            ) from exc
