"""Pydantic models for the n8n public API workflow resources.

Every model allows extra keys so that fields this package does not know
about survive a pull/push round trip untouched.  Documents are always
produced with ``to_document()`` (camelCase aliases, unset fields omitted)
so that hashing a model and hashing the JSON blob written from it agree.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible document n8n exchanges."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class Node(_ApiModel):
    """A single node in a workflow graph."""

    id: str | None = None
    name: str
    type: str
    type_version: int | float | None = Field(default=None, alias="typeVersion")
    position: list[int | float] | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    credentials: dict[str, Any] | None = None
    disabled: bool | None = None
    notes: str | None = None
    notes_in_flow: bool | None = Field(default=None, alias="notesInFlow")


class ConnectionEdge(_ApiModel):
    """One outgoing edge: target node name, connection type and input index."""

    node: str
    type: str
    index: int


# source node name -> connection type -> output index -> edges
Connections = dict[str, dict[str, list[list[ConnectionEdge]]]]


class WorkflowSettings(_ApiModel):
    save_data_error_execution: str | None = Field(
        default=None, alias="saveDataErrorExecution"
    )
    save_data_success_execution: str | None = Field(
        default=None, alias="saveDataSuccessExecution"
    )
    save_manual_executions: bool | None = Field(
        default=None, alias="saveManualExecutions"
    )
    save_execution_progress: bool | None = Field(
        default=None, alias="saveExecutionProgress"
    )
    execution_timeout: int | float | None = Field(
        default=None, alias="executionTimeout"
    )
    timezone: str | None = None
    error_workflow: str | None = Field(default=None, alias="errorWorkflow")


class Tag(_ApiModel):
    id: str
    name: str


class Workflow(_ApiModel):
    """A workflow as returned by the n8n API."""

    id: str
    name: str
    active: bool = False
    nodes: list[Node] = Field(default_factory=list)
    connections: Connections = Field(default_factory=dict)
    settings: WorkflowSettings | None = None
    static_data: Any = Field(default=None, alias="staticData")
    tags: list[Tag] | None = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class WorkflowListResponse(BaseModel):
    """One page of ``GET /api/v1/workflows``.

    Items are kept as raw documents so that one malformed workflow does
    not reject the whole page; callers validate them one by one.
    """

    model_config = ConfigDict(populate_by_name=True)

    data: list[dict[str, Any]]
    next_cursor: str | None = Field(default=None, alias="nextCursor")


class WorkflowInput(_ApiModel):
    """Payload for creating or updating a workflow.

    Read-only and unknown top-level keys (``id``, ``active``, ``tags``,
    timestamps) are dropped because the API rejects them on write.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    nodes: list[Node] = Field(default_factory=list)
    connections: Connections = Field(default_factory=dict)
    settings: WorkflowSettings | None = None
    static_data: Any = Field(default=None, alias="staticData")


def as_document(resource: Workflow | Mapping[str, Any]) -> dict[str, Any]:
    """Return a plain-dict view of a workflow model or mapping."""
    if isinstance(resource, _ApiModel):
        return resource.to_document()
    return dict(resource)
