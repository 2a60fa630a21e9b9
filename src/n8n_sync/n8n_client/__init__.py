from n8n_sync.n8n_client.client import N8nClient
from n8n_sync.n8n_client.schemas import (
    ConnectionEdge,
    Node,
    Tag,
    Workflow,
    WorkflowInput,
    WorkflowListResponse,
    WorkflowSettings,
    as_document,
)
from n8n_sync.n8n_client.workflows import WorkflowGateway, WorkflowsClient

__all__ = [
    "ConnectionEdge",
    "N8nClient",
    "Node",
    "Tag",
    "Workflow",
    "WorkflowGateway",
    "WorkflowInput",
    "WorkflowListResponse",
    "WorkflowSettings",
    "WorkflowsClient",
    "as_document",
]
