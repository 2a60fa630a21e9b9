"""Exception hierarchy for n8n-sync.

Item-level errors carry a ``code`` so batch operations can report them as
structured ``SyncError`` entries instead of aborting the whole batch.
Conflicts are deliberately absent: they are a sync state, not an error.
"""

from __future__ import annotations


class N8nSyncError(Exception):
    """Base class for all n8n-sync errors."""

    code = "SYNC_ERROR"


class NetworkError(N8nSyncError):
    """Transport failure or timeout while talking to the n8n API."""

    code = "NETWORK_ERROR"


class N8nApiError(NetworkError):
    """The n8n API answered with a non-success status."""

    code = "API_ERROR"

    def __init__(self, message: str, status_code: int, response_body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class NotFoundError(N8nApiError):
    """The requested remote workflow does not exist."""

    code = "NOT_FOUND"


class ValidationError(N8nSyncError):
    """Workflow content is malformed (remote response or local blob)."""

    code = "VALIDATION_ERROR"


class StoreError(N8nSyncError):
    """Reading or writing local state or blobs failed."""

    code = "STORE_ERROR"


class ConfigError(N8nSyncError):
    """The project is not initialized or its configuration is invalid."""

    code = "CONFIG_ERROR"


class ConnectionNotFoundError(N8nSyncError):
    code = "CONNECTION_NOT_FOUND"


class ConnectionExistsError(N8nSyncError):
    code = "CONNECTION_EXISTS"


class WorkflowNotFoundError(N8nSyncError):
    code = "WORKFLOW_NOT_FOUND"


class InvalidStateError(N8nSyncError):
    """An operation was requested on a record in the wrong sync status."""

    code = "INVALID_STATE"


class ConflictResolutionError(N8nSyncError):
    """The forced pull/push backing a conflict resolution did not succeed."""

    code = "RESOLUTION_FAILED"
