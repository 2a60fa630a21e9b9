"""Explicit per-project context passed into every engine call."""

from __future__ import annotations

from dataclasses import dataclass

from n8n_sync.config import Settings
from n8n_sync.sync.blobs import BlobStore
from n8n_sync.sync.state import SyncStateManager


@dataclass
class SyncContext:
    """Configuration plus handles on the local record and blob stores."""

    settings: Settings
    state: SyncStateManager
    blobs: BlobStore

    @classmethod
    def from_settings(cls, settings: Settings) -> SyncContext:
        return cls(
            settings=settings,
            state=SyncStateManager(settings.state_file),
            blobs=BlobStore(settings.workflows_dir),
        )
