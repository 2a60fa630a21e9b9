"""File-backed store for full workflow documents.

Documents are addressed by ``(connection_id, key)`` where *key* is the
remote workflow id (or the local record id for a workflow that has not
been created remotely yet).  Each key has two slots:

- ``PRIMARY``: the local working copy, the file users edit.
- ``PENDING_REMOTE``: the remote snapshot captured when a conflict was
  detected, kept for inspection until the conflict is resolved.

Layout::

    <root>/<connection_id>/<key>/workflow.json
    <root>/<connection_id>/<key>/remote.pending.json
"""

from __future__ import annotations

import json
import logging
import shutil
from enum import StrEnum
from pathlib import Path
from typing import Any

from n8n_sync.errors import StoreError
from n8n_sync.sync.hashing import compute_workflow_hash

logger = logging.getLogger(__name__)


class BlobSlot(StrEnum):
    PRIMARY = "workflow.json"
    PENDING_REMOTE = "remote.pending.json"


class BlobStore:
    """Reads and writes workflow JSON documents under a root directory.

    Args:
        root: Directory holding one sub-directory per connection.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path(self, connection_id: str, key: str, slot: BlobSlot = BlobSlot.PRIMARY) -> Path:
        return self._root / connection_id / key / slot.value

    def exists(self, connection_id: str, key: str, slot: BlobSlot = BlobSlot.PRIMARY) -> bool:
        return self.path(connection_id, key, slot).exists()

    def read(
        self, connection_id: str, key: str, slot: BlobSlot = BlobSlot.PRIMARY
    ) -> dict[str, Any] | None:
        """Return the stored document, or ``None`` if the slot is empty.

        Raises:
            StoreError: If the file exists but cannot be read or parsed.
        """
        path = self.path(connection_id, key, slot)
        if not path.exists():
            return None
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"Cannot read workflow file {path}: {exc}") from exc
        if not isinstance(document, dict):
            raise StoreError(f"Workflow file {path} does not hold a JSON object")
        return document

    def write(
        self,
        connection_id: str,
        key: str,
        document: dict[str, Any],
        slot: BlobSlot = BlobSlot.PRIMARY,
    ) -> Path:
        """Write *document* as pretty-printed JSON, replacing the slot."""
        path = self.path(connection_id, key, slot)
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise StoreError(f"Cannot write workflow file {path}: {exc}") from exc
        return path

    def read_bytes(
        self, connection_id: str, key: str, slot: BlobSlot = BlobSlot.PRIMARY
    ) -> bytes | None:
        path = self.path(connection_id, key, slot)
        return path.read_bytes() if path.exists() else None

    def content_hash(
        self, connection_id: str, key: str, slot: BlobSlot = BlobSlot.PRIMARY
    ) -> str | None:
        """Content hash of the stored document, ``None`` if absent."""
        document = self.read(connection_id, key, slot)
        if document is None:
            return None
        return compute_workflow_hash(document)

    def delete(self, connection_id: str, key: str, slot: BlobSlot) -> None:
        path = self.path(connection_id, key, slot)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot delete workflow file {path}: {exc}") from exc

    def move(self, connection_id: str, old_key: str, new_key: str) -> None:
        """Re-key every slot of *old_key* to *new_key*."""
        src = self._root / connection_id / old_key
        dst = self._root / connection_id / new_key
        if not src.exists() or src == dst:
            return
        try:
            dst.mkdir(parents=True, exist_ok=True)
            for item in src.iterdir():
                item.replace(dst / item.name)
            src.rmdir()
        except OSError as exc:
            raise StoreError(f"Cannot move {src} to {dst}: {exc}") from exc

    def remove_connection(self, connection_id: str) -> None:
        shutil.rmtree(self._root / connection_id, ignore_errors=True)
        logger.debug("Removed blob directory for connection %s", connection_id)
