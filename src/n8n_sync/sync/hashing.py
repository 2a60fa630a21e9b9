"""Canonical JSON serialization and workflow content hashing.

The workflow hash is the basis of all change detection, so it must be
stable across key ordering and must ignore fields the server rewrites on
every read without a semantic edit (the workflow id and its timestamps).
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from n8n_sync.n8n_client.schemas import Workflow, as_document

# Top-level keys that never contribute to a workflow's content hash.
VOLATILE_FIELDS = frozenset({"id", "createdAt", "updatedAt"})


def canonicalize(obj: Any) -> str:
    """Serialize *obj* to a stable JSON string.

    Keys are sorted recursively at every nesting level and insignificant
    whitespace is removed.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )


def compute_content_hash(content: str) -> str:
    """Compute a hex SHA-256 digest of a string."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def compute_workflow_hash(workflow: Workflow | Mapping[str, Any]) -> str:
    """Compute the content hash of a workflow model or document.

    Two workflows that differ only in ``id``, ``createdAt`` or
    ``updatedAt`` hash identically.
    """
    document = as_document(workflow)
    semantic = {k: v for k, v in document.items() if k not in VOLATILE_FIELDS}
    return compute_content_hash(canonicalize(semantic))


def compute_file_hash(file_path: str | Path) -> str:
    """Hash a workflow JSON file by its parsed content.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON.
    """
    document = json.loads(Path(file_path).read_text(encoding="utf-8"))
    return compute_workflow_hash(document)
