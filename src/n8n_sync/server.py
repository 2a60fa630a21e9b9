"""MCP server for n8n workflow sync.

Creates a FastMCP server bound to the project found from the working
directory (or ``N8N_SYNC_PROJECT_ROOT``) and registers the sync tools.

Run with:
    n8n-sync-mcp
    # or
    python -m n8n_sync.server
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from n8n_sync.config import load_settings
from n8n_sync.context import SyncContext
from n8n_sync.tools.sync_tools import register_sync_tools

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "n8n-sync",
    instructions=(
        "n8n-sync MCP server for bi-directional sync between n8n "
        "workflows and a local project. Use these tools to pull, push, "
        "diff and resolve conflicts on workflows."
    ),
)


def _initialize(project: Path | None = None) -> SyncContext:
    """Load settings, build the context and register all tools."""
    env_root = os.environ.get("N8N_SYNC_PROJECT_ROOT")
    settings = load_settings(project or (Path(env_root) if env_root else None))
    # stdout carries the MCP protocol; logs go to stderr.
    logging.basicConfig(level=settings.log_level)

    ctx = SyncContext.from_settings(settings)
    register_sync_tools(mcp, ctx)
    logger.info("Serving n8n-sync project at %s", settings.project_root)
    return ctx


def main() -> None:
    """Entry point for the MCP server."""
    _initialize()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
