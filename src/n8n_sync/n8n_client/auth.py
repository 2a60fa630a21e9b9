"""HTTP client construction for the n8n public API.

n8n authenticates API calls with a static key sent in the
``X-N8N-API-KEY`` header.  This module builds a configured
``httpx.Client`` so the rest of the package never handles headers or
timeouts directly.
"""

from __future__ import annotations

import httpx

from n8n_sync.config import DEFAULT_TIMEOUT

API_KEY_HEADER = "X-N8N-API-KEY"


def normalize_base_url(base_url: str) -> str:
    return base_url.rstrip("/")


def build_http_client(
    *,
    base_url: str,
    api_key: str,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Build an ``httpx.Client`` bound to an n8n instance.

    Args:
        base_url: Root URL of the n8n instance, e.g. ``https://n8n.example.com``.
        api_key: n8n API key.
        timeout: Per-request timeout in seconds.  Timeouts are not retried.
        transport: Optional transport override, used by tests.

    Returns:
        A client whose relative URLs resolve against *base_url*.

    Raises:
        ValueError: If *base_url* or *api_key* is empty.
    """
    if not base_url:
        raise ValueError("n8n base_url is required.")
    if not api_key:
        raise ValueError("n8n api_key is required.")

    return httpx.Client(
        base_url=normalize_base_url(base_url),
        headers={
            "Content-Type": "application/json",
            "Accept": "application/json",
            API_KEY_HEADER: api_key,
        },
        timeout=timeout,
        transport=transport,
    )
