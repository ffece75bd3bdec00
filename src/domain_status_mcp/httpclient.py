"""
Shared httpx client plumbing.

Every service accepts an optional `httpx.AsyncClient`. When one is given
(tests pass one backed by `httpx.MockTransport`) it is used as-is and left
open; otherwise a client is created for the duration of the operation.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from . import __version__

USER_AGENT = f"domain-status-mcp/{__version__} (domain-availability-checker)"


@asynccontextmanager
async def client_scope(
    client: httpx.AsyncClient | None,
    timeout: float,
    headers: dict[str, str] | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield `client`, or a short-lived client that is closed on exit."""
    if client is not None:
        yield client
        return

    merged = {"User-Agent": USER_AGENT}
    if headers:
        merged.update(headers)

    async with httpx.AsyncClient(
        timeout=timeout,
        headers=merged,
        follow_redirects=False,
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    ) as owned:
        yield owned
