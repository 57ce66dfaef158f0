from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from aiohttp import web


@contextlib.asynccontextmanager
async def _serve_app(app: web.Application) -> AsyncIterator[int]:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = int(runner.addresses[0][1])
    try:
        yield port
    finally:
        await runner.cleanup()


@pytest.fixture
def serve_app() -> Callable[[web.Application], Any]:
    """Run an aiohttp application on an ephemeral loopback port.

    Usage: ``async with serve_app(app) as port: ...``
    """
    return _serve_app
