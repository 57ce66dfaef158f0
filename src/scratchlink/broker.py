"""Local hardware-link broker.

The broker owns the front door (an aiohttp application serving the
identity string on ``/`` and websocket sessions on routed paths), drives
the port guard when binding, and runs the asset synchronizer on start.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from typing import Any

import aiohttp
from aiohttp import web

from scratchlink._constants import SERVER_NAME
from scratchlink._transport import GithubReleaseFetcher, ReleaseFetcher
from scratchlink.config import LinkConfig
from scratchlink.connection import WebSocketConnection
from scratchlink.events import BrokerEvent, EventHub, Listener
from scratchlink.exceptions import LinkBindError, LinkError
from scratchlink.port_guard import PortGuard, PortState, Sleep, probe_identity
from scratchlink.router import DEFAULT_FACTORIES, SessionFactory, SessionKind, SessionRouter
from scratchlink.sync import AssetSynchronizer, SyncReport

_logger = logging.getLogger(__name__)


class Broker:
    """Front door plus asset cache maintenance.

    Usage::

        async with Broker(LinkConfig.from_env()) as broker:
            broker.subscribe(lambda event, payload: print(event, payload))
            await broker.listen()
            await broker.start()

    Parameters
    ----------
    config : LinkConfig, optional
        Broker configuration. Defaults to ``LinkConfig()``.
    session_factories : Mapping[SessionKind, SessionFactory], optional
        Session constructors per kind. Defaults to the built-in status
        session only; device sessions are registered by the caller.
    http_session : aiohttp.ClientSession, optional
        Externally owned client session for probes and downloads.
    fetcher : ReleaseFetcher, optional
        Release download primitive. Defaults to :class:`GithubReleaseFetcher`.
    sleep : Sleep, optional
        Delay function used between bind retries.
    """

    def __init__(
        self,
        config: LinkConfig | None = None,
        *,
        session_factories: Mapping[SessionKind, SessionFactory] | None = None,
        http_session: aiohttp.ClientSession | None = None,
        fetcher: ReleaseFetcher | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config or LinkConfig()
        self._external_session = http_session is not None
        self._http_session = http_session
        self._fetcher = fetcher
        self._sleep = sleep
        self._events = EventHub()
        self._router = SessionRouter(
            self._config,
            DEFAULT_FACTORIES if session_factories is None else session_factories,
            on_new_connection=lambda: self._events.emit(BrokerEvent.NEW_CONNECTION),
        )
        self._host = self._config.bind_host
        self._port = self._config.port
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._guard: PortGuard | None = None
        self._connections: set[WebSocketConnection] = set()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Broker:
        self._ensure_http_session()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop listening and release owned resources."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register for :class:`BrokerEvent` notifications; returns an unsubscribe callable."""
        return self._events.subscribe(listener)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> LinkConfig:
        return self._config

    @property
    def router(self) -> SessionRouter:
        return self._router

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        """Listening port; resolves an ephemeral ``0`` once bound."""
        if self._runner is not None and self._site is not None:
            for address in self._runner.addresses:
                if isinstance(address, tuple) and len(address) >= 2:
                    return int(address[1])
        return self._port

    @property
    def port_state(self) -> PortState:
        return self._guard.state if self._guard is not None else PortState.IDLE

    # ------------------------------------------------------------------
    # Asset synchronization
    # ------------------------------------------------------------------

    async def start(self) -> SyncReport:
        """Synchronize tools, libraries and firmwares once.

        Never raises for synchronization problems; an incomplete run is
        published once as :attr:`BrokerEvent.UPDATE_ERROR` with the report.
        """
        fetcher = self._fetcher
        if fetcher is None:
            fetcher = GithubReleaseFetcher(self._config, self._ensure_http_session())
        synchronizer = AssetSynchronizer(self._config, fetcher)
        try:
            report = await synchronizer.synchronize(self._config.tools_path)
        except (LinkError, OSError) as exc:
            _logger.error("Update error - %s", exc)
            report = SyncReport(aborted=True, abort_reason=str(exc))
        if not report.ok:
            self._events.emit(BrokerEvent.UPDATE_ERROR, report)
        return report

    # ------------------------------------------------------------------
    # Front door
    # ------------------------------------------------------------------

    def _ensure_http_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    def _make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_root)
        app.router.add_get("/{tail:.*}", self._handle_socket)
        app.on_shutdown.append(self._close_connections)
        return app

    async def _close_connections(self, _app: web.Application) -> None:
        for connection in list(self._connections):
            await connection.close()

    async def _handle_root(self, request: web.Request) -> web.Response:
        return web.Response(text=SERVER_NAME, content_type="text/html")

    async def _handle_socket(self, request: web.Request) -> web.StreamResponse:
        ws = web.WebSocketResponse()
        if not ws.can_prepare(request).ok:
            raise web.HTTPNotFound()
        await ws.prepare(request)

        connection = WebSocketConnection(ws)
        session = await self._router.on_connection(connection, request.path)
        if session is not None:
            self._connections.add(connection)
            try:
                await connection.serve()
            finally:
                self._connections.discard(connection)
        return ws

    async def _start_site(self) -> None:
        if self._runner is None:
            raise RuntimeError("application runner is not set up")
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()

    async def _release_site(self) -> None:
        site = self._site
        self._site = None
        if site is not None:
            # A site whose bind failed may already be unregistered.
            with contextlib.suppress(RuntimeError):
                await site.stop()

    def _on_fatal(self, error: LinkBindError) -> None:
        self._events.emit(BrokerEvent.ERROR, error)

    async def listen(self, port: int | None = None, host: str | None = None) -> bool:
        """Start listening for connections.

        Resolves once listening (``True``), or when the port cannot be
        obtained (``False``). While another instance of this broker holds
        the port, keeps retrying every ``config.reopen_interval`` seconds.

        Parameters
        ----------
        port : int, optional
            Overrides ``config.port``.
        host : str, optional
            Overrides the bind host (``127.0.0.1`` unless loopback binding
            is disabled in the config).
        """
        if port is not None:
            self._port = port
        if host is not None:
            self._host = host

        if self._runner is None:
            self._runner = web.AppRunner(self._make_app())
            await self._runner.setup()

        http_session = self._ensure_http_session()

        async def _probe(probe_port: int) -> bool:
            return await probe_identity(http_session, probe_port)

        self._guard = PortGuard(
            self._host,
            self._port,
            probe=_probe,
            sleep=self._sleep,
            reopen_interval=self._config.reopen_interval,
            max_retries=self._config.max_port_retries,
            on_port_in_use=lambda: self._events.emit(BrokerEvent.PORT_IN_USE),
            on_fatal=self._on_fatal,
        )
        if not await self._guard.bind(self._start_site, self._release_site):
            await self._release_site()
            return False

        _logger.info("socket server listen: http://%s:%d", self._host, self.port)
        self._events.emit(BrokerEvent.READY)
        return True
