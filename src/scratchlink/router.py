"""Front-door routing of accepted connections to sessions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType

from scratchlink.config import LinkConfig
from scratchlink.connection import Connection
from scratchlink.sessions import Session, StatusSession

_logger = logging.getLogger(__name__)


class SessionKind(StrEnum):
    STATUS = "status"
    BLE = "ble"
    SERIALPORT = "serialport"


SessionFactory = Callable[[Connection, Path, Path], Session]

#: Request path -> session kind. Matched exactly; fixed for the process lifetime.
DEFAULT_ROUTES: Mapping[str, SessionKind] = MappingProxyType(
    {
        "/status": SessionKind.STATUS,
        "/scratch/ble": SessionKind.BLE,
        "/scratch/serialport": SessionKind.SERIALPORT,
    }
)

#: Built-in session factories. BLE and serial-port sessions are supplied by
#: the embedding application.
DEFAULT_FACTORIES: Mapping[SessionKind, SessionFactory] = MappingProxyType(
    {SessionKind.STATUS: StatusSession},
)


class SessionRouter:
    """Match request paths and own the session lifecycle per connection.

    Parameters
    ----------
    config : LinkConfig
        Supplies the read-only paths handed to every session.
    factories : Mapping[SessionKind, SessionFactory]
        Constructors per session kind. A routed kind without a factory is
        treated like an unknown path.
    routes : Mapping[str, SessionKind]
        Routing table, exact path match.
    on_new_connection : callable, optional
        Called once for every connection that gets a session.
    """

    def __init__(
        self,
        config: LinkConfig,
        factories: Mapping[SessionKind, SessionFactory] = DEFAULT_FACTORIES,
        *,
        routes: Mapping[str, SessionKind] = DEFAULT_ROUTES,
        on_new_connection: Callable[[], None] | None = None,
    ) -> None:
        self._config = config
        self._routes = MappingProxyType(dict(routes))
        self._factories = MappingProxyType(dict(factories))
        self._on_new_connection = on_new_connection

    @property
    def routes(self) -> Mapping[str, SessionKind]:
        return self._routes

    def resolve(self, request_path: str) -> SessionFactory | None:
        kind = self._routes.get(request_path)
        if kind is None:
            return None
        factory = self._factories.get(kind)
        if factory is None:
            _logger.warning("No session handler registered for %s (%s)", request_path, kind)
        return factory

    async def on_connection(self, connection: Connection, request_path: str) -> Session | None:
        """Create the session for *connection* or close it.

        Returns the new session, or ``None`` when the path is not routable
        (the connection is closed without a reply).
        """
        factory = self.resolve(request_path)
        if factory is None:
            _logger.debug("Rejecting connection to %s", request_path)
            await connection.close()
            return None

        session: Session | None = factory(connection, self._config.link_data_path, self._config.tools_path)
        created = session
        _logger.info("new connection")
        if self._on_new_connection is not None:
            self._on_new_connection()

        def _dispose(*_args: object) -> None:
            nonlocal session
            if session is not None:
                session.dispose()
                session = None

        connection.add_close_listener(_dispose)
        connection.add_error_listener(_dispose)
        return created
