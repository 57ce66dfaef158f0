"""Connection handles passed to sessions.

Sessions never see the aiohttp objects directly; they register listeners
on a :class:`Connection` and send through it.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from aiohttp import WSMsgType, web

_logger = logging.getLogger(__name__)

MessageListener = Callable[[str | bytes], Awaitable[None] | None]
CloseListener = Callable[[], None]
ErrorListener = Callable[[BaseException | None], None]


class Connection(Protocol):
    """Structural interface of an accepted front-door connection."""

    def add_message_listener(self, listener: MessageListener) -> None: ...

    def add_close_listener(self, listener: CloseListener) -> None: ...

    def add_error_listener(self, listener: ErrorListener) -> None: ...

    async def send_str(self, data: str) -> None: ...

    async def close(self) -> None: ...


class WebSocketConnection:
    """Adapter from an aiohttp websocket to :class:`Connection`.

    :meth:`serve` pumps frames to the message listeners until the socket
    ends. A transport error fires the error listeners; the close
    listeners fire exactly once when the socket is done, whatever the
    reason.
    """

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws
        self._message_listeners: list[MessageListener] = []
        self._close_listeners: list[CloseListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed or self._ws.closed

    def add_message_listener(self, listener: MessageListener) -> None:
        self._message_listeners.append(listener)

    def add_close_listener(self, listener: CloseListener) -> None:
        self._close_listeners.append(listener)

    def add_error_listener(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    async def send_str(self, data: str) -> None:
        await self._ws.send_str(data)

    async def close(self) -> None:
        await self._ws.close()

    async def _dispatch(self, data: str | bytes) -> None:
        for listener in list(self._message_listeners):
            result = listener(data)
            if inspect.isawaitable(result):
                await result

    def _fire_error(self, exc: BaseException | None) -> None:
        for listener in list(self._error_listeners):
            try:
                listener(exc)
            except Exception:
                _logger.debug("error listener failed", exc_info=True)

    def _fire_close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for listener in list(self._close_listeners):
            try:
                listener()
            except Exception:
                _logger.debug("close listener failed", exc_info=True)

    async def serve(self) -> None:
        """Deliver incoming frames until the websocket closes."""
        try:
            async for msg in self._ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    try:
                        await self._dispatch(msg.data)
                    except Exception as exc:
                        _logger.warning("session failed handling a message: %s", exc)
                        self._fire_error(exc)
                        await self._ws.close()
                elif msg.type == WSMsgType.ERROR:
                    self._fire_error(self._ws.exception())
        finally:
            self._fire_close()
