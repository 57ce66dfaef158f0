"""Recovery from front-door bind conflicts.

When the port is already taken, the guard asks the occupant who it is.
If the answer is this broker's identity string, the occupant is a stale
or duplicate instance that will go away: the guard waits, releases the
failed listener and binds again, for as long as the conflict lasts. Any
other occupant, or no answer at all, ends the attempt with a fatal error.

::

    BINDING --ok--> READY
       |
       +--EADDRINUSE--> CONFLICT --probe matches--> RETRY_WAIT --> BINDING
       |                    |
       |                    +--probe differs/fails--> FATAL
       +--other OSError--> FAILED
"""

from __future__ import annotations

import asyncio
import errno
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

import aiohttp

from scratchlink._constants import LOOPBACK_HOST, REOPEN_INTERVAL, SERVER_NAME
from scratchlink.exceptions import LinkBindError

_logger = logging.getLogger(__name__)

IdentityProbe = Callable[[int], Awaitable[bool]]
Sleep = Callable[[float], Awaitable[None]]


class PortState(StrEnum):
    IDLE = "idle"
    BINDING = "binding"
    READY = "ready"
    CONFLICT = "conflict"
    RETRY_WAIT = "retry-wait"
    FATAL = "fatal"
    FAILED = "failed"


async def probe_identity(
    http_session: aiohttp.ClientSession,
    port: int,
    *,
    host: str = LOOPBACK_HOST,
    timeout: float = 5.0,
) -> bool:
    """Return whether ``http://<host>:<port>/`` answers with this broker's identity.

    Network errors propagate as :class:`aiohttp.ClientError` or
    :class:`asyncio.TimeoutError`; the guard treats them as "not us".
    """
    url = f"http://{host}:{port}/"
    async with http_session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
        body = await resp.read()
    return body == SERVER_NAME.encode()


class PortGuard:
    """Drive bind attempts for one listener through the conflict state machine.

    Parameters
    ----------
    host, port : str, int
        Address being bound, used in messages and for the probe port.
    probe : IdentityProbe
        Coroutine function ``probe(port) -> bool``.
    sleep : Sleep
        Delay function, injectable so tests do not wait.
    reopen_interval : float
        Seconds between attempts while the port is held by this broker.
    max_retries : int or None
        Optional ceiling on conflict retries. ``None`` retries forever.
    on_port_in_use : callable, optional
        Called on every conflict with another instance of this broker.
    on_fatal : callable, optional
        Called with a :class:`LinkBindError` when the guard gives up.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        probe: IdentityProbe,
        sleep: Sleep = asyncio.sleep,
        reopen_interval: float = REOPEN_INTERVAL,
        max_retries: int | None = None,
        on_port_in_use: Callable[[], None] | None = None,
        on_fatal: Callable[[LinkBindError], None] | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self._probe = probe
        self._sleep = sleep
        self._reopen_interval = reopen_interval
        self._max_retries = max_retries
        self._on_port_in_use = on_port_in_use
        self._on_fatal = on_fatal
        self.state = PortState.IDLE
        self.retries = 0

    async def _is_same_server(self) -> bool:
        try:
            return await self._probe(self.port)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as exc:
            _logger.debug("Identity probe on port %d failed: %s", self.port, exc)
            return False

    def _fatal(self, exc: OSError, reason: str) -> bool:
        self.state = PortState.FATAL
        info = f"ERR!: error while trying to listen port {self.port}: {reason}"
        _logger.error(info)
        if self._on_fatal is not None:
            self._on_fatal(LinkBindError(info, host=self.host, port=self.port, cause=exc))
        return False

    async def bind(
        self,
        attempt: Callable[[], Awaitable[None]],
        release: Callable[[], Awaitable[None]],
    ) -> bool:
        """Bind via *attempt*, retrying on self-conflicts.

        Parameters
        ----------
        attempt
            Starts the listener; raises :class:`OSError` on bind failure.
        release
            Closes the failed listener before the next attempt.

        Returns
        -------
        bool
            ``True`` once listening, ``False`` on a fatal conflict or an
            unrelated bind error.
        """
        self.retries = 0
        while True:
            self.state = PortState.BINDING
            try:
                await attempt()
            except OSError as exc:
                if exc.errno != errno.EADDRINUSE:
                    # Not a conflict: reported, but outside the retry/fatal handling.
                    self.state = PortState.FAILED
                    _logger.error("ERR!: %s", exc)
                    return False

                self.state = PortState.CONFLICT
                if not await self._is_same_server():
                    return self._fatal(exc, str(exc))

                if self._max_retries is not None and self.retries >= self._max_retries:
                    return self._fatal(exc, f"still in use after {self.retries} retries")

                self.state = PortState.RETRY_WAIT
                _logger.info(
                    "Port is already used by other scratch-link server, will try reopening after %s s",
                    self._reopen_interval,
                )
                if self._on_port_in_use is not None:
                    self._on_port_in_use()
                await self._sleep(self._reopen_interval)
                await release()
                self.retries += 1
                continue

            self.state = PortState.READY
            return True
