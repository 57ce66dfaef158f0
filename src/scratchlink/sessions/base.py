"""Base class for per-connection sessions."""

from __future__ import annotations

import logging
from pathlib import Path

from scratchlink.connection import Connection

_logger = logging.getLogger(__name__)


class Session:
    """Handler owning one accepted connection.

    Subclasses override :meth:`handle_message` and, if they hold device
    resources, :meth:`on_dispose`. :meth:`dispose` may be called any
    number of times; only the first call reaches :meth:`on_dispose`.

    Parameters
    ----------
    connection : Connection
        The accepted connection.
    user_data_path : Path
        Per-user data directory for this broker.
    tools_path : Path
        Root of the build/flash tools.
    """

    def __init__(self, connection: Connection, user_data_path: Path, tools_path: Path) -> None:
        self.connection = connection
        self.user_data_path = Path(user_data_path)
        self.tools_path = Path(tools_path)
        self._disposed = False
        connection.add_message_listener(self.handle_message)

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def handle_message(self, data: str | bytes) -> None:
        _logger.debug("%s ignoring %d byte message", type(self).__name__, len(data))

    def on_dispose(self) -> None:
        """Release session resources. Called at most once."""

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self.on_dispose()
