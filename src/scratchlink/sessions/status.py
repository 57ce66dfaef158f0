"""Identity session served on ``/status``.

Speaks JSON-RPC 2.0 over text frames. The only method is
``getServerInfo``, which lets a client confirm it reached this broker and
learn its version.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from scratchlink import __version__
from scratchlink._constants import SERVER_NAME
from scratchlink.sessions.base import Session

_logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601


def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


class StatusSession(Session):
    """Answers identity queries for the front door."""

    async def handle_message(self, data: str | bytes) -> None:
        response = self._respond(data)
        if response is not None:
            await self.connection.send_str(json.dumps(response))

    def _respond(self, data: str | bytes) -> dict[str, Any] | None:
        try:
            request = json.loads(data)
        except (TypeError, ValueError):
            return _error(None, PARSE_ERROR, "Parse error")

        if not isinstance(request, dict) or not isinstance(request.get("method"), str):
            return _error(None, INVALID_REQUEST, "Invalid Request")

        request_id = request.get("id")
        method = request["method"]
        if method != "getServerInfo":
            _logger.debug("status session: unknown method %s", method)
            return _error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        if request_id is None:
            # Notification, no reply expected.
            return None

        return {"jsonrpc": "2.0", "id": request_id, "result": {"name": SERVER_NAME, "version": __version__}}
