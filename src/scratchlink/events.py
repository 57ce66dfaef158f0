"""Broker notifications and the observer registry that delivers them."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

_logger = logging.getLogger(__name__)


class BrokerEvent(StrEnum):
    READY = "ready"
    NEW_CONNECTION = "new-connection"
    PORT_IN_USE = "port-in-use"
    ERROR = "error"
    UPDATE_ERROR = "update-error"


Listener = Callable[[BrokerEvent, Any], None]


class EventHub:
    """Explicit subscribe/emit registry.

    Listeners are called synchronously in subscription order. A listener
    that raises is logged and skipped; it never affects the broker.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* and return a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def emit(self, event: BrokerEvent, payload: Any = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                _logger.debug("%s listener failed", event, exc_info=True)
