"""Session handlers routed by the front door."""

from scratchlink.sessions.base import Session
from scratchlink.sessions.status import StatusSession

__all__ = ["Session", "StatusSession"]
