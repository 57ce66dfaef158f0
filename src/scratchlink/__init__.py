"""scratchlink - Local hardware-link broker with release asset synchronization."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyscratchlink")
except PackageNotFoundError:
    __version__ = "0+local"
from scratchlink.broker import Broker
from scratchlink.config import LinkConfig, platform_token, resolve_arch
from scratchlink.events import BrokerEvent
from scratchlink.exceptions import (
    LinkAssetNotFoundError,
    LinkBindError,
    LinkConfigError,
    LinkError,
    LinkManifestError,
    LinkTransportError,
)
from scratchlink.models import AssetEntry, Manifest
from scratchlink.router import SessionKind, SessionRouter
from scratchlink.sessions import Session, StatusSession
from scratchlink.sync import AssetSynchronizer, SyncFailure, SyncReport

__all__ = [
    "__version__",
    "AssetEntry",
    "AssetSynchronizer",
    "Broker",
    "BrokerEvent",
    "LinkAssetNotFoundError",
    "LinkBindError",
    "LinkConfig",
    "LinkConfigError",
    "LinkError",
    "LinkManifestError",
    "LinkTransportError",
    "Manifest",
    "Session",
    "SessionKind",
    "SessionRouter",
    "StatusSession",
    "SyncFailure",
    "SyncReport",
    "platform_token",
    "resolve_arch",
]
