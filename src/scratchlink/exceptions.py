"""Custom exception hierarchy for scratchlink."""

from __future__ import annotations


class LinkError(Exception):
    """Base exception for all scratchlink errors."""


class LinkConfigError(LinkError):
    """Invalid or missing configuration."""


class LinkTransportError(LinkError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class LinkAssetNotFoundError(LinkTransportError):
    """No release or release asset matched the requested filters."""


class LinkManifestError(LinkError):
    """The asset manifest is missing or does not validate."""


class LinkBindError(LinkError):
    """The front door could not listen on its configured address.

    Carried as the payload of the ``error`` notification when the port is
    held by a process that is not another instance of this broker.  The
    underlying :class:`OSError` is available as :attr:`cause`.
    """

    def __init__(
        self,
        message: str,
        *,
        host: str,
        port: int,
        cause: BaseException | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(message)
