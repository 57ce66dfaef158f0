"""Broker configuration for scratchlink."""

from __future__ import annotations

import dataclasses
import os
import platform
import sys
from pathlib import Path
from typing import Any

from scratchlink._constants import (
    API_BASE_URL,
    ARCH_ALIASES,
    DEFAULT_HOST,
    DEFAULT_PORT,
    FIRMWARES_REPOSITORY,
    LIBRARIES_REPOSITORY,
    LOOPBACK_HOST,
    MANIFEST_NAME,
    MANIFEST_REPOSITORY,
    RELEASE_OWNER,
    REOPEN_INTERVAL,
    TOOLS_REPOSITORY,
)
from scratchlink.exceptions import LinkConfigError

#: Default user data root. Sessions receive ``<root>/link``.
DEFAULT_USER_DATA_PATH = Path.home() / ".coconutData"

#: Default root for build/flash tools and the synchronized libraries.
DEFAULT_TOOLS_PATH = Path("tools")


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def resolve_arch(override: str | None = None) -> str:
    """Return the architecture name used to select release assets.

    An explicit *override* (e.g. from ``--arch``) wins. Otherwise the
    interpreter's machine architecture is normalized to release naming
    (``x86_64`` -> ``x64``, ``aarch64`` -> ``arm64``).
    """
    if override:
        return override.strip()
    machine = platform.machine().strip().lower()
    return ARCH_ALIASES.get(machine, machine)


def platform_token(system: str | None = None) -> str:
    """Return the substring tool bundles use to name their platform."""
    value = system if system is not None else sys.platform
    if value.startswith("win"):
        return "Win"
    if value == "darwin":
        return "Mac"
    return "Linux"


@dataclasses.dataclass(frozen=True)
class LinkConfig:
    """Broker configuration.

    Parameters
    ----------
    host : str
        Documented listen host. Only used when ``bind_loopback`` is off.
    port : int
        Front-door port.
    bind_loopback : bool
        Listen on ``127.0.0.1`` instead of ``host``. The front door has no
        authentication, so this stays on unless the interface is trusted.
    user_data_path : Path
        Root for per-user data. Sessions get the ``link`` subdirectory.
    tools_path : Path
        Root for build/flash tools. Libraries are synchronized below it and
        firmwares next to it.
    release_owner : str
        Account owning the release repositories.
    manifest_repository, libraries_repository, firmwares_repository, tools_repository : str
        Release repositories for the manifest and each asset category.
    manifest_name : str
        Asset name of the manifest document.
    reopen_interval : float
        Seconds to wait before re-binding when a previous instance of this
        broker holds the port.
    max_port_retries : int or None
        Retry ceiling for the port conflict loop. ``None`` retries forever.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    api_base_url : str
        Release API base URL.
    arch : str or None
        Architecture override for asset selection.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    bind_loopback: bool = True
    user_data_path: Path = DEFAULT_USER_DATA_PATH
    tools_path: Path = DEFAULT_TOOLS_PATH
    release_owner: str = RELEASE_OWNER
    manifest_repository: str = MANIFEST_REPOSITORY
    libraries_repository: str = LIBRARIES_REPOSITORY
    firmwares_repository: str = FIRMWARES_REPOSITORY
    tools_repository: str = TOOLS_REPOSITORY
    manifest_name: str = MANIFEST_NAME
    reopen_interval: float = REOPEN_INTERVAL
    max_port_retries: int | None = None
    request_timeout: float = 60.0
    api_base_url: str = API_BASE_URL
    arch: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "user_data_path", Path(self.user_data_path))
        object.__setattr__(self, "tools_path", Path(self.tools_path))
        if not 0 <= int(self.port) <= 65535:
            raise LinkConfigError(f"port must be between 0 and 65535, got {self.port}")
        if self.reopen_interval < 0:
            raise LinkConfigError("reopen_interval must not be negative")
        if self.max_port_retries is not None and self.max_port_retries < 0:
            raise LinkConfigError("max_port_retries must not be negative")

    @property
    def bind_host(self) -> str:
        """Address the front door actually listens on."""
        return LOOPBACK_HOST if self.bind_loopback else self.host

    @property
    def link_data_path(self) -> Path:
        return self.user_data_path / "link"

    @property
    def libraries_path(self) -> Path:
        return self.tools_path.resolve() / "Arduino" / "libraries"

    @property
    def firmwares_path(self) -> Path:
        return self.tools_path.resolve().parent / "firmwares"

    @property
    def manifest_path(self) -> Path:
        return self.tools_path.resolve() / self.manifest_name

    @classmethod
    def from_env(cls, **overrides: Any) -> LinkConfig:
        """Create configuration from environment variables.

        Reads the optional ``SCRATCHLINK_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        LinkConfig
            Populated configuration.

        Raises
        ------
        LinkConfigError
            When a numeric variable cannot be parsed.
        """
        env = os.environ
        # Unset CLI options arrive as None and must not mask env values.
        overrides = {k: v for k, v in overrides.items() if v is not None}

        _ENV_CONFIG_MAP = {
            "SCRATCHLINK_HOST": "host",
            "SCRATCHLINK_USER_DATA_PATH": "user_data_path",
            "SCRATCHLINK_TOOLS_PATH": "tools_path",
            "SCRATCHLINK_RELEASE_OWNER": "release_owner",
            "SCRATCHLINK_API_BASE_URL": "api_base_url",
            "SCRATCHLINK_ARCH": "arch",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP = {
            "SCRATCHLINK_PORT": ("port", int),
            "SCRATCHLINK_REOPEN_INTERVAL": ("reopen_interval", float),
            "SCRATCHLINK_MAX_PORT_RETRIES": ("max_port_retries", int),
            "SCRATCHLINK_REQUEST_TIMEOUT": ("request_timeout", float),
        }
        for env_key, (field_name, parse) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = parse(val)
            except ValueError as exc:
                raise LinkConfigError(f"{env_key} is not a valid number: {val!r}") from exc

        if "bind_loopback" not in overrides:
            config_kwargs["bind_loopback"] = _env_bool(env.get("SCRATCHLINK_BIND_LOOPBACK"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
