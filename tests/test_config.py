from __future__ import annotations

from pathlib import Path

import pytest

from scratchlink import config as config_module
from scratchlink.config import LinkConfig, platform_token, resolve_arch
from scratchlink.exceptions import LinkConfigError

_ENV_KEYS = [
    "SCRATCHLINK_HOST",
    "SCRATCHLINK_PORT",
    "SCRATCHLINK_BIND_LOOPBACK",
    "SCRATCHLINK_USER_DATA_PATH",
    "SCRATCHLINK_TOOLS_PATH",
    "SCRATCHLINK_RELEASE_OWNER",
    "SCRATCHLINK_API_BASE_URL",
    "SCRATCHLINK_ARCH",
    "SCRATCHLINK_REOPEN_INTERVAL",
    "SCRATCHLINK_MAX_PORT_RETRIES",
    "SCRATCHLINK_REQUEST_TIMEOUT",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    cfg = LinkConfig()
    assert cfg.port == 20111
    assert cfg.host == "0.0.0.0"
    assert cfg.bind_host == "127.0.0.1"
    assert cfg.reopen_interval == 1.0
    assert cfg.max_port_retries is None


def test_derived_paths(tmp_path: Path) -> None:
    cfg = LinkConfig(user_data_path=tmp_path / "data", tools_path=tmp_path / "tools")
    root = (tmp_path / "tools").resolve()
    assert cfg.link_data_path == tmp_path / "data" / "link"
    assert cfg.libraries_path == root / "Arduino" / "libraries"
    assert cfg.firmwares_path == root.parent / "firmwares"
    assert cfg.manifest_path == root / "index.json"


def test_wildcard_host_when_loopback_disabled() -> None:
    assert LinkConfig(bind_loopback=False).bind_host == "0.0.0.0"


def test_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SCRATCHLINK_PORT", "20112")
    monkeypatch.setenv("SCRATCHLINK_TOOLS_PATH", str(tmp_path / "tools"))
    monkeypatch.setenv("SCRATCHLINK_BIND_LOOPBACK", "off")
    monkeypatch.setenv("SCRATCHLINK_MAX_PORT_RETRIES", "5")

    cfg = LinkConfig.from_env()

    assert cfg.port == 20112
    assert cfg.tools_path == tmp_path / "tools"
    assert not cfg.bind_loopback
    assert cfg.max_port_retries == 5


def test_overrides_beat_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCRATCHLINK_PORT", "20112")
    monkeypatch.setenv("SCRATCHLINK_ARCH", "arm64")

    cfg = LinkConfig.from_env(port=30000, arch=None)

    assert cfg.port == 30000
    # None means "not given" and leaves the env value in place.
    assert cfg.arch == "arm64"


def test_invalid_numeric_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCRATCHLINK_PORT", "http")
    with pytest.raises(LinkConfigError):
        LinkConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [{"port": 70000}, {"port": -1}, {"reopen_interval": -0.5}, {"max_port_retries": -1}],
)
def test_validation(kwargs: dict[str, float]) -> None:
    with pytest.raises(LinkConfigError):
        LinkConfig(**kwargs)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("machine", "expected"),
    [("x86_64", "x64"), ("AMD64", "x64"), ("aarch64", "arm64"), ("armv7l", "arm"), ("i686", "ia32")],
)
def test_resolve_arch(monkeypatch: pytest.MonkeyPatch, machine: str, expected: str) -> None:
    monkeypatch.setattr(config_module.platform, "machine", lambda: machine)
    assert resolve_arch() == expected
    assert resolve_arch("arm64") == "arm64"


@pytest.mark.parametrize(
    ("system", "expected"),
    [("win32", "Win"), ("darwin", "Mac"), ("linux", "Linux"), ("freebsd13", "Linux")],
)
def test_platform_token(system: str, expected: str) -> None:
    assert platform_token(system) == expected
