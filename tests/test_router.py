from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from scratchlink.config import LinkConfig
from scratchlink.connection import Connection
from scratchlink.router import DEFAULT_ROUTES, SessionKind, SessionRouter
from scratchlink.sessions import Session, StatusSession


@dataclass
class FakeConnection:
    closed: bool = False
    message_listeners: list[Any] = field(default_factory=list)
    close_listeners: list[Any] = field(default_factory=list)
    error_listeners: list[Any] = field(default_factory=list)
    sent: list[str] = field(default_factory=list)

    def add_message_listener(self, listener: Any) -> None:
        self.message_listeners.append(listener)

    def add_close_listener(self, listener: Any) -> None:
        self.close_listeners.append(listener)

    def add_error_listener(self, listener: Any) -> None:
        self.error_listeners.append(listener)

    async def send_str(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True

    def fire_close(self) -> None:
        for listener in list(self.close_listeners):
            listener()

    def fire_error(self, exc: BaseException | None = None) -> None:
        for listener in list(self.error_listeners):
            listener(exc)


class CountingSession(Session):
    created: list[CountingSession] = []

    def __init__(self, connection: Connection, user_data_path: Path, tools_path: Path) -> None:
        super().__init__(connection, user_data_path, tools_path)
        self.dispose_calls = 0
        CountingSession.created.append(self)

    def dispose(self) -> None:
        self.dispose_calls += 1
        super().dispose()


@pytest.fixture
def config(tmp_path: Path) -> LinkConfig:
    return LinkConfig(tools_path=tmp_path / "tools", user_data_path=tmp_path / "data")


@pytest.fixture(autouse=True)
def _reset_sessions() -> None:
    CountingSession.created.clear()


def _router(config: LinkConfig, notifications: list[str]) -> SessionRouter:
    return SessionRouter(
        config,
        {SessionKind.STATUS: StatusSession, SessionKind.SERIALPORT: CountingSession},
        on_new_connection=lambda: notifications.append("new-connection"),
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/unknown", "/", "/status/", "/scratch/serialport/extra"])
async def test_unknown_path_closes_connection(config: LinkConfig, path: str) -> None:
    notifications: list[str] = []
    conn = FakeConnection()

    session = await _router(config, notifications).on_connection(conn, path)

    assert session is None
    assert conn.closed
    assert conn.sent == []
    assert notifications == []
    assert CountingSession.created == []


@pytest.mark.asyncio
async def test_routed_kind_without_factory_is_unroutable(config: LinkConfig) -> None:
    notifications: list[str] = []
    conn = FakeConnection()

    session = await _router(config, notifications).on_connection(conn, "/scratch/ble")

    assert session is None
    assert conn.closed
    assert notifications == []


@pytest.mark.asyncio
async def test_known_path_creates_one_session(config: LinkConfig) -> None:
    notifications: list[str] = []
    conn = FakeConnection()

    session = await _router(config, notifications).on_connection(conn, "/scratch/serialport")

    assert isinstance(session, CountingSession)
    assert CountingSession.created == [session]
    assert session.user_data_path == config.link_data_path
    assert session.tools_path == config.tools_path
    assert notifications == ["new-connection"]
    assert not conn.closed


@pytest.mark.asyncio
async def test_close_then_error_disposes_once(config: LinkConfig) -> None:
    conn = FakeConnection()
    session = await _router(config, []).on_connection(conn, "/scratch/serialport")
    assert isinstance(session, CountingSession)

    conn.fire_close()
    conn.fire_error(RuntimeError("late"))
    conn.fire_close()

    assert session.dispose_calls == 1
    assert session.disposed


@pytest.mark.asyncio
async def test_error_then_close_disposes_once(config: LinkConfig) -> None:
    conn = FakeConnection()
    session = await _router(config, []).on_connection(conn, "/scratch/serialport")
    assert isinstance(session, CountingSession)

    conn.fire_error(ConnectionResetError())
    conn.fire_close()

    assert session.dispose_calls == 1


@pytest.mark.asyncio
async def test_each_connection_gets_its_own_session(config: LinkConfig) -> None:
    router = _router(config, [])
    first, second = FakeConnection(), FakeConnection()

    a = await router.on_connection(first, "/scratch/serialport")
    b = await router.on_connection(second, "/scratch/serialport")
    first.fire_close()

    assert a is not b
    assert isinstance(a, CountingSession) and isinstance(b, CountingSession)
    assert a.disposed
    assert not b.disposed


def test_routing_table_is_fixed(config: LinkConfig) -> None:
    router = SessionRouter(config)

    assert dict(router.routes) == dict(DEFAULT_ROUTES)
    with pytest.raises(TypeError):
        router.routes["/extra"] = SessionKind.STATUS  # type: ignore[index]
    assert router.resolve("/status") is StatusSession
    assert router.resolve("/scratch/ble") is None
