from __future__ import annotations

from typing import Any

from scratchlink.events import BrokerEvent, EventHub


def test_listeners_called_in_order() -> None:
    hub = EventHub()
    seen: list[tuple[str, BrokerEvent, Any]] = []
    hub.subscribe(lambda event, payload: seen.append(("a", event, payload)))
    hub.subscribe(lambda event, payload: seen.append(("b", event, payload)))

    hub.emit(BrokerEvent.READY)
    hub.emit(BrokerEvent.ERROR, "boom")

    assert seen == [
        ("a", BrokerEvent.READY, None),
        ("b", BrokerEvent.READY, None),
        ("a", BrokerEvent.ERROR, "boom"),
        ("b", BrokerEvent.ERROR, "boom"),
    ]


def test_unsubscribe() -> None:
    hub = EventHub()
    seen: list[BrokerEvent] = []
    unsubscribe = hub.subscribe(lambda event, _payload: seen.append(event))

    unsubscribe()
    unsubscribe()
    hub.emit(BrokerEvent.NEW_CONNECTION)

    assert seen == []


def test_failing_listener_does_not_block_others() -> None:
    hub = EventHub()
    seen: list[BrokerEvent] = []

    def broken(_event: BrokerEvent, _payload: Any) -> None:
        raise RuntimeError("listener bug")

    hub.subscribe(broken)
    hub.subscribe(lambda event, _payload: seen.append(event))

    hub.emit(BrokerEvent.PORT_IN_USE)

    assert seen == [BrokerEvent.PORT_IN_USE]


def test_event_names() -> None:
    assert [str(e) for e in BrokerEvent] == ["ready", "new-connection", "port-in-use", "error", "update-error"]
