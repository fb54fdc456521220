from __future__ import annotations

import signal

import pytest

from hearth import main as entrypoint
from hearth.config import load_bridge_config
from hearth.integrations.homeassistant import HomeAssistantTransportError

ENV = {
    "HA_URL": "http://homeassistant.local:8123",
    "HA_TOKEN": "secret",
    "SIGNAL_API_URL": "http://signal:8080",
    "SIGNAL_NUMBER": "+15550000000",
    "ALLOWED_NUMBERS": "+15551111111",
}


class _StartupHomeAssistant:
    def __init__(self, inner, *, unreachable: bool = False) -> None:
        self._inner = inner
        self.unreachable = unreachable
        self.closed = False

    def check_api(self) -> dict:
        if self.unreachable:
            raise HomeAssistantTransportError("connection refused")
        return {"message": "API running."}

    def get_config(self) -> dict:
        return {"location_name": "Home", "version": "2024.5.0"}

    def close(self) -> None:
        self.closed = True

    def __getattr__(self, name: str):
        return getattr(self._inner, name)


class _SignalledTransport:
    """Delivers SIGTERM to the installed handler on the first poll."""

    name = "fake"
    connected = True

    def __init__(self, handlers: dict) -> None:
        self._handlers = handlers
        self.started = False
        self.stopped = False
        self.polls = 0

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def receive_messages(self) -> list:
        self.polls += 1
        self._handlers[signal.SIGTERM](signal.SIGTERM, None)
        return []

    def send_message(self, target, text: str) -> None:
        return None


@pytest.fixture()
def handlers(monkeypatch) -> dict:
    installed: dict = {}
    monkeypatch.setattr(entrypoint, "load_env", lambda: None)
    monkeypatch.setattr("hearth.main.signal.signal", lambda signum, handler: installed.__setitem__(signum, handler))
    return installed


def test_missing_configuration_exits_with_1(monkeypatch, handlers) -> None:
    env = {key: value for key, value in ENV.items() if key != "HA_TOKEN"}
    monkeypatch.setattr(entrypoint, "load_bridge_config", lambda: load_bridge_config(env))
    monkeypatch.setattr(entrypoint, "HomeAssistantRestClient", lambda _config: pytest.fail("client built"))

    assert entrypoint.main() == 1
    assert handlers == {}


def test_unreachable_home_assistant_exits_with_1(monkeypatch, handlers, fake_ha) -> None:
    ha = _StartupHomeAssistant(fake_ha, unreachable=True)
    monkeypatch.setattr(entrypoint, "load_bridge_config", lambda: load_bridge_config(ENV))
    monkeypatch.setattr(entrypoint, "HomeAssistantRestClient", lambda _config: ha)
    monkeypatch.setattr(entrypoint, "build_chat_transport", lambda _config: pytest.fail("transport built"))

    assert entrypoint.main() == 1
    assert ha.closed is True


def test_graceful_shutdown_exits_with_0(monkeypatch, handlers, fake_ha) -> None:
    ha = _StartupHomeAssistant(fake_ha)
    transport = _SignalledTransport(handlers)
    monkeypatch.setattr(entrypoint, "load_bridge_config", lambda: load_bridge_config(ENV))
    monkeypatch.setattr(entrypoint, "HomeAssistantRestClient", lambda _config: ha)
    monkeypatch.setattr(entrypoint, "build_chat_transport", lambda _config: transport)

    assert entrypoint.main() == 0
    assert set(handlers) == {signal.SIGTERM, signal.SIGINT}
    assert transport.started and transport.stopped
    assert transport.polls == 1
    assert ha.closed is True
