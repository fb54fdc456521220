from __future__ import annotations

from typing import Any

import pytest


class FakeHomeAssistant:
    """In-memory stand-in for HomeAssistantRestClient."""

    def __init__(self, states: list[dict[str, Any]]) -> None:
        self.states = states
        self.calls: list[tuple[str, str, Any]] = []
        self.fail_with: Exception | None = None
        self.get_states_calls = 0

    def get_states(self) -> list[dict[str, Any]]:
        self.get_states_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return [dict(item) for item in self.states]

    def get_state(self, entity_id: str) -> dict[str, Any] | None:
        for item in self.states:
            if item["entity_id"] == entity_id:
                return dict(item)
        return None

    def turn_on(self, entity_id: str) -> list:
        return self._call("turn_on", entity_id)

    def turn_off(self, entity_id: str) -> list:
        return self._call("turn_off", entity_id)

    def toggle(self, entity_id: str) -> list:
        return self._call("toggle", entity_id)

    def set_brightness(self, entity_id: str, brightness_pct: int) -> list:
        return self._call("set_brightness", entity_id, brightness_pct)

    def _call(self, action: str, entity_id: str, value: Any = None) -> list:
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append((action, entity_id, value))
        return []


def state(entity_id: str, value: str, **attributes: Any) -> dict[str, Any]:
    return {
        "entity_id": entity_id,
        "state": value,
        "attributes": attributes,
        "last_changed": "2024-05-01T12:00:00+00:00",
    }


@pytest.fixture()
def home_states() -> list[dict[str, Any]]:
    return [
        state("light.kitchen", "off", friendly_name="Kitchen Light"),
        state("light.living_room", "on", friendly_name="Living Room Light"),
        state("light.bedroom_lamp", "off", friendly_name="Bedroom Lamp"),
        state("switch.coffee_maker", "off", friendly_name="Coffee Maker"),
        state("lock.front_door", "locked", friendly_name="Front Door"),
        state("sensor.kitchen_temperature", "21.5", friendly_name="Kitchen Temperature", unit_of_measurement="°C"),
        state("binary_sensor.hall_motion", "off", friendly_name="Hall Motion"),
    ]


@pytest.fixture()
def fake_ha(home_states: list[dict[str, Any]]) -> FakeHomeAssistant:
    return FakeHomeAssistant(home_states)


@pytest.fixture()
def make_state():
    return state
