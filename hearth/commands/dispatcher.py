"""Free-text command grammar -> Home Assistant calls -> chat reply."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable

from hearth.commands.entities import EntityRecord, EntityResolver, records_from_states
from hearth.commands.selectors import in_area, in_domain, is_temperature, summarize_area
from hearth.errors import EntityNotFound
from hearth.integrations.homeassistant.rest_client import HomeAssistantRestClient
from hearth.observability.log_manager import get_component_logger

logger = get_component_logger("commands.dispatcher")

LIST_LIMIT = 10
AREA_SENSOR_LIMIT = 5

_DIM_PATTERN = re.compile(r"dim (.+?) to (\d+)%?")
_QUERY_PATTERN = re.compile(r"is (.+?) (on|locked)\??")
_LIST_DOMAINS = {
    "list lights": "light",
    "lights": "light",
    "list switches": "switch",
    "switches": "switch",
    "list sensors": "sensor",
}

HELP_TEXT = """🏠 *Home Assistant Bot Commands*

*Device Control:*
• turn on [name] - Turn on lights, switches
• turn off [name] - Turn off devices
• toggle [name] - Toggle a switch
• dim [name] to [%]% - Set brightness

*Status:*
• status - Full home summary
• status [room] - Room-specific status
• temperature - All temperature readings
• locks - Lock status

*Discovery:*
• list lights - All lights
• list switches - All switches
• list [room] - Entities in room

*Queries:*
• is [name] on? - Check entity state
• is [name] locked? - Check lock status"""


class CommandDispatcher:
    """Matches lowercased input against a fixed grammar, first match wins.

    `dispatch()` never raises: backend and resolution failures become
    `❌`/`❓` replies. Only the resolver is shared between calls.
    """

    def __init__(self, resolver: EntityResolver, homeassistant: HomeAssistantRestClient) -> None:
        self._resolver = resolver
        self._ha = homeassistant

    def dispatch(self, text: str | None) -> str | None:
        if text is None or not text.strip():
            return None
        try:
            return self._dispatch(text)
        except Exception as exc:
            logger.error("Command failed error=%s", exc)
            return f"❌ Error: {exc}"

    def _dispatch(self, text: str) -> str:
        cmd = text.strip().lower()
        self._resolver.ensure_fresh()

        if cmd in {"help", "?"}:
            return HELP_TEXT
        if cmd == "status":
            return self._guarded("getting status", self._full_status)
        if cmd.startswith("status "):
            area = cmd[len("status ") :].strip()
            return self._guarded("getting area status", lambda: self._area_status(area))
        if cmd in {"temperature", "temp"}:
            return self._guarded("getting temperatures", self._temperature_summary)
        if cmd == "locks":
            return self._guarded("getting lock status", self._lock_status)
        if cmd in _LIST_DOMAINS:
            domain = _LIST_DOMAINS[cmd]
            return self._guarded("listing entities", lambda: self._list_domain(domain))
        if cmd.startswith("list "):
            area = cmd[len("list ") :].strip()
            return self._guarded("listing area entities", lambda: self._list_area(area))
        if cmd.startswith("turn on "):
            return self._turn_on(cmd[len("turn on ") :].strip())
        if cmd.startswith("turn off "):
            return self._turn_off(cmd[len("turn off ") :].strip())
        if cmd.startswith("toggle "):
            return self._toggle(cmd[len("toggle ") :].strip())
        dim = _DIM_PATTERN.fullmatch(cmd)
        if dim:
            return self._set_brightness(dim.group(1).strip(), int(dim.group(2)))
        query = _QUERY_PATTERN.fullmatch(cmd)
        if query:
            return self._entity_status(query.group(1).strip())

        return f'❓ I don\'t understand: "{text.strip()}"\n\nType "help" for available commands.'

    @staticmethod
    def _guarded(action: str, render: Callable[[], str]) -> str:
        try:
            return render()
        except Exception as exc:
            logger.error("Command failed action=%s error=%s", action.replace(" ", "_"), exc)
            return f"❌ Error {action}: {exc}"

    def _records(self) -> list[EntityRecord]:
        return records_from_states(self._ha.get_states())

    def _require(self, name: str) -> EntityRecord:
        record = self._resolver.resolve(name)
        if record is None:
            raise EntityNotFound(name)
        return record

    def _full_status(self) -> str:
        records = self._records()
        lights = in_domain(records, "light")
        switches = in_domain(records, "switch")
        locks = in_domain(records, "lock")
        climate = in_domain(records, "climate")

        lights_on = sum(1 for record in lights if record.state == "on")
        switches_on = sum(1 for record in switches if record.state == "on")
        locked = sum(1 for record in locks if record.state == "locked")

        climate_info = ""
        if climate:
            first = climate[0]
            unit = first.attribute("temperature_unit") or "°F"
            climate_info = (
                f", Climate: {first.attribute('current_temperature')}{unit}"
                f" (target: {first.attribute('temperature')}{unit})"
            )

        return (
            "🏠 *Home Status*\n\n"
            f"• Lights: {lights_on}/{len(lights)} on\n"
            f"• Switches: {switches_on}/{len(switches)} on\n"
            f"• Locks: {locked}/{len(locks)} locked{climate_info}\n\n"
            'Type "list lights" or "status [room]" for details.'
        )

    def _area_status(self, area: str) -> str:
        entities = in_area(self._records(), area)
        if not entities:
            return f"❓ No entities found in area: {area}"

        summary = summarize_area(entities)
        lines = [f"🏠 *{area} Status*", ""]
        if summary.lights:
            lines.append("*Lights:*")
            for light in summary.lights:
                icon = "💡" if light.state == "on" else "⚪"
                lines.append(f"{icon} {light.object_id}")
            lines.append("")
        if summary.climate:
            lines.append("*Climate:*")
            for climate in summary.climate:
                lines.append(f"🌡️ {climate.state} ({climate.attribute('temperature') or 'no target'})")
            lines.append("")
        readings = [
            sensor
            for sensor in summary.sensors
            if "temp" in sensor.entity_id or "humidity" in sensor.entity_id
        ]
        if readings:
            lines.append("*Sensors:*")
            for sensor in readings[:AREA_SENSOR_LIMIT]:
                unit = sensor.attribute("unit_of_measurement") or ""
                lines.append(f"📊 {sensor.object_id}: {sensor.state}{unit}")
        return "\n".join(lines).rstrip() + "\n"

    def _temperature_summary(self) -> str:
        readings = [
            record
            for record in self._records()
            if record.domain in {"sensor", "climate"} and is_temperature(record)
        ]
        if not readings:
            return "❓ No temperature sensors found"
        lines = ["🌡️ *Temperature Readings*", ""]
        for record in readings:
            unit = record.attribute("unit_of_measurement") or ""
            lines.append(f"• {record.friendly_name}: {record.state}{unit}")
        return "\n".join(lines) + "\n"

    def _lock_status(self) -> str:
        locks = in_domain(self._records(), "lock")
        if not locks:
            return "🏠 No locks configured"
        lines = ["🔐 *Lock Status*", ""]
        for lock in locks:
            icon = "🔒" if lock.state == "locked" else "🔓"
            lines.append(f"{icon} {lock.friendly_name}")
        return "\n".join(lines) + "\n"

    def _list_domain(self, domain: str) -> str:
        entities = in_domain(self._records(), domain)
        if not entities:
            return f"❓ No {domain}s found"
        on = [record.friendly_name for record in entities if record.state == "on"]
        off = [record.friendly_name for record in entities if record.state != "on"]

        response = f"*{domain.capitalize()}s* ({len(entities)} total)\n\n"
        if on:
            response += _roster("💡 On", on) + "\n"
        if off:
            response += _roster("⚪ Off", off)
        return response

    def _list_area(self, area: str) -> str:
        entities = in_area(self._records(), area)
        if not entities:
            return f"❓ No entities found in: {area}"
        by_domain: dict[str, list[str]] = {}
        for record in entities:
            by_domain.setdefault(record.domain, []).append(record.friendly_name)
        response = f"*Entities in {area}* ({len(entities)}):\n\n"
        for domain in sorted(by_domain):
            response += f"*{domain}:*\n{', '.join(by_domain[domain])}\n\n"
        return response

    def _turn_on(self, name: str) -> str:
        try:
            entity = self._require(name)
        except EntityNotFound:
            return (
                f'❓ Entity not found: "{name}"\n\n'
                'Try "list lights" or "list switches" to see available entities.'
            )
        try:
            self._ha.turn_on(entity.entity_id)
        except Exception as exc:
            return f"❌ Failed to turn on {entity.friendly_name}: {exc}"
        logger.info("Turned on entity_id=%s", entity.entity_id)
        return f"✅ Turned on: {entity.friendly_name}"

    def _turn_off(self, name: str) -> str:
        try:
            entity = self._require(name)
        except EntityNotFound:
            return f'❓ Entity not found: "{name}"'
        try:
            self._ha.turn_off(entity.entity_id)
        except Exception as exc:
            return f"❌ Failed to turn off: {exc}"
        logger.info("Turned off entity_id=%s", entity.entity_id)
        return f"✅ Turned off: {entity.friendly_name}"

    def _toggle(self, name: str) -> str:
        try:
            entity = self._require(name)
        except EntityNotFound:
            return f'❓ Entity not found: "{name}"'
        try:
            self._ha.toggle(entity.entity_id)
        except Exception as exc:
            return f"❌ Failed to toggle: {exc}"
        new_state = "off" if entity.state == "on" else "on"
        return f"🔄 Toggled {entity.friendly_name} to {new_state}"

    def _set_brightness(self, name: str, level: int) -> str:
        try:
            entity = self._require(name)
        except EntityNotFound:
            return f'❓ Light not found: "{name}"'
        if entity.domain != "light":
            return f'❌ "{name}" is not a dimmable light'
        try:
            # Out-of-range levels go through untouched; HA validates brightness_pct.
            self._ha.set_brightness(entity.entity_id, level)
        except Exception as exc:
            return f"❌ Failed to set brightness: {exc}"
        return f"💡 Set {entity.friendly_name} to {level}% brightness"

    def _entity_status(self, name: str) -> str:
        try:
            entity = self._require(name)
        except EntityNotFound:
            return f'❓ Entity not found: "{name}"'
        try:
            live = self._ha.get_state(entity.entity_id)
        except Exception as exc:
            logger.warning("Live state read failed entity_id=%s error=%s", entity.entity_id, exc)
            live = None
        if live:
            entity = EntityRecord.from_state(live) or entity
        status = entity.state or "unknown"
        return (
            f"{_state_icon(status)} *{entity.friendly_name}*\n"
            f"Status: {status}\n"
            f"Last changed: {_format_timestamp(entity.last_changed)}"
        )


def _roster(label: str, names: list[str]) -> str:
    text = f"{label} ({len(names)}):\n{', '.join(names[:LIST_LIMIT])}\n"
    if len(names) > LIST_LIMIT:
        text += f"...and {len(names) - LIST_LIMIT} more\n"
    return text


def _state_icon(state: str) -> str:
    if state in {"on", "home"}:
        return "🔵"
    if state == "locked":
        return "🔒"
    if state == "unlocked":
        return "🔓"
    return "⚪"


def _format_timestamp(raw: str | None) -> str:
    if not raw:
        return "unknown"
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return raw
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S")
