from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from hearth.commands.entities import EntityRecord

TEMPERATURE_UNITS = frozenset({"°C", "°F", "°"})


def in_domain(records: Iterable[EntityRecord], domain: str) -> list[EntityRecord]:
    return [record for record in records if record.domain == domain]


def in_area(records: Iterable[EntityRecord], area: str) -> list[EntityRecord]:
    """Heuristic area match: friendly name contains the area, or the id does."""
    needle = area.strip().lower()
    id_needle = "_".join(needle.split())
    matched: list[EntityRecord] = []
    for record in records:
        if record.attribute("friendly_name"):
            if needle in record.friendly_name.lower():
                matched.append(record)
        elif id_needle in record.entity_id.lower():
            matched.append(record)
    return matched


def is_temperature(record: EntityRecord) -> bool:
    return record.attribute("unit_of_measurement") in TEMPERATURE_UNITS


@dataclass
class AreaSummary:
    lights: list[EntityRecord] = field(default_factory=list)
    climate: list[EntityRecord] = field(default_factory=list)
    sensors: list[EntityRecord] = field(default_factory=list)


def summarize_area(records: Iterable[EntityRecord]) -> AreaSummary:
    summary = AreaSummary()
    for record in records:
        if record.domain == "light":
            summary.lights.append(record)
        elif record.domain == "climate":
            summary.climate.append(record)
        elif record.domain in {"sensor", "binary_sensor"}:
            summary.sensors.append(record)
    return summary
