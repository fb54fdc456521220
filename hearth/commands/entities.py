from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from hearth.observability.log_manager import get_component_logger

logger = get_component_logger("commands.entities")

DEFAULT_CACHE_TTL_SEC = 300.0


@dataclass(frozen=True)
class EntityRecord:
    entity_id: str
    domain: str
    friendly_name: str
    state: str | None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    last_changed: str | None = None

    @classmethod
    def from_state(cls, payload: Mapping[str, Any]) -> "EntityRecord | None":
        entity_id = str(payload.get("entity_id") or "").strip()
        if not entity_id:
            return None
        attrs = payload.get("attributes") if isinstance(payload.get("attributes"), dict) else {}
        state = payload.get("state")
        return cls(
            entity_id=entity_id,
            domain=entity_id.split(".", 1)[0],
            friendly_name=str(attrs.get("friendly_name") or entity_id),
            state=str(state) if state is not None else None,
            attributes=MappingProxyType(dict(attrs)),
            last_changed=str(payload["last_changed"]) if payload.get("last_changed") else None,
        )

    @property
    def object_id(self) -> str:
        return self.entity_id.split(".", 1)[1] if "." in self.entity_id else self.entity_id

    @property
    def normalized_name(self) -> str:
        """Object id with separators as spaces, e.g. `light.living_room` -> `living room`."""
        return self.object_id.replace("_", " ")

    @property
    def aliases(self) -> tuple[str, str, str]:
        return (
            self.entity_id.lower(),
            self.friendly_name.lower(),
            self.normalized_name.lower(),
        )

    def attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)


def records_from_states(states: Iterable[Mapping[str, Any]]) -> list[EntityRecord]:
    records: list[EntityRecord] = []
    for item in states:
        if not isinstance(item, Mapping):
            continue
        record = EntityRecord.from_state(item)
        if record is not None:
            records.append(record)
    return records


class EntityCache:
    """Lowercase alias -> EntityRecord index, replaced wholesale on rebuild.

    The alias map is never mutated after it is published, so readers holding
    a snapshot always see a complete index.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._aliases: Mapping[str, EntityRecord] = MappingProxyType({})
        self._built_at: float | None = None

    def replace(self, records: Iterable[EntityRecord], *, built_at: float) -> int:
        aliases: dict[str, EntityRecord] = {}
        for record in records:
            for alias in record.aliases:
                if alias:
                    aliases[alias] = record
        published = MappingProxyType(aliases)
        with self._lock:
            self._aliases = published
            self._built_at = built_at
        return len(published)

    def snapshot(self) -> Mapping[str, EntityRecord]:
        with self._lock:
            return self._aliases

    def built_at(self) -> float | None:
        with self._lock:
            return self._built_at

    def __len__(self) -> int:
        return len(self.snapshot())


class EntityResolver:
    def __init__(
        self,
        fetch_states: Callable[[], list[dict[str, Any]]],
        *,
        cache: EntityCache | None = None,
        ttl_sec: float = DEFAULT_CACHE_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_states = fetch_states
        self._cache = cache or EntityCache()
        self._ttl_sec = ttl_sec
        self._clock = clock

    @property
    def cache(self) -> EntityCache:
        return self._cache

    def refresh(self) -> int:
        records = records_from_states(self._fetch_states())
        size = self._cache.replace(records, built_at=self._clock())
        logger.debug("Entity cache refreshed entities=%s aliases=%s", len(records), size)
        return size

    def is_stale(self) -> bool:
        built_at = self._cache.built_at()
        if built_at is None:
            return True
        return (self._clock() - built_at) >= self._ttl_sec

    def ensure_fresh(self) -> None:
        if not self.is_stale():
            return
        try:
            self.refresh()
        except Exception as exc:
            # Keep serving the previous index; an empty one just resolves nothing.
            logger.error("Failed to refresh entity cache error=%s", exc)

    def resolve(self, text: str) -> EntityRecord | None:
        needle = str(text or "").strip().lower()
        if not needle:
            return None
        aliases = self._cache.snapshot()
        exact = aliases.get(needle)
        if exact is not None:
            return exact
        for alias, record in aliases.items():
            if alias in needle or needle in alias:
                return record
        return None
