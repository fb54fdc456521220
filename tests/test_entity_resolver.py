from __future__ import annotations

import threading

from hearth.commands.entities import EntityCache, EntityRecord, EntityResolver


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_resolve_is_case_insensitive_across_aliases(fake_ha, make_state) -> None:
    fake_ha.states = [make_state("light.living_room_light", "on", friendly_name="Living Room Light")]
    resolver = EntityResolver(fake_ha.get_states)
    resolver.refresh()

    by_friendly = resolver.resolve("Living Room Light")
    by_lower = resolver.resolve("living room light")
    by_id = resolver.resolve("LIGHT.LIVING_ROOM_LIGHT")

    assert by_friendly is not None
    assert by_friendly is by_lower is by_id
    assert by_friendly.domain == "light"
    assert by_friendly.normalized_name == "living room light"


def test_substring_match_either_direction(fake_ha) -> None:
    resolver = EntityResolver(fake_ha.get_states)
    resolver.refresh()

    assert resolver.resolve("the coffee maker please").entity_id == "switch.coffee_maker"
    assert resolver.resolve("coffee").entity_id == "switch.coffee_maker"


def test_substring_ties_go_to_first_registered_entity(fake_ha) -> None:
    resolver = EntityResolver(fake_ha.get_states)
    resolver.refresh()

    # "kitchen" (light.kitchen) is registered before the temperature sensor.
    assert resolver.resolve("kitchen temp").entity_id == "light.kitchen"
    assert resolver.resolve("kitchen temperature").entity_id == "sensor.kitchen_temperature"


def test_resolve_misses_return_none(fake_ha) -> None:
    resolver = EntityResolver(fake_ha.get_states)
    resolver.refresh()

    assert resolver.resolve("garage door") is None
    assert resolver.resolve("   ") is None


def test_refresh_replaces_stale_aliases(fake_ha, make_state) -> None:
    fake_ha.states = [make_state("light.porch", "off", friendly_name="Porch")]
    resolver = EntityResolver(fake_ha.get_states)
    resolver.refresh()
    assert resolver.resolve("porch") is not None

    fake_ha.states = [make_state("light.front_steps", "off", friendly_name="Front Steps")]
    resolver.refresh()

    assert resolver.resolve("front steps").entity_id == "light.front_steps"
    assert resolver.resolve("porch") is None
    assert "light.porch" not in resolver.cache.snapshot()


def test_cache_is_built_lazily_and_honours_ttl(fake_ha) -> None:
    clock = FakeClock()
    resolver = EntityResolver(fake_ha.get_states, ttl_sec=300, clock=clock)
    assert resolver.is_stale()
    assert fake_ha.get_states_calls == 0

    resolver.ensure_fresh()
    resolver.ensure_fresh()
    assert fake_ha.get_states_calls == 1

    clock.now += 301
    resolver.ensure_fresh()
    assert fake_ha.get_states_calls == 2


def test_failed_refresh_keeps_previous_index(fake_ha) -> None:
    clock = FakeClock()
    resolver = EntityResolver(fake_ha.get_states, ttl_sec=10, clock=clock)
    resolver.ensure_fresh()
    clock.now += 11
    fake_ha.fail_with = RuntimeError("backend down")

    resolver.ensure_fresh()

    assert resolver.resolve("front door").entity_id == "lock.front_door"


def test_snapshots_are_never_partial(fake_ha, make_state) -> None:
    cache = EntityCache()
    small = [EntityRecord.from_state(make_state("light.a", "on"))]
    large = [EntityRecord.from_state(make_state(f"light.n{i}", "on")) for i in range(200)]
    stop = threading.Event()
    sizes: set[int] = set()

    def _reader() -> None:
        while not stop.is_set():
            sizes.add(len(cache.snapshot()))

    reader = threading.Thread(target=_reader)
    reader.start()
    for index in range(50):
        cache.replace(large if index % 2 else small, built_at=float(index))
    stop.set()
    reader.join(timeout=2.0)

    # light.a and light.nX each register two distinct aliases.
    assert sizes <= {0, 2, 400}
