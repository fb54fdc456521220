from __future__ import annotations

from hearth.commands.dispatcher import HELP_TEXT, CommandDispatcher
from hearth.commands.entities import EntityRecord, EntityResolver
from hearth.commands.selectors import summarize_area


def _dispatcher(fake_ha) -> CommandDispatcher:
    return CommandDispatcher(EntityResolver(fake_ha.get_states), fake_ha)


def test_help_and_question_mark_return_help(fake_ha) -> None:
    dispatcher = _dispatcher(fake_ha)

    assert dispatcher.dispatch("HELP") == HELP_TEXT
    assert dispatcher.dispatch(" ? ") == HELP_TEXT
    assert dispatcher.dispatch("   ") is None
    assert dispatcher.dispatch(None) is None


def test_exact_status_wins_over_area_status(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("status")

    assert reply.startswith("🏠 *Home Status*")
    assert "• Lights: 1/3 on" in reply
    assert "• Switches: 0/1 on" in reply
    assert "• Locks: 1/1 locked" in reply


def test_area_status_filters_by_name(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("status kitchen")

    assert reply.startswith("🏠 *kitchen Status*")
    assert "⚪ kitchen" in reply
    assert "📊 kitchen_temperature: 21.5°C" in reply
    assert "living_room" not in reply


def test_area_summary_keeps_only_rendered_domains(home_states) -> None:
    records = [EntityRecord.from_state(item) for item in home_states]

    summary = summarize_area(records)

    assert [record.entity_id for record in summary.lights] == ["light.kitchen", "light.living_room", "light.bedroom_lamp"]
    assert summary.climate == []
    assert [record.entity_id for record in summary.sensors] == ["sensor.kitchen_temperature", "binary_sensor.hall_motion"]
    assert set(vars(summary)) == {"lights", "climate", "sensors"}


def test_unknown_area_reports_nothing_found(fake_ha) -> None:
    assert _dispatcher(fake_ha).dispatch("status attic") == "❓ No entities found in area: attic"


def test_temperature_and_locks(fake_ha) -> None:
    dispatcher = _dispatcher(fake_ha)

    assert dispatcher.dispatch("temp") == "🌡️ *Temperature Readings*\n\n• Kitchen Temperature: 21.5°C\n"
    assert dispatcher.dispatch("locks") == "🔐 *Lock Status*\n\n🔒 Front Door\n"


def test_list_lights_splits_on_and_off(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("list lights")

    assert reply == (
        "*Lights* (3 total)\n\n"
        "💡 On (1):\nLiving Room Light\n\n"
        "⚪ Off (2):\nKitchen Light, Bedroom Lamp\n"
    )


def test_list_truncates_long_rosters(fake_ha, make_state) -> None:
    fake_ha.states = [make_state(f"switch.plug_{i}", "off", friendly_name=f"Plug {i}") for i in range(12)]

    reply = _dispatcher(fake_ha).dispatch("switches")

    assert "⚪ Off (12):" in reply
    assert "Plug 9" in reply
    assert "Plug 10" not in reply
    assert "...and 2 more" in reply


def test_list_area_groups_by_sorted_domain(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("list kitchen")

    assert reply.startswith("*Entities in kitchen* (2):")
    assert reply.index("*light:*") < reply.index("*sensor:*")


def test_turn_on_resolves_and_calls_backend(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("turn on kitchen light")

    assert reply == "✅ Turned on: Kitchen Light"
    assert fake_ha.calls == [("turn_on", "light.kitchen", None)]


def test_turn_off_and_toggle(fake_ha) -> None:
    dispatcher = _dispatcher(fake_ha)

    assert dispatcher.dispatch("turn off living room") == "✅ Turned off: Living Room Light"
    assert dispatcher.dispatch("toggle coffee maker") == "🔄 Toggled Coffee Maker to on"
    assert fake_ha.calls == [
        ("turn_off", "light.living_room", None),
        ("toggle", "switch.coffee_maker", None),
    ]


def test_turn_on_unknown_entity_is_not_found(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("turn on garage door")

    assert reply.startswith('❓ Entity not found: "garage door"')
    assert fake_ha.calls == []


def test_dim_passes_level_through_unclamped(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("dim bedroom lamp to 150%")

    assert reply == "💡 Set Bedroom Lamp to 150% brightness"
    assert fake_ha.calls == [("set_brightness", "light.bedroom_lamp", 150)]


def test_dim_rejects_non_lights(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("dim coffee maker to 40")

    assert reply == '❌ "coffee maker" is not a dimmable light'
    assert fake_ha.calls == []


def test_query_reports_live_state_with_icon(fake_ha) -> None:
    dispatcher = _dispatcher(fake_ha)
    dispatcher.dispatch("help")
    fake_ha.states[4] = {**fake_ha.states[4], "state": "unlocked"}

    reply = dispatcher.dispatch("is front door locked?")

    assert reply.startswith("🔓 *Front Door*\nStatus: unlocked\nLast changed: ")


def test_query_on_state(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("is living room light on?")

    assert reply.startswith("🔵 *Living Room Light*\nStatus: on")


def test_unrecognized_command_names_input(fake_ha) -> None:
    reply = _dispatcher(fake_ha).dispatch("Make Coffee")

    assert reply == '❓ I don\'t understand: "Make Coffee"\n\nType "help" for available commands.'


def test_backend_failures_become_error_replies(fake_ha) -> None:
    dispatcher = _dispatcher(fake_ha)
    dispatcher.dispatch("help")
    fake_ha.fail_with = RuntimeError("backend down")

    assert dispatcher.dispatch("status") == "❌ Error getting status: backend down"
    assert dispatcher.dispatch("turn on kitchen light") == "❌ Failed to turn on Kitchen Light: backend down"
    assert dispatcher.dispatch("dim kitchen to 20%") == "❌ Failed to set brightness: backend down"
