from __future__ import annotations

from typing import Any, Mapping

LOCK_RULE = "lock"
MOTION_RULE = "motion"
ALL_RULES = frozenset({LOCK_RULE, MOTION_RULE})


def render_state_change(data: Mapping[str, Any] | None, *, rules: frozenset[str] = ALL_RULES) -> str | None:
    """One-line broadcast for a `state_changed` event's data, or None.

    Lock rule: `lock.*` going locked -> unlocked. Motion rule: any entity id
    containing "motion" going off -> on.
    """
    if not isinstance(data, Mapping):
        return None
    entity_id = str(data.get("entity_id") or "")
    if not entity_id:
        return None
    old_state = _state_of(data.get("old_state"))
    new_payload = data.get("new_state") if isinstance(data.get("new_state"), Mapping) else {}
    new_state = _state_of(new_payload)
    attrs = new_payload.get("attributes") if isinstance(new_payload.get("attributes"), Mapping) else {}
    name = str(attrs.get("friendly_name") or entity_id)

    if LOCK_RULE in rules and entity_id.startswith("lock.") and old_state == "locked" and new_state == "unlocked":
        return f"🔓 {name} was unlocked"
    if MOTION_RULE in rules and "motion" in entity_id and old_state == "off" and new_state == "on":
        return f"🚶 Motion detected: {name}"
    return None


def _state_of(payload: Any) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    state = payload.get("state")
    return str(state) if state is not None else None
