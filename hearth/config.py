from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

from hearth.integrations.homeassistant.config import (
    HomeAssistantConfig,
    RetryConfig,
    WsReconnectConfig,
)
from hearth.integrations.signal.config import MODE_JSON_RPC, MODE_POLLING, SignalConfig
from hearth.notifications import ALL_RULES

REQUIRED_KEYS = (
    "HA_URL",
    "HA_TOKEN",
    "SIGNAL_API_URL",
    "SIGNAL_NUMBER",
    "ALLOWED_NUMBERS",
)
DEFAULT_GROUP_NAME = "Home Assistant Bot"


@dataclass(frozen=True)
class BridgeConfig:
    homeassistant: HomeAssistantConfig
    signal: SignalConfig
    allowed_numbers: tuple[str, ...]
    update_interval_sec: float = 60.0
    group_mode: bool = False
    group_name: str = DEFAULT_GROUP_NAME
    broadcast_group_id: str | None = None
    entity_cache_ttl_sec: float = 300.0
    dedup_capacity: int = 1000
    debug_mode: bool = False
    log_level: str = "INFO"
    notify_rules: frozenset[str] = ALL_RULES


class BridgeConfigError(ValueError):
    pass


def load_bridge_config(environ: Mapping[str, str] | None = None) -> BridgeConfig:
    values: Mapping[str, Any] = os.environ if environ is None else environ

    missing = [key for key in REQUIRED_KEYS if not str(values.get(key) or "").strip()]
    if missing:
        raise BridgeConfigError(f"Missing required environment variables: {', '.join(missing)}")

    ha_url = _as_url(values.get("HA_URL"), "HA_URL")
    signal_url = _as_url(values.get("SIGNAL_API_URL"), "SIGNAL_API_URL")
    allowed = tuple(_as_csv_list(values.get("ALLOWED_NUMBERS")))
    if not allowed:
        raise BridgeConfigError("ALLOWED_NUMBERS must list at least one number")

    mode = str(values.get("SIGNAL_MODE") or MODE_POLLING).strip().lower()
    if mode not in {MODE_POLLING, MODE_JSON_RPC}:
        raise BridgeConfigError(f"SIGNAL_MODE must be '{MODE_POLLING}' or '{MODE_JSON_RPC}', got {mode!r}")

    debug_mode = _as_bool(values.get("DEBUG_MODE"), False)
    log_level = str(values.get("HEARTH_LOG_LEVEL") or ("DEBUG" if debug_mode else "INFO")).strip().upper()

    return BridgeConfig(
        homeassistant=HomeAssistantConfig(
            base_url=ha_url,
            token=str(values.get("HA_TOKEN")).strip(),
            request_timeout_sec=_as_float(values.get("HA_REQUEST_TIMEOUT_SEC"), 10.0, minimum=1.0),
            retry=RetryConfig(
                max_attempts=_as_int(values.get("HA_RETRY_MAX_ATTEMPTS"), 3, minimum=1),
                base_delay_sec=_as_float(values.get("HA_RETRY_BASE_DELAY_SEC"), 0.4, minimum=0.05),
                max_delay_sec=_as_float(values.get("HA_RETRY_MAX_DELAY_SEC"), 3.0, minimum=0.1),
            ),
            ws=WsReconnectConfig(
                open_timeout_sec=_as_float(values.get("HA_WS_OPEN_TIMEOUT_SEC"), 10.0, minimum=1.0),
                request_timeout_sec=_as_float(values.get("HA_WS_REQUEST_TIMEOUT_SEC"), 30.0, minimum=1.0),
                min_backoff_sec=_as_float(values.get("HA_WS_RECONNECT_MIN_SEC"), 1.0, minimum=0.1),
                max_backoff_sec=_as_float(values.get("HA_WS_RECONNECT_MAX_SEC"), 30.0, minimum=0.2),
                jitter_ratio=_as_float(values.get("HA_WS_BACKOFF_JITTER_RATIO"), 0.2, minimum=0.0),
            ),
        ),
        signal=SignalConfig(
            api_url=signal_url,
            number=str(values.get("SIGNAL_NUMBER")).strip(),
            mode=mode,
            send_timeout_sec=_as_float(values.get("SIGNAL_SEND_TIMEOUT_SEC"), 30.0, minimum=1.0),
            receive_timeout_sec=_as_float(values.get("SIGNAL_RECEIVE_TIMEOUT_SEC"), 60.0, minimum=1.0),
            rpc_timeout_sec=_as_float(values.get("SIGNAL_RPC_TIMEOUT_SEC"), 30.0, minimum=0.1),
            open_timeout_sec=_as_float(values.get("SIGNAL_OPEN_TIMEOUT_SEC"), 10.0, minimum=1.0),
            reconnect_delay_sec=_as_float(values.get("SIGNAL_RECONNECT_DELAY_SEC"), 5.0, minimum=0.1),
        ),
        allowed_numbers=allowed,
        update_interval_sec=_poll_interval_sec(values),
        group_mode=_as_bool(values.get("GROUP_MODE"), False),
        group_name=str(values.get("GROUP_NAME") or DEFAULT_GROUP_NAME).strip() or DEFAULT_GROUP_NAME,
        broadcast_group_id=str(values.get("BROADCAST_GROUP_ID") or "").strip() or None,
        entity_cache_ttl_sec=_as_float(values.get("ENTITY_CACHE_TTL_SEC"), 300.0, minimum=0.0),
        dedup_capacity=_as_int(values.get("DEDUP_CAPACITY"), 1000, minimum=1),
        debug_mode=debug_mode,
        log_level=log_level,
        notify_rules=_as_rules(values.get("NOTIFY_ON")),
    )


def _poll_interval_sec(values: Mapping[str, Any]) -> float:
    if values.get("UPDATE_INTERVAL_SEC") is None and values.get("UPDATE_INTERVAL") is not None:
        # Older deployments set the period in milliseconds.
        legacy_ms = _as_float(values.get("UPDATE_INTERVAL"), 60000.0)
        return max(0.5, legacy_ms / 1000.0)
    return _as_float(values.get("UPDATE_INTERVAL_SEC"), 60.0, minimum=0.5)


def _as_url(raw: Any, key: str) -> str:
    value = str(raw or "").strip().rstrip("/")
    if not value.startswith(("http://", "https://")):
        raise BridgeConfigError(f"{key} must start with http:// or https://")
    return value


def _as_rules(raw: Any) -> frozenset[str]:
    if raw is None:
        return ALL_RULES
    return frozenset(item.lower() for item in _as_csv_list(raw)) & ALL_RULES


def _as_bool(raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(raw: Any, default: int, *, minimum: int | None = None) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = default
    if minimum is not None:
        return max(minimum, value)
    return value


def _as_float(raw: Any, default: float, *, minimum: float | None = None) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = default
    if minimum is not None:
        return max(minimum, value)
    return value


def _as_csv_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set, frozenset)):
        items = raw
    else:
        items = str(raw).split(",")
    result: list[str] = []
    for item in items:
        token = str(item).strip()
        if token and token not in result:
            result.append(token)
    return result
