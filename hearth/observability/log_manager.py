from __future__ import annotations

import json
import logging
import re
import traceback
from typing import Any

LOGGER_NAME = "hearth.observability"

# Keys lifted out of "key=value" pairs in the message text.
_BRIDGE_FIELDS = ("sender", "group_id", "entity_id", "method", "status", "error_code")
_KEY_VALUE_PATTERN = re.compile(r"([A-Za-z_][A-Za-z0-9_.-]*)=([^\s]+)")
_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class LogManager:
    """Writes one compact JSON line per bridge event."""

    def __init__(self, logger_name: str = LOGGER_NAME) -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(
        self,
        *,
        level: str,
        event: str,
        component: str,
        message: str,
        fields: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "event": event,
            "component": component,
            "message": message,
        }
        for key, value in (fields or {}).items():
            if value is not None:
                record[key] = value
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str)
        self._logger.log(_LEVELS.get(level, logging.INFO), "event %s", line)


class StructuredLoggerAdapter:
    """Logger-style facade; positional args are %-formatted as usual."""

    def __init__(self, *, manager: LogManager, component: str) -> None:
        self._manager = manager
        self._component = component

    def debug(self, msg: str, *args: Any) -> None:
        self._emit("debug", msg, args)

    def info(self, msg: str, *args: Any) -> None:
        self._emit("info", msg, args)

    def warning(self, msg: str, *args: Any) -> None:
        self._emit("warning", msg, args)

    def error(self, msg: str, *args: Any) -> None:
        self._emit("error", msg, args)

    def exception(self, msg: str, *args: Any) -> None:
        self._emit("error", msg, args, stack_excerpt=traceback.format_exc(limit=10))

    def _emit(self, level: str, msg: str, args: tuple[Any, ...], **extra: Any) -> None:
        text = _format(msg, args)
        pairs = _extract_kv_pairs(text)
        fields: dict[str, Any] = {name: pairs.get(name) for name in _BRIDGE_FIELDS}
        fields["latency_ms"] = _as_int_or_none(pairs.get("latency_ms"))
        fields.update(extra)
        self._manager.emit(
            level=level,
            event=pairs.get("event") or f"{self._component}.log",
            component=self._component,
            message=text,
            fields=fields,
        )


_DEFAULT_MANAGER: LogManager | None = None


def get_log_manager() -> LogManager:
    global _DEFAULT_MANAGER
    if _DEFAULT_MANAGER is None:
        _DEFAULT_MANAGER = LogManager()
    return _DEFAULT_MANAGER


def get_component_logger(component: str) -> StructuredLoggerAdapter:
    return StructuredLoggerAdapter(manager=get_log_manager(), component=component)


def _format(msg: str, args: tuple[Any, ...]) -> str:
    if not args:
        return str(msg)
    try:
        return str(msg) % args
    except (TypeError, ValueError):
        return f"{msg} | args={', '.join(str(v) for v in args)}"


def _extract_kv_pairs(text: str) -> dict[str, str]:
    result: dict[str, str] = {}
    for key, raw_value in _KEY_VALUE_PATTERN.findall(text):
        value = raw_value.strip(",")
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        if value:
            result[key] = value
    return result


def _as_int_or_none(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
