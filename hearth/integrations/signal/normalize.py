from __future__ import annotations

from typing import Any

from hearth.integrations.signal.contracts import InboundMessage, OriginKind

UNKNOWN_GROUP_NAME = "Unknown Group"


def normalize_envelope(raw: Any, *, own_number: str) -> InboundMessage | None:
    """Turn one REST array item or `receive` notification into an InboundMessage.

    Returns None for anything that is not a data message from someone else:
    receipts, typing indicators, sync messages, and the bot's own sends.
    """
    envelope = _unwrap(raw)
    if envelope is None:
        return None
    data_message = envelope.get("dataMessage")
    if not isinstance(data_message, dict):
        return None
    source = str(envelope.get("source") or envelope.get("sourceNumber") or "").strip()
    if not source or source == own_number:
        return None

    timestamp = _as_int(data_message.get("timestamp"))
    if timestamp is None:
        timestamp = _as_int(envelope.get("timestamp"))
    if timestamp is None:
        return None

    text = data_message.get("message")
    text = text.strip() if isinstance(text, str) else None
    attachments = data_message.get("attachments") if isinstance(data_message.get("attachments"), list) else []

    group_info = data_message.get("groupInfo") if isinstance(data_message.get("groupInfo"), dict) else None
    group_id = str(group_info.get("groupId") or "").strip() if group_info else ""
    if group_id:
        return InboundMessage(
            sender_id=source,
            timestamp_ms=timestamp,
            text=text,
            attachments=tuple(item for item in attachments if isinstance(item, dict)),
            origin_kind=OriginKind.GROUP,
            group_id=group_id,
            group_name=str(group_info.get("name") or "").strip() or UNKNOWN_GROUP_NAME,
        )
    return InboundMessage(
        sender_id=source,
        timestamp_ms=timestamp,
        text=text,
        attachments=tuple(item for item in attachments if isinstance(item, dict)),
    )


def normalize_envelopes(items: Any, *, own_number: str) -> list[InboundMessage]:
    if not isinstance(items, list):
        return []
    messages: list[InboundMessage] = []
    for item in items:
        message = normalize_envelope(item, own_number=own_number)
        if message is not None:
            messages.append(message)
    return messages


def _unwrap(raw: Any) -> dict[str, Any] | None:
    if not isinstance(raw, dict):
        return None
    inner = raw.get("envelope")
    if isinstance(inner, dict):
        return inner
    return raw


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
