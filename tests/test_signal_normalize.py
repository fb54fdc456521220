from __future__ import annotations

import pytest

from hearth.integrations.signal.contracts import InboundMessage, OriginKind, ReplyTarget
from hearth.integrations.signal.normalize import normalize_envelope, normalize_envelopes

BOT = "+15550000000"


def _envelope(**data_message) -> dict:
    return {"envelope": {"source": "+15551111111", "timestamp": 1, "dataMessage": data_message}}


def test_individual_message_is_normalized() -> None:
    message = normalize_envelope(_envelope(message="  turn on kitchen  ", timestamp=1700), own_number=BOT)

    assert message is not None
    assert message.sender_id == "+15551111111"
    assert message.timestamp_ms == 1700
    assert message.text == "turn on kitchen"
    assert message.origin_kind is OriginKind.INDIVIDUAL
    assert message.reply_target == ReplyTarget.individual("+15551111111")
    assert message.identity == (1700, "+15551111111", "")


def test_group_message_carries_group_and_reply_target() -> None:
    message = normalize_envelope(
        _envelope(message="status", timestamp=5, groupInfo={"groupId": "grp==", "name": "Family"}),
        own_number=BOT,
    )

    assert message is not None
    assert message.is_group
    assert message.group_id == "grp=="
    assert message.group_name == "Family"
    assert message.reply_target == ReplyTarget.group("grp==")


def test_group_without_name_uses_placeholder() -> None:
    message = normalize_envelope(_envelope(message="x", timestamp=5, groupInfo={"groupId": "g"}), own_number=BOT)

    assert message is not None
    assert message.group_name == "Unknown Group"


def test_receipts_and_own_messages_are_dropped() -> None:
    receipt = {"envelope": {"source": "+15551111111", "timestamp": 1, "receiptMessage": {}}}
    own = {"envelope": {"source": BOT, "timestamp": 1, "dataMessage": {"message": "echo"}}}

    assert normalize_envelope(receipt, own_number=BOT) is None
    assert normalize_envelope(own, own_number=BOT) is None


def test_timestamp_falls_back_to_envelope() -> None:
    raw = {"sourceNumber": "+15552222222", "timestamp": 42, "dataMessage": {"message": "hi"}}

    message = normalize_envelope(raw, own_number=BOT)

    assert message is not None
    assert message.timestamp_ms == 42
    assert message.sender_id == "+15552222222"


def test_normalize_envelopes_skips_junk_and_keeps_order() -> None:
    items = [
        _envelope(message="first", timestamp=1),
        "garbage",
        _envelope(message="second", timestamp=2),
    ]

    messages = normalize_envelopes(items, own_number=BOT)

    assert [m.text for m in messages] == ["first", "second"]
    assert normalize_envelopes(None, own_number=BOT) == []


def test_group_id_only_allowed_for_group_origin() -> None:
    with pytest.raises(ValueError):
        InboundMessage(sender_id="+1", timestamp_ms=1, text="x", origin_kind=OriginKind.GROUP)
    with pytest.raises(ValueError):
        InboundMessage(sender_id="+1", timestamp_ms=1, text="x", group_id="g")
