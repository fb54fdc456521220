from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class OriginKind(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


@dataclass(frozen=True)
class ReplyTarget:
    kind: OriginKind
    id: str

    @classmethod
    def individual(cls, number: str) -> "ReplyTarget":
        return cls(kind=OriginKind.INDIVIDUAL, id=number)

    @classmethod
    def group(cls, group_id: str) -> "ReplyTarget":
        return cls(kind=OriginKind.GROUP, id=group_id)


@dataclass(frozen=True)
class InboundMessage:
    sender_id: str
    timestamp_ms: int
    text: str | None
    attachments: tuple[dict[str, Any], ...] = ()
    origin_kind: OriginKind = OriginKind.INDIVIDUAL
    group_id: str | None = None
    group_name: str | None = None

    def __post_init__(self) -> None:
        if self.origin_kind is OriginKind.GROUP and not self.group_id:
            raise ValueError("group messages require group_id")
        if self.origin_kind is OriginKind.INDIVIDUAL and self.group_id:
            raise ValueError("individual messages cannot carry group_id")

    @property
    def is_group(self) -> bool:
        return self.origin_kind is OriginKind.GROUP

    @property
    def identity(self) -> tuple[int, str, str]:
        return (self.timestamp_ms, self.sender_id, self.group_id or "")

    @property
    def reply_target(self) -> ReplyTarget:
        if self.is_group:
            return ReplyTarget.group(str(self.group_id))
        return ReplyTarget.individual(self.sender_id)


@dataclass(frozen=True)
class ChatGroup:
    id: str
    name: str
    members: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ChatGroup":
        members = payload.get("members") if isinstance(payload.get("members"), list) else []
        return cls(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or ""),
            members=tuple(str(member) for member in members),
        )


class ChatTransport(Protocol):
    """Capability set shared by the polling and socket transports."""

    name: str

    @property
    def connected(self) -> bool:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def send_message(self, target: ReplyTarget, text: str) -> None:
        ...

    def receive_messages(self) -> list[InboundMessage]:
        ...

    def list_groups(self) -> list[ChatGroup]:
        ...

    def create_group(self, name: str, members: list[str]) -> ChatGroup:
        ...

    def invite_members(self, group_id: str, members: list[str]) -> None:
        ...
