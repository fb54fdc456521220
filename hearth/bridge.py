"""Top-level control loop: poll the chat transport, gate, dispatch, reply."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Iterable, Mapping

from hearth.commands.dispatcher import CommandDispatcher
from hearth.errors import BridgeError, Unauthorized, UnsupportedOperation
from hearth.gates import AuthorizationGate, DedupGate
from hearth.integrations.signal.contracts import ChatGroup, ChatTransport, InboundMessage, ReplyTarget
from hearth.notifications import ALL_RULES, render_state_change
from hearth.observability.log_manager import get_component_logger

logger = get_component_logger("bridge")

DEFAULT_POLL_INTERVAL_SEC = 60.0
DEFAULT_NEW_GROUP_NAME = "HA Bot Group"
WELCOME_TEXT = '🏠 Home Assistant Bot is now monitoring your home. Send "help" for commands.'
UNSUPPORTED_GROUPS_TEXT = "⚠️ {operation} is not available on the {transport} transport. Group management requires SIGNAL_MODE=normal."
INVITE_USAGE_TEXT = "Usage: /invite [group id] [phone number]"


class BridgeLoop:
    """Serialized poll loop plus the push-event relay.

    Cycles never overlap: the next cycle starts `poll_interval_sec` after the
    previous one started, or immediately when a cycle overran (missed ticks
    are coalesced into one). State-change events arrive on the event-stream
    thread and are relayed to the broadcast group independently.
    """

    def __init__(
        self,
        transport: ChatTransport,
        dispatcher: CommandDispatcher,
        *,
        dedup: DedupGate,
        auth: AuthorizationGate,
        own_number: str,
        poll_interval_sec: float = DEFAULT_POLL_INTERVAL_SEC,
        broadcast_group_id: str | None = None,
        notify_rules: frozenset[str] = ALL_RULES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._dispatcher = dispatcher
        self._dedup = dedup
        self._auth = auth
        self._own_number = own_number
        self._poll_interval_sec = poll_interval_sec
        self._broadcast_group_id = broadcast_group_id
        self._notify_rules = notify_rules
        self._clock = clock
        self._stop_event = threading.Event()

    @property
    def broadcast_group_id(self) -> str | None:
        return self._broadcast_group_id

    def run(self) -> None:
        logger.info(
            "Bridge loop started transport=%s interval_sec=%s",
            self._transport.name,
            self._poll_interval_sec,
        )
        while not self._stop_event.is_set():
            started = self._clock()
            self.run_cycle()
            elapsed = self._clock() - started
            if elapsed >= self._poll_interval_sec:
                logger.warning(
                    "Poll cycle overran interval latency_ms=%s interval_sec=%s",
                    int(elapsed * 1000),
                    self._poll_interval_sec,
                )
                continue
            self._stop_event.wait(self._poll_interval_sec - elapsed)
        logger.info("Bridge loop stopped")

    def stop(self) -> None:
        self._stop_event.set()

    def run_cycle(self) -> int:
        """Fetch one batch and handle it in transport order. Returns messages handled."""
        try:
            messages = self._transport.receive_messages()
        except BridgeError as exc:
            logger.error("Error polling messages error=%s", exc)
            return 0
        except Exception as exc:
            logger.exception("Unexpected error polling messages error=%s", exc)
            return 0
        handled = 0
        for message in messages:
            if self.handle_message(message) is not None:
                handled += 1
        return handled

    def handle_message(self, message: InboundMessage) -> str | None:
        if not self._dedup.admit(message.identity):
            logger.debug("Skipping duplicate message sender=%s", message.sender_id)
            return None
        try:
            self._auth.check(message)
        except Unauthorized:
            logger.warning("Rejected message from unauthorized number sender=%s", message.sender_id)
            return None
        if not message.text or not message.text.strip():
            return None

        if message.is_group:
            logger.info(
                'Group message sender=%s group_id=%s group_name="%s" text="%s"',
                message.sender_id,
                message.group_id,
                message.group_name,
                message.text,
            )
        else:
            logger.info('DM sender=%s text="%s"', message.sender_id, message.text)

        try:
            handled = self._handle_group_command(message)
            if handled is not None:
                target, reply = handled
            else:
                target, reply = message.reply_target, self._dispatcher.dispatch(message.text)
        except Exception as exc:
            logger.error("Error executing command sender=%s error=%s", message.sender_id, exc)
            target, reply = message.reply_target, f"❌ Error: {exc}"

        if reply:
            self._reply(target, reply)
        return reply

    def on_state_changed(self, event: Mapping[str, Any]) -> None:
        data = event.get("data") if isinstance(event, Mapping) else None
        if isinstance(data, Mapping):
            logger.debug("HA event entity_id=%s", data.get("entity_id"))
        if not self._broadcast_group_id:
            return
        text = render_state_change(data, rules=self._notify_rules)
        if not text:
            return
        try:
            self._transport.send_message(ReplyTarget.group(self._broadcast_group_id), text)
        except Exception as exc:
            logger.error("Failed to broadcast to group group_id=%s error=%s", self._broadcast_group_id[:20], exc)

    def _reply(self, target: ReplyTarget, text: str) -> None:
        try:
            self._transport.send_message(target, text)
        except Exception as exc:
            logger.error("Failed to send reply target=%s error=%s", target.id[:20], exc)

    def _handle_group_command(self, message: InboundMessage) -> tuple[ReplyTarget, str] | None:
        raw = str(message.text or "").strip()
        cmd = raw.lower()
        if cmd in {"/groups", "list groups"}:
            return message.reply_target, self._list_groups()
        if cmd.startswith("/creategroup") or cmd.startswith("create group"):
            prefix = "/creategroup" if cmd.startswith("/creategroup") else "create group"
            name = raw[len(prefix) :].strip() or DEFAULT_NEW_GROUP_NAME
            return ReplyTarget.individual(message.sender_id), self._create_group(name, message.sender_id)
        if cmd == "/invite" or cmd.startswith("/invite "):
            args = raw.split()[1:]
            if len(args) != 2:
                return message.reply_target, INVITE_USAGE_TEXT
            return message.reply_target, self._invite(args[0], args[1])
        return None

    def _list_groups(self) -> str:
        groups = self._transport.list_groups()
        rendered = "\n".join(f"• {group.name} ({len(group.members)} members)" for group in groups)
        return f"📋 Groups:\n{rendered or 'No groups found'}"

    def _create_group(self, name: str, requester: str) -> str:
        try:
            group = self._transport.create_group(name, [self._own_number, requester])
        except UnsupportedOperation as exc:
            return UNSUPPORTED_GROUPS_TEXT.format(operation=exc.operation, transport=exc.transport)
        except Exception as exc:
            return f"❌ Failed to create group: {exc}"
        return (
            f'✅ Created group "{name}"\n\n'
            f"Group ID: {group.id[:30]}...\n\n"
            f"Add more members with: /invite {group.id[:20]} [phone number]"
        )

    def _invite(self, group_ref: str, number: str) -> str:
        try:
            group_id = self._expand_group_id(group_ref)
            self._transport.invite_members(group_id, [number])
        except UnsupportedOperation as exc:
            return UNSUPPORTED_GROUPS_TEXT.format(operation=exc.operation, transport=exc.transport)
        except Exception as exc:
            return f"❌ Failed to invite: {exc}"
        return f"✅ Invited {number} to group {group_id[:20]}..."

    def _expand_group_id(self, group_ref: str) -> str:
        # The create reply only shows a prefix of the id.
        matches = [group.id for group in self._transport.list_groups() if group.id.startswith(group_ref)]
        if len(matches) == 1:
            return matches[0]
        return group_ref


def find_group(groups: Iterable[ChatGroup], name: str) -> ChatGroup | None:
    for group in groups:
        if group.name == name:
            return group
    return None


def ensure_broadcast_group(transport: ChatTransport, name: str, members: list[str]) -> ChatGroup:
    """Reuse the group called `name`, creating it with `members` if none exists."""
    existing = find_group(transport.list_groups(), name)
    if existing is not None:
        logger.info('Found existing HA group group_name="%s"', name)
        return existing
    logger.info('Creating new HA group group_name="%s"', name)
    return transport.create_group(name, members)
