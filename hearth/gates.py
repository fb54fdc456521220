from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Hashable, Iterable

from hearth.errors import Unauthorized
from hearth.integrations.signal.contracts import InboundMessage

DEFAULT_CAPACITY = 1000


class SeenIdSet:
    """Bounded set with FIFO eviction by insertion order (lookups don't refresh)."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._items: OrderedDict[Hashable, None] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def add_if_absent(self, identity: Hashable) -> bool:
        """Insert `identity`; False if it was already present."""
        with self._lock:
            if identity in self._items:
                return False
            while len(self._items) >= self._capacity:
                self._items.popitem(last=False)
            self._items[identity] = None
            return True

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class DedupGate:
    def __init__(self, seen: SeenIdSet | None = None, *, capacity: int = DEFAULT_CAPACITY) -> None:
        self._seen = seen or SeenIdSet(capacity)

    def admit(self, identity: Hashable) -> bool:
        return self._seen.add_if_absent(identity)


class AuthorizationGate:
    """Direct messages need an allow-listed sender; group messages always pass.

    Group membership is managed on the chat backend, so any member of a group
    the bot is in may issue commands.
    """

    def __init__(self, allowed_senders: Iterable[str]) -> None:
        self._allowed = frozenset(str(sender).strip() for sender in allowed_senders if str(sender).strip())

    @property
    def allowed_senders(self) -> frozenset[str]:
        return self._allowed

    def is_allowed(self, message: InboundMessage) -> bool:
        if message.is_group:
            return True
        return message.sender_id in self._allowed

    def check(self, message: InboundMessage) -> None:
        if not self.is_allowed(message):
            raise Unauthorized(f"sender {message.sender_id} is not on the allow-list")
