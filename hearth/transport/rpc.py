"""Request/response correlation over a single persistent connection."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from hearth.errors import ConnectionLost, RemoteRpcError, TransportTimeout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0


@dataclass
class PendingRpcRequest:
    id: int
    created_at: float
    result_channel: queue.Queue[dict[str, Any] | BaseException] = field(
        default_factory=lambda: queue.Queue(maxsize=1)
    )


class RpcCorrelator:
    """Maps outgoing request ids to waiting callers.

    `call()` blocks the calling thread until the reader thread hands the
    matching response to `dispatch()`, the timeout elapses, or `reset()` fails
    every pending entry because the connection dropped. Each pending entry is
    removed exactly once, so a caller sees either a response or an error.
    """

    def __init__(
        self,
        send_frame: Callable[[dict[str, Any]], None],
        *,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        name: str = "rpc",
    ) -> None:
        self._send_frame = send_frame
        self._timeout_sec = timeout_sec
        self._name = name
        self._lock = threading.Lock()
        self._last_id = 0
        self._pending: dict[int, PendingRpcRequest] = {}

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def send(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """JSON-RPC 2.0 call; returns the response's `result` member."""
        response = self.call({"jsonrpc": "2.0", "method": method, "params": dict(params or {})})
        return response.get("result")

    def call(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Send `payload` with a fresh id and wait for the raw response."""
        with self._lock:
            self._last_id += 1
            request_id = self._last_id
            pending = PendingRpcRequest(id=request_id, created_at=time.monotonic())
            self._pending[request_id] = pending

        packet = dict(payload)
        packet["id"] = request_id
        try:
            self._send_frame(packet)
        except ConnectionLost:
            self._discard(request_id)
            raise
        except Exception as exc:
            self._discard(request_id)
            raise ConnectionLost(f"{self._name} send failed: {exc}") from exc

        try:
            outcome = pending.result_channel.get(timeout=self._timeout_sec)
        except queue.Empty:
            if self._discard(request_id):
                raise TransportTimeout(
                    f"{self._name} request timeout id={request_id} after {self._timeout_sec}s"
                ) from None
            # Already popped by dispatch() or reset(); its put is imminent.
            outcome = pending.result_channel.get()

        if isinstance(outcome, BaseException):
            raise outcome
        error = outcome.get("error")
        if error:
            raise _remote_error(error)
        return outcome

    def dispatch(self, payload: dict[str, Any]) -> bool:
        """Hand a response to its waiting caller. Returns False for unknown ids."""
        response_id = payload.get("id")
        if not isinstance(response_id, int) or isinstance(response_id, bool):
            return False
        with self._lock:
            pending = self._pending.pop(response_id, None)
        if pending is None:
            logger.debug("%s late or unknown response id=%s dropped", self._name, response_id)
            return False
        pending.result_channel.put(payload)
        return True

    def reset(self, reason: str = "connection lost") -> int:
        """Fail every pending request with ConnectionLost."""
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for entry in pending:
            entry.result_channel.put(ConnectionLost(f"{self._name}: {reason} (request id={entry.id})"))
        if pending:
            logger.warning("%s reset failed_pending=%s reason=%s", self._name, len(pending), reason)
        return len(pending)

    def _discard(self, request_id: int) -> bool:
        with self._lock:
            return self._pending.pop(request_id, None) is not None


def _remote_error(error: Any) -> RemoteRpcError:
    if isinstance(error, dict):
        message = str(error.get("message") or error)
        code = error.get("code")
        return RemoteRpcError(message, code=code if isinstance(code, int) else None)
    return RemoteRpcError(str(error))
