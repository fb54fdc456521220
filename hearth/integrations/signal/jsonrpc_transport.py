"""Signal transport over the signal-cli JSON-RPC websocket."""

from __future__ import annotations

import queue
from typing import Any

from hearth.errors import UnsupportedOperation
from hearth.integrations.signal.config import SignalConfig
from hearth.integrations.signal.contracts import ChatGroup, InboundMessage, OriginKind, ReplyTarget
from hearth.integrations.signal.normalize import normalize_envelope
from hearth.observability.log_manager import get_component_logger
from hearth.transport.rpc import RpcCorrelator
from hearth.transport.socket import PersistentSocket, fixed_backoff, http_to_ws_url

logger = get_component_logger("signal.jsonrpc")

JSONRPC_PATH = "/v1/jsonrpc"


class SignalJsonRpcTransport:
    """Socket variant: outbound calls are correlated RPCs, inbound messages are pushes.

    Pushed messages are queued by the reader thread and drained by
    `receive_messages()`. Reconnects forever with a fixed delay.
    """

    name = "json-rpc"

    def __init__(self, config: SignalConfig) -> None:
        self._config = config
        self._inbox: queue.Queue[InboundMessage] = queue.Queue()
        self._socket = PersistentSocket(
            http_to_ws_url(config.api_url, JSONRPC_PATH),
            name="signal.jsonrpc",
            on_message=self._handle_message,
            backoff=fixed_backoff(config.reconnect_delay_sec),
            open_timeout_sec=config.open_timeout_sec,
            on_disconnect=self._on_disconnect,
        )
        self._rpc = RpcCorrelator(
            self._socket.send_json,
            timeout_sec=config.rpc_timeout_sec,
            name="signal.jsonrpc",
        )

    @property
    def connected(self) -> bool:
        return self._socket.connected

    def start(self) -> None:
        logger.info("Connecting to Signal JSON-RPC url=%s", self._socket.url)
        if not self._socket.connect(wait=True):
            logger.warning("Signal JSON-RPC not ready yet; reconnect continues in background")

    def stop(self) -> None:
        self._socket.stop()
        self._rpc.reset("transport stopped")

    def send_message(self, target: ReplyTarget, text: str) -> None:
        params: dict[str, Any] = {"account": self._config.number, "message": text}
        if target.kind is OriginKind.GROUP:
            params["groupId"] = target.id
            logger.info("Sending to group via JSON-RPC group_id=%s", target.id[:20])
        else:
            params["recipient"] = [target.id]
            logger.info("Sending via JSON-RPC sender=%s", target.id)
        self._rpc.send("send", params)

    def receive_messages(self) -> list[InboundMessage]:
        messages: list[InboundMessage] = []
        while True:
            try:
                messages.append(self._inbox.get_nowait())
            except queue.Empty:
                return messages

    def list_groups(self) -> list[ChatGroup]:
        logger.warning("listGroups not supported in JSON-RPC mode")
        return []

    def create_group(self, name: str, members: list[str]) -> ChatGroup:
        raise UnsupportedOperation("create_group", self.name)

    def invite_members(self, group_id: str, members: list[str]) -> None:
        raise UnsupportedOperation("invite_members", self.name)

    def _handle_message(self, payload: dict[str, Any]) -> None:
        method = payload.get("method")
        if method is not None:
            if method != "receive":
                logger.debug("Ignoring JSON-RPC notification method=%s", method)
                return
            message = normalize_envelope(payload.get("params"), own_number=self._config.number)
            if message is None:
                return
            self._inbox.put(message)
            if message.is_group:
                logger.info(
                    'Queued group message sender=%s group_id=%s group_name="%s"',
                    message.sender_id,
                    message.group_id,
                    message.group_name,
                )
            else:
                logger.debug("Queued message sender=%s", message.sender_id)
            return
        if "id" in payload:
            self._rpc.dispatch(payload)

    def _on_disconnect(self, reason: str) -> None:
        self._rpc.reset(reason)
