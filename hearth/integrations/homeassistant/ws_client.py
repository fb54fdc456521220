from __future__ import annotations

import json
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from hearth.errors import BridgeError
from hearth.integrations.homeassistant.config import HomeAssistantConfig
from hearth.observability.log_manager import get_component_logger
from hearth.transport.rpc import RpcCorrelator
from hearth.transport.socket import PersistentSocket, exponential_backoff, http_to_ws_url, parse_message

logger = get_component_logger("homeassistant.ws_client")


class HomeAssistantWsError(BridgeError):
    pass


@dataclass
class _Subscription:
    local_id: str
    event_type: str
    callback: Callable[[dict[str, Any]], None]
    ha_subscription_id: int | None = None


class HomeAssistantWsClient:
    """Event stream: authenticates, subscribes, and re-subscribes after reconnects."""

    def __init__(self, config: HomeAssistantConfig) -> None:
        self._config = config
        self._state_lock = threading.Lock()
        self._subscriptions: dict[str, _Subscription] = {}
        self._subscriptions_by_ha_id: dict[int, str] = {}
        self._registering: set[str] = set()
        self._socket = PersistentSocket(
            http_to_ws_url(config.base_url, "/api/websocket"),
            name="homeassistant.ws",
            on_message=self._handle_message,
            backoff=exponential_backoff(
                minimum=config.ws.min_backoff_sec,
                maximum=config.ws.max_backoff_sec,
                jitter_ratio=config.ws.jitter_ratio,
            ),
            open_timeout_sec=config.ws.open_timeout_sec,
            handshake=self._authenticate,
            on_ready=self._resubscribe_all,
            on_disconnect=self._mark_disconnected,
        )
        self._rpc = RpcCorrelator(
            self._socket.send_json,
            timeout_sec=config.ws.request_timeout_sec,
            name="homeassistant.ws",
        )

    @property
    def connected(self) -> bool:
        return self._socket.connected

    def connect(self) -> None:
        if not self._socket.connect(wait=True):
            logger.warning("HomeAssistant WS not ready yet; reconnect continues in background")

    def stop(self) -> None:
        self._socket.stop()
        self._mark_disconnected("stopped")

    def subscribe_events(
        self,
        event_type: str,
        callback: Callable[[dict[str, Any]], None],
    ) -> str:
        local_id = f"sub-{int(time.time() * 1000)}-{random.randint(1000, 9999)}"
        with self._state_lock:
            self._subscriptions[local_id] = _Subscription(
                local_id=local_id,
                event_type=str(event_type),
                callback=callback,
            )
        self.connect()
        if self._socket.connected:
            try:
                self._register_subscription(local_id)
            except BridgeError as exc:
                logger.warning("HomeAssistant WS subscribe deferred local_id=%s error=%s", local_id, exc)
        return local_id

    def _authenticate(self, ws: Any) -> bool:
        first = parse_message(ws.recv())
        if not first or first.get("type") != "auth_required":
            logger.warning("HomeAssistant WS expected auth_required, got=%s", first)
            return False
        ws.send(json.dumps({"type": "auth", "access_token": self._config.token}))
        second = parse_message(ws.recv())
        if not second or second.get("type") != "auth_ok":
            logger.warning("HomeAssistant WS auth failed type=%s", (second or {}).get("type"))
            return False
        logger.info("HomeAssistant WS authenticated")
        return True

    def _resubscribe_all(self) -> None:
        with self._state_lock:
            local_ids = [
                local_id
                for local_id, sub in self._subscriptions.items()
                if sub.ha_subscription_id is None
            ]
        for local_id in local_ids:
            try:
                self._register_subscription(local_id)
            except BridgeError as exc:
                logger.warning("HomeAssistant WS resubscribe failed local_id=%s error=%s", local_id, exc)

    def _register_subscription(self, local_id: str) -> None:
        with self._state_lock:
            sub = self._subscriptions.get(local_id)
            if not sub or sub.ha_subscription_id is not None or local_id in self._registering:
                return
            self._registering.add(local_id)
            event_type = sub.event_type
        try:
            response = self._rpc.call({"type": "subscribe_events", "event_type": event_type})
        finally:
            with self._state_lock:
                self._registering.discard(local_id)
        if not response.get("success"):
            raise HomeAssistantWsError(f"subscribe_events failed local_id={local_id} response={response}")
        ha_id = int(response["id"])
        with self._state_lock:
            current = self._subscriptions.get(local_id)
            if not current:
                return
            current.ha_subscription_id = ha_id
            self._subscriptions_by_ha_id[ha_id] = local_id
        logger.info("HomeAssistant WS subscribed event_type=%s ha_id=%s", event_type, ha_id)

    def _handle_message(self, payload: dict[str, Any]) -> None:
        message_type = payload.get("type")
        if message_type == "result":
            self._rpc.dispatch(payload)
            return
        if message_type != "event":
            return
        event = payload.get("event") if isinstance(payload.get("event"), dict) else None
        ha_subscription_id = payload.get("id")
        if not event or not isinstance(ha_subscription_id, int):
            return
        with self._state_lock:
            local_id = self._subscriptions_by_ha_id.get(ha_subscription_id)
            sub = self._subscriptions.get(local_id) if local_id else None
        if not sub:
            return
        try:
            sub.callback(event)
        except Exception as exc:
            logger.warning("HomeAssistant WS callback failed local_id=%s error=%s", local_id, exc)

    def _mark_disconnected(self, reason: str) -> None:
        self._rpc.reset(reason)
        with self._state_lock:
            self._subscriptions_by_ha_id.clear()
            for sub in self._subscriptions.values():
                sub.ha_subscription_id = None
