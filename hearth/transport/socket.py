from __future__ import annotations

import json
import random
import threading
from typing import Any, Callable

import websocket

from hearth.errors import ConnectionLost
from hearth.observability.log_manager import get_component_logger

logger = get_component_logger("transport.socket")


class PersistentSocket:
    """One long-lived websocket with a reader thread and unbounded reconnect.

    `handshake` runs on every fresh connection before it is marked ready;
    `on_ready` runs on a side thread afterwards so it may issue requests that
    depend on the reader loop. `on_disconnect` runs after every drop, before
    the backoff wait.
    """

    def __init__(
        self,
        url: str,
        *,
        name: str,
        on_message: Callable[[dict[str, Any]], None],
        backoff: Callable[[int], float],
        open_timeout_sec: float = 10.0,
        handshake: Callable[[Any], bool] | None = None,
        on_ready: Callable[[], None] | None = None,
        on_disconnect: Callable[[str], None] | None = None,
    ) -> None:
        self._url = url
        self._name = name
        self._on_message = on_message
        self._backoff = backoff
        self._open_timeout_sec = open_timeout_sec
        self._handshake = handshake
        self._on_ready = on_ready
        self._on_disconnect = on_disconnect

        self._shutdown = threading.Event()
        self._ready = threading.Event()
        self._state_lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._ws: Any = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._ready.is_set()

    def connect(self, *, wait: bool = True) -> bool:
        if not (self._thread and self._thread.is_alive()):
            self._shutdown.clear()
            self._ready.clear()
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        if not wait:
            return self.connected
        return self._ready.wait(timeout=self._open_timeout_sec)

    def stop(self) -> None:
        self._shutdown.set()
        self._ready.clear()
        self._close_ws()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)

    def send_json(self, payload: dict[str, Any]) -> None:
        with self._state_lock:
            ws = self._ws if self._ready.is_set() else None
        if ws is None:
            raise ConnectionLost(f"{self._name} not connected")
        try:
            with self._send_lock:
                ws.send(json.dumps(payload))
        except Exception as exc:
            # A reconnect may already have replaced `ws`; leave the new one alone.
            if self._close_ws(expected=ws):
                logger.warning("%s send failed, dropping connection error=%s", self._name, exc)
            raise ConnectionLost(f"{self._name} send failed: {exc}") from exc

    def _run(self) -> None:
        attempt = 0
        while not self._shutdown.is_set():
            if not self._connect_once():
                delay = self._backoff(attempt)
                attempt += 1
                logger.warning("%s connect failed attempt=%s retry_in=%.1fs", self._name, attempt, delay)
                self._shutdown.wait(timeout=delay)
                continue

            attempt = 0
            self._ready.set()
            logger.info("%s connected url=%s", self._name, self._url)
            if self._on_ready is not None:
                threading.Thread(target=self._run_on_ready, name=f"{self._name}-ready", daemon=True).start()

            reason = self._read_until_closed()
            self._mark_disconnected(reason)
            if self._shutdown.is_set():
                break
            delay = self._backoff(0)
            logger.warning("%s closed reason=%s reconnect_in=%.1fs", self._name, reason, delay)
            self._shutdown.wait(timeout=delay)

    def _connect_once(self) -> bool:
        self._ready.clear()
        try:
            ws = websocket.create_connection(self._url, timeout=self._open_timeout_sec)
        except Exception as exc:
            logger.warning("%s connection failed url=%s error=%s", self._name, self._url, exc)
            return False

        with self._state_lock:
            self._ws = ws
        if self._handshake is None:
            return True
        try:
            accepted = bool(self._handshake(ws))
        except Exception as exc:
            logger.warning("%s handshake failed error=%s", self._name, exc)
            accepted = False
        if not accepted:
            self._close_ws()
        return accepted

    def _read_until_closed(self) -> str:
        while not self._shutdown.is_set():
            with self._state_lock:
                ws = self._ws
            if ws is None:
                return "closed"
            try:
                raw = ws.recv()
            except websocket.WebSocketTimeoutException:
                continue
            except Exception as exc:
                return f"receive failed: {exc}"
            if raw is None or raw == "":
                # websocket-client returns an empty frame once the peer closes.
                if not ws.connected:
                    return "closed by peer"
                continue
            payload = parse_message(raw)
            if payload is None:
                logger.warning("%s dropped unparseable frame", self._name)
                continue
            try:
                self._on_message(payload)
            except Exception as exc:
                logger.error("%s message handler failed error=%s", self._name, exc)
        return "shutdown"

    def _run_on_ready(self) -> None:
        try:
            self._on_ready()
        except Exception as exc:
            logger.warning("%s on_ready failed error=%s", self._name, exc)

    def _mark_disconnected(self, reason: str) -> None:
        self._ready.clear()
        self._close_ws()
        if self._on_disconnect is not None:
            self._on_disconnect(reason)

    def _close_ws(self, expected: Any = None) -> bool:
        with self._state_lock:
            ws = self._ws
            if ws is None or (expected is not None and ws is not expected):
                return False
            self._ws = None
            self._ready.clear()
        try:
            ws.close()
        except Exception as exc:
            logger.debug("%s close failed error=%s", self._name, exc)
        return True


def http_to_ws_url(base_url: str, path: str) -> str:
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://") :]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://") :]
    return base + path


def parse_message(raw: str | bytes | None) -> dict[str, Any] | None:
    if not raw:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="ignore")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def fixed_backoff(delay_sec: float) -> Callable[[int], float]:
    return lambda _attempt: delay_sec


def exponential_backoff(*, minimum: float, maximum: float, jitter_ratio: float) -> Callable[[int], float]:
    def _delay(attempt: int) -> float:
        base = min(maximum, minimum * (2 ** max(0, attempt)))
        jitter = base * max(0.0, jitter_ratio)
        return max(0.05, base + random.uniform(-jitter, jitter))

    return _delay
