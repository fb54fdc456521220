from __future__ import annotations

from dataclasses import dataclass

MODE_POLLING = "normal"
MODE_JSON_RPC = "json-rpc"


@dataclass(frozen=True)
class SignalConfig:
    api_url: str
    number: str
    mode: str = MODE_POLLING
    send_timeout_sec: float = 30.0
    receive_timeout_sec: float = 60.0
    rpc_timeout_sec: float = 30.0
    open_timeout_sec: float = 10.0
    reconnect_delay_sec: float = 5.0
