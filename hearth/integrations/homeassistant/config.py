from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay_sec: float = 0.4
    max_delay_sec: float = 3.0


@dataclass(frozen=True)
class WsReconnectConfig:
    open_timeout_sec: float = 10.0
    request_timeout_sec: float = 30.0
    min_backoff_sec: float = 1.0
    max_backoff_sec: float = 30.0
    jitter_ratio: float = 0.2


@dataclass(frozen=True)
class HomeAssistantConfig:
    base_url: str
    token: str
    request_timeout_sec: float = 10.0
    retry: RetryConfig = field(default_factory=RetryConfig)
    ws: WsReconnectConfig = field(default_factory=WsReconnectConfig)
