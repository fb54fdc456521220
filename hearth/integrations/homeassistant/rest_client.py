from __future__ import annotations

import time
from typing import Any

import requests

from hearth.errors import BackendHttpError, TransportTimeout
from hearth.integrations.homeassistant.config import HomeAssistantConfig


class HomeAssistantTransportError(BackendHttpError):
    pass


class HomeAssistantAuthError(HomeAssistantTransportError):
    pass


class HomeAssistantRateLimitError(HomeAssistantTransportError):
    pass


class HomeAssistantRestClient:
    def __init__(self, config: HomeAssistantConfig) -> None:
        self._config = config
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {config.token}",
                "Content-Type": "application/json",
            }
        )

    def check_api(self) -> dict[str, Any]:
        response = self._request("GET", "/api/")
        data = response.json()
        return data if isinstance(data, dict) else {}

    def get_config(self) -> dict[str, Any]:
        response = self._request("GET", "/api/config")
        data = response.json()
        return data if isinstance(data, dict) else {}

    def get_states(self) -> list[dict[str, Any]]:
        response = self._request("GET", "/api/states")
        data = response.json()
        return data if isinstance(data, list) else []

    def get_state(self, entity_id: str) -> dict[str, Any] | None:
        response = self._request("GET", f"/api/states/{entity_id}", allow_not_found=True)
        if response is None:
            return None
        data = response.json()
        return data if isinstance(data, dict) else None

    def call_service(
        self,
        domain: str,
        service: str,
        data: dict[str, Any] | None = None,
        target: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {}
        if isinstance(data, dict):
            payload.update(data)
        if isinstance(target, dict) and target:
            payload["target"] = target
        response = self._request("POST", f"/api/services/{domain}/{service}", json=payload)
        body = response.json() if response.content else []
        return body if isinstance(body, list) else []

    def turn_on(self, entity_id: str) -> list[dict[str, Any]]:
        return self.call_service("homeassistant", "turn_on", {"entity_id": entity_id})

    def turn_off(self, entity_id: str) -> list[dict[str, Any]]:
        return self.call_service("homeassistant", "turn_off", {"entity_id": entity_id})

    def toggle(self, entity_id: str) -> list[dict[str, Any]]:
        return self.call_service("homeassistant", "toggle", {"entity_id": entity_id})

    def set_brightness(self, entity_id: str, brightness_pct: int) -> list[dict[str, Any]]:
        return self.call_service(
            "light",
            "turn_on",
            {"entity_id": entity_id, "brightness_pct": brightness_pct},
        )

    def close(self) -> None:
        self._session.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> requests.Response | None:
        """Single request; only a GET that could not connect is re-sent.

        Timeouts and error statuses raise on the first occurrence. Service
        calls are sent exactly once.
        """
        url = f"{self._config.base_url}{path}"
        attempts = max(1, self._config.retry.max_attempts) if method == "GET" else 1
        for attempt in range(1, attempts + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    json=json,
                    timeout=self._config.request_timeout_sec,
                )
            except requests.Timeout as exc:
                raise TransportTimeout(f"Home Assistant request timed out: {method} {path}") from exc
            except requests.ConnectionError as exc:
                if attempt >= attempts:
                    raise HomeAssistantTransportError(f"Home Assistant request failed: {exc}") from exc
                self._sleep_before_retry(attempt)
                continue

            status = response.status_code
            if allow_not_found and status == 404:
                return None
            if status in {401, 403}:
                raise HomeAssistantAuthError(f"Home Assistant auth failed status={status}", status_code=status)
            if status == 429:
                raise HomeAssistantRateLimitError("Home Assistant rate limited", status_code=status)
            if status >= 500:
                raise HomeAssistantTransportError(f"Home Assistant server error status={status}", status_code=status)
            if status >= 400:
                raise HomeAssistantTransportError(
                    f"Home Assistant request failed status={status} body={response.text[:200]}",
                    status_code=status,
                )
            return response
        return None

    def _sleep_before_retry(self, attempt: int) -> None:
        delay = min(
            self._config.retry.max_delay_sec,
            self._config.retry.base_delay_sec * (2 ** max(0, attempt - 1)),
        )
        time.sleep(max(0.0, delay))
