"""Signal transport over signal-cli-rest-api (polling)."""

from __future__ import annotations

from typing import Any

import requests

from hearth.errors import BackendHttpError, SendFailed, TransportTimeout
from hearth.integrations.signal.config import SignalConfig
from hearth.integrations.signal.contracts import ChatGroup, InboundMessage, OriginKind, ReplyTarget
from hearth.integrations.signal.normalize import normalize_envelopes
from hearth.observability.log_manager import get_component_logger

logger = get_component_logger("signal.rest")


class SignalRestTransport:
    name = "rest"

    def __init__(self, config: SignalConfig) -> None:
        self._config = config
        self._session = requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    @property
    def connected(self) -> bool:
        return True

    def start(self) -> None:
        logger.info("SignalRestTransport ready api_url=%s", self._config.api_url)

    def stop(self) -> None:
        self._session.close()

    def send_message(self, target: ReplyTarget, text: str) -> None:
        payload: dict[str, Any] = {"message": text, "number": self._config.number}
        if target.kind is OriginKind.GROUP:
            payload["groupId"] = target.id
            logger.info("Sending to group group_id=%s", target.id[:20])
        else:
            payload["recipient"] = [target.id]
            logger.info("Sending to recipient sender=%s", target.id)
        try:
            response = self._session.post(
                self._url("/v2/send"),
                json=payload,
                timeout=self._config.send_timeout_sec,
            )
        except requests.Timeout as exc:
            raise SendFailed(f"send timed out after {self._config.send_timeout_sec}s") from exc
        except requests.RequestException as exc:
            raise SendFailed(f"send failed: {exc}") from exc
        if response.status_code >= 400:
            raise SendFailed(f"send failed status={response.status_code} body={response.text[:200]}")

    def receive_messages(self) -> list[InboundMessage]:
        try:
            response = self._session.get(
                self._url(f"/v1/receive/{self._config.number}"),
                timeout=self._config.receive_timeout_sec,
            )
        except requests.Timeout as exc:
            raise TransportTimeout(f"receive timed out after {self._config.receive_timeout_sec}s") from exc
        except requests.RequestException as exc:
            raise BackendHttpError(f"receive failed: {exc}") from exc

        if response.status_code >= 400:
            if response.status_code == 400 or not response.text.strip():
                return []
            raise BackendHttpError(
                f"receive failed status={response.status_code} body={response.text[:200]}",
                status_code=response.status_code,
            )
        data = _json_or_none(response)
        return normalize_envelopes(data, own_number=self._config.number)

    def list_groups(self) -> list[ChatGroup]:
        try:
            response = self._session.get(
                self._url(f"/v1/groups/{self._config.number}"),
                timeout=self._config.send_timeout_sec,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Failed to list groups error=%s", exc)
            return []
        data = _json_or_none(response)
        return [ChatGroup.from_payload(item) for item in data or [] if isinstance(item, dict)]

    def create_group(self, name: str, members: list[str]) -> ChatGroup:
        response = self._request("POST", f"/v1/groups/{self._config.number}", {"name": name, "members": members})
        data = _json_or_none(response)
        payload = data if isinstance(data, dict) else {}
        group = ChatGroup(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or name),
            members=tuple(members),
        )
        logger.info('Created group name="%s"', name)
        return group

    def invite_members(self, group_id: str, members: list[str]) -> None:
        self._request("PUT", f"/v1/groups/{self._config.number}/{group_id}", {"members": members})
        logger.info("Invited members group_id=%s count=%s", group_id[:20], len(members))

    def _request(self, method: str, path: str, payload: dict[str, Any]) -> requests.Response:
        try:
            response = self._session.request(
                method,
                self._url(path),
                json=payload,
                timeout=self._config.send_timeout_sec,
            )
        except requests.Timeout as exc:
            raise TransportTimeout(f"{method} {path} timed out") from exc
        except requests.RequestException as exc:
            raise BackendHttpError(f"{method} {path} failed: {exc}") from exc
        if response.status_code >= 400:
            raise BackendHttpError(
                f"{method} {path} failed status={response.status_code} body={response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def _url(self, path: str) -> str:
        return f"{self._config.api_url}{path}"


def _json_or_none(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None
