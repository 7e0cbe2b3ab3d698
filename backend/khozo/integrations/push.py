"""Push notification gateway.

HttpPushGateway posts FCM v1 shaped messages to a configured endpoint.
Credential minting (service-account JWT exchange) happens outside this
service; PUSH_GATEWAY_KEY is the bearer it was given.
"""

import logging
from typing import Protocol

import httpx

from ..config import settings
from .crypto import reveal

logger = logging.getLogger(__name__)


class PushGateway(Protocol):
    """Delivers one message to one device token. Returns (ok, error)."""

    def send(self, token: str, title: str, body: str, data: dict | None = None) -> tuple[bool, str]: ...


class HttpPushGateway:
    def __init__(self, url: str, api_key: str, timeout: float = 10.0) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout

    def _message(self, token: str, title: str, body: str, data: dict | None) -> dict:
        priority = (data or {}).get("priority", "normal")
        return {
            "message": {
                "token": token,
                "notification": {"title": title[:100], "body": body[:200]},
                # FCM data payload values must be strings
                "data": {k: str(v) for k, v in (data or {}).items()},
                "android": {
                    "priority": "high" if priority == "high" else "normal",
                    "notification": {"channel_id": "deadline_reminders", "sound": "default"},
                },
            }
        }

    def send(self, token: str, title: str, body: str, data: dict | None = None) -> tuple[bool, str]:
        try:
            response = httpx.post(
                self._url,
                json=self._message(token, title, body, data),
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("Push gateway request failed: %s", exc)
            return False, f"gateway unreachable: {exc}"

        if response.is_success:
            return True, ""
        logger.warning("Push gateway returned %d: %s", response.status_code, response.text[:200])
        return False, f"gateway error {response.status_code}: {response.text[:500]}"


class NullPushGateway:
    """Used when no gateway is configured; every push fails softly."""

    def send(self, token: str, title: str, body: str, data: dict | None = None) -> tuple[bool, str]:
        return False, "push gateway not configured"


def create_push_gateway() -> PushGateway:
    """Factory: create the push gateway based on configuration."""
    if not settings.push_gateway_url:
        logger.info("PUSH_GATEWAY_URL not set, push delivery disabled")
        return NullPushGateway()
    return HttpPushGateway(
        settings.push_gateway_url,
        reveal(settings.push_gateway_key),
        timeout=settings.push_timeout_seconds,
    )
