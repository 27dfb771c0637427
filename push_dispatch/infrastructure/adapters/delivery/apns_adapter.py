"""Apple Push Notification service delivery adapter (provider API).

POST {endpoint}/3/device/{device_token} over HTTP/2 with a provider
authentication token (JWT) from the injected token provider.

Result mapping:
- 200                    -> delivered, platform_response {"apns_id": ...}
- 429 / 5xx / transport  -> DeviceDeliveryError(retryable=True)
- other 4xx              -> rejected with the APNs reason
  (BadDeviceToken, Unregistered, DeviceTokenNotForTopic, ...)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from push_dispatch.application.ports.delivery_adapter import (
    DeliveryAdapterProtocol,
    DeliveryResult,
)
from push_dispatch.domain.errors import DeviceDeliveryError
from push_dispatch.domain.models.device import DeviceSnapshot
from push_dispatch.domain.models.notification import NotificationContent

logger = structlog.get_logger()

TokenProvider = Callable[[], Awaitable[str]]

APNS_PRODUCTION_ENDPOINT = "https://api.push.apple.com"
APNS_SANDBOX_ENDPOINT = "https://api.sandbox.push.apple.com"
TRANSPORT_ERROR_CODE = "APNS_TRANSPORT_ERROR"


def build_apns_payload(content: NotificationContent) -> dict[str, Any]:
    """Build the APNs JSON payload; custom keys sit beside "aps"."""
    aps: dict[str, Any] = {
        "alert": {"title": content.title, "body": content.body},
        "sound": "default",
    }
    if content.image_url:
        aps["mutable-content"] = 1

    payload: dict[str, Any] = dict(content.data or {})
    payload["aps"] = aps
    if content.image_url:
        payload["image_url"] = content.image_url
    if content.deep_link:
        payload["deep_link"] = content.deep_link
    return payload


class ApnsDeliveryAdapter(DeliveryAdapterProtocol):
    """Sends notifications to iOS devices through APNs.

    Attributes:
        _topic: App bundle id sent as apns-topic.
        _endpoint: APNs base URL (production or sandbox).
        _token_provider: Returns a provider JWT.
        _timeout: Per-request timeout in seconds.
        _client: Optional shared client (a fresh HTTP/2 one per send otherwise).
    """

    def __init__(
        self,
        topic: str,
        token_provider: TokenProvider,
        endpoint: str = APNS_PRODUCTION_ENDPOINT,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not topic:
            raise ValueError("topic cannot be empty")
        self._topic = topic
        self._endpoint = endpoint.rstrip("/")
        self._token_provider = token_provider
        self._timeout = timeout
        self._client = client

    def device_url(self, device_token: str) -> str:
        return f"{self._endpoint}/3/device/{device_token}"

    async def send(
        self,
        device: DeviceSnapshot,
        content: NotificationContent,
    ) -> DeliveryResult:
        log = logger.bind(device_id=device.id, platform="ios")
        if not device.device_token:
            return DeliveryResult.rejected("MISSING_DEVICE_TOKEN", "Device has no APNs token")

        token = await self._token_provider()
        headers = {
            "authorization": f"bearer {token}",
            "apns-topic": self._topic,
            "apns-push-type": "alert",
            "apns-priority": "10",
        }
        url = self.device_url(device.device_token)
        payload = build_apns_payload(content)

        try:
            if self._client is not None:
                response = await self._client.post(
                    url, json=payload, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(http2=True) as client:
                    response = await client.post(
                        url, json=payload, headers=headers, timeout=self._timeout
                    )
        except httpx.HTTPError as e:
            log.warning("apns_transport_error", error=str(e))
            raise DeviceDeliveryError(TRANSPORT_ERROR_CODE, str(e), retryable=True) from e

        apns_id = response.headers.get("apns-id")
        if response.status_code == 200:
            log.debug("apns_message_sent", apns_id=apns_id)
            return DeliveryResult.delivered({"apns_id": apns_id})

        try:
            reason = response.json().get("reason") or f"HTTP_{response.status_code}"
        except ValueError:
            reason = f"HTTP_{response.status_code}"
        log.warning("apns_message_rejected", status_code=response.status_code, reason=reason)

        if response.status_code == 429 or response.status_code >= 500:
            raise DeviceDeliveryError(reason, f"APNs returned {response.status_code}", retryable=True)
        return DeliveryResult.rejected(
            reason,
            f"APNs rejected the notification: {reason}",
            platform_response={"status_code": response.status_code, "apns_id": apns_id},
        )
