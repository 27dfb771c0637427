"""Firebase Cloud Messaging delivery adapter (HTTP v1 API).

POST {endpoint}/v1/projects/{project_id}/messages:send with an OAuth2
bearer token from the injected token provider.

Result mapping:
- 2xx                    -> delivered, platform_response {"message_id": name}
- 429 / 5xx / transport  -> DeviceDeliveryError(retryable=True)
- other 4xx              -> rejected with the FCM error code
  (UNREGISTERED, INVALID_ARGUMENT, SENDER_ID_MISMATCH, ...)
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

FCM_ERROR_TYPE = "type.googleapis.com/google.firebase.fcm.v1.FcmError"
TRANSPORT_ERROR_CODE = "FCM_TRANSPORT_ERROR"


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def build_fcm_message(device: DeviceSnapshot, content: NotificationContent) -> dict[str, Any]:
    """Build the messages:send request body for one device."""
    notification: dict[str, Any] = {"title": content.title, "body": content.body}
    if content.image_url:
        notification["image"] = content.image_url

    # FCM data values must be strings
    data = {key: str(value) for key, value in (content.data or {}).items()}
    if content.deep_link:
        data["deep_link"] = content.deep_link

    message: dict[str, Any] = {
        "token": device.device_token,
        "notification": notification,
        "android": {"priority": "high"},
    }
    if data:
        message["data"] = data
    return {"message": message}


def _json_object(response: httpx.Response) -> dict[str, Any] | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _parse_error(response: httpx.Response) -> tuple[str, str]:
    body = _json_object(response)
    if body is None:
        return f"HTTP_{response.status_code}", response.text or response.reason_phrase

    error = body.get("error")
    if not isinstance(error, dict):
        return f"HTTP_{response.status_code}", response.reason_phrase

    code = error.get("status") or f"HTTP_{response.status_code}"
    details = error.get("details")
    for detail in details if isinstance(details, list) else []:
        if not isinstance(detail, dict):
            continue
        if detail.get("@type") == FCM_ERROR_TYPE and detail.get("errorCode"):
            code = detail["errorCode"]
            break
    return str(code), str(error.get("message") or response.reason_phrase)


class FcmDeliveryAdapter(DeliveryAdapterProtocol):
    """Sends notifications to Android devices through FCM.

    Attributes:
        _project_id: Firebase project id.
        _endpoint: FCM base URL.
        _token_provider: Returns an OAuth2 access token for FCM.
        _timeout: Per-request timeout in seconds.
        _client: Optional shared client (a fresh one per send otherwise).
    """

    def __init__(
        self,
        project_id: str,
        token_provider: TokenProvider,
        endpoint: str = "https://fcm.googleapis.com",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not project_id:
            raise ValueError("project_id cannot be empty")
        self._project_id = project_id
        self._endpoint = endpoint.rstrip("/")
        self._token_provider = token_provider
        self._timeout = timeout
        self._client = client

    @property
    def send_url(self) -> str:
        return f"{self._endpoint}/v1/projects/{self._project_id}/messages:send"

    async def send(
        self,
        device: DeviceSnapshot,
        content: NotificationContent,
    ) -> DeliveryResult:
        log = logger.bind(device_id=device.id, platform="android")
        if not device.device_token:
            return DeliveryResult.rejected("MISSING_DEVICE_TOKEN", "Device has no FCM token")

        token = await self._token_provider()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json; UTF-8",
        }
        body = build_fcm_message(device, content)

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.send_url, json=body, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.send_url, json=body, headers=headers, timeout=self._timeout
                    )
        except httpx.HTTPError as e:
            log.warning("fcm_transport_error", error=str(e))
            raise DeviceDeliveryError(TRANSPORT_ERROR_CODE, str(e), retryable=True) from e

        if response.is_success:
            # Accepted even when the body is unreadable
            accepted = _json_object(response) or {}
            message_id = accepted.get("name")
            log.debug("fcm_message_sent", message_id=message_id)
            return DeliveryResult.delivered({"message_id": message_id})

        code, message = _parse_error(response)
        log.warning("fcm_message_rejected", status_code=response.status_code, error_code=code)
        if _is_retryable_status(response.status_code):
            raise DeviceDeliveryError(code, message, retryable=True)
        return DeliveryResult.rejected(
            code, message, platform_response={"status_code": response.status_code}
        )
