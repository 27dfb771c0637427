"""Unit tests for ApnsDeliveryAdapter against a mocked APNs provider API."""

import json

import httpx
import pytest

from push_dispatch.domain.errors import DeviceDeliveryError
from push_dispatch.domain.models.device import DeviceSnapshot
from push_dispatch.domain.models.notification import NotificationContent
from push_dispatch.infrastructure.adapters.delivery import ApnsDeliveryAdapter
from push_dispatch.infrastructure.adapters.delivery.apns_adapter import (
    APNS_SANDBOX_ENDPOINT,
    build_apns_payload,
)
from tests.helpers import make_device

CONTENT = NotificationContent(
    title="Order shipped",
    body="Your order is on its way",
    image_url="https://cdn.example.com/box.png",
    deep_link="app://orders/42",
    data={"order_id": 42},
)


async def _token() -> str:
    return "provider-jwt"


def _adapter(handler, **kwargs) -> tuple[ApnsDeliveryAdapter, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return ApnsDeliveryAdapter("com.example.shop", _token, client=client, **kwargs), requests


class TestBuildPayload:
    """Tests for the APNs JSON payload."""

    def test_full_payload(self) -> None:
        assert build_apns_payload(CONTENT) == {
            "order_id": 42,
            "aps": {
                "alert": {"title": "Order shipped", "body": "Your order is on its way"},
                "sound": "default",
                "mutable-content": 1,
            },
            "image_url": "https://cdn.example.com/box.png",
            "deep_link": "app://orders/42",
        }

    def test_minimal_payload(self) -> None:
        payload = build_apns_payload(NotificationContent(title="a", body="b"))

        assert payload == {"aps": {"alert": {"title": "a", "body": "b"}, "sound": "default"}}


class TestSend:
    """Tests for response mapping."""

    async def test_success(self) -> None:
        adapter, requests = _adapter(
            lambda request: httpx.Response(200, headers={"apns-id": "apns-123"})
        )

        result = await adapter.send(make_device("tablet", platform="ios"), CONTENT)

        assert result.success is True
        assert result.platform_response == {"apns_id": "apns-123"}
        request = requests[0]
        assert str(request.url) == "https://api.push.apple.com/3/device/token-tablet"
        assert request.headers["authorization"] == "bearer provider-jwt"
        assert request.headers["apns-topic"] == "com.example.shop"
        assert request.headers["apns-push-type"] == "alert"
        assert json.loads(request.content)["aps"]["alert"]["title"] == "Order shipped"

    async def test_sandbox_endpoint(self) -> None:
        adapter, requests = _adapter(
            lambda request: httpx.Response(200), endpoint=APNS_SANDBOX_ENDPOINT
        )

        await adapter.send(make_device("tablet", platform="ios"), CONTENT)

        assert requests[0].url.host == "api.sandbox.push.apple.com"

    @pytest.mark.parametrize(
        ("status", "reason"),
        [(400, "BadDeviceToken"), (410, "Unregistered"), (400, "DeviceTokenNotForTopic")],
    )
    async def test_rejection_uses_reason(self, status: int, reason: str) -> None:
        adapter, _ = _adapter(
            lambda request: httpx.Response(
                status, json={"reason": reason}, headers={"apns-id": "apns-9"}
            )
        )

        result = await adapter.send(make_device("tablet", platform="ios"), CONTENT)

        assert result.success is False
        assert result.error_code == reason
        assert result.platform_response == {"status_code": status, "apns_id": "apns-9"}

    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_transient_status_is_retryable(self, status: int) -> None:
        adapter, _ = _adapter(
            lambda request: httpx.Response(status, json={"reason": "TooManyRequests"})
        )

        with pytest.raises(DeviceDeliveryError) as exc_info:
            await adapter.send(make_device("tablet", platform="ios"), CONTENT)

        assert exc_info.value.retryable is True
        assert exc_info.value.code == "TooManyRequests"

    async def test_error_without_body_uses_http_code(self) -> None:
        adapter, _ = _adapter(lambda request: httpx.Response(403))

        result = await adapter.send(make_device("tablet", platform="ios"), CONTENT)

        assert result.error_code == "HTTP_403"

    async def test_transport_error_is_retryable(self) -> None:
        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        adapter, _ = _adapter(fail)

        with pytest.raises(DeviceDeliveryError) as exc_info:
            await adapter.send(make_device("tablet", platform="ios"), CONTENT)

        assert exc_info.value.code == "APNS_TRANSPORT_ERROR"

    async def test_missing_token_is_rejected(self) -> None:
        adapter, requests = _adapter(lambda request: httpx.Response(200))
        device = DeviceSnapshot(id="tablet", user_id="user-1", platform="ios")

        result = await adapter.send(device, CONTENT)

        assert result.error_code == "MISSING_DEVICE_TOKEN"
        assert requests == []


def test_topic_required() -> None:
    with pytest.raises(ValueError, match="topic"):
        ApnsDeliveryAdapter("", _token)
