"""Delivery adapter port for platform push transports.

One adapter per platform sits behind the same send() contract. The
processor dispatches on DeviceSnapshot.platform and never knows the wire
protocol of FCM, APNs or anything else.

Adapters report platform rejections either by returning an unsuccessful
DeliveryResult or by raising DeviceDeliveryError; both end up as a failed
ledger entry with the adapter's code and message.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from push_dispatch.domain.models.device import DeviceSnapshot
from push_dispatch.domain.models.notification import NotificationContent


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one send() call.

    Attributes:
        success: Whether the platform accepted the message.
        platform_response: Opaque platform response (message id etc.).
        error_code: Platform error code when success is False.
        error_message: Platform error detail when success is False.
    """

    success: bool
    platform_response: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def delivered(cls, platform_response: dict[str, Any] | None = None) -> DeliveryResult:
        return cls(success=True, platform_response=platform_response)

    @classmethod
    def rejected(
        cls,
        error_code: str,
        error_message: str,
        platform_response: dict[str, Any] | None = None,
    ) -> DeliveryResult:
        return cls(
            success=False,
            platform_response=platform_response,
            error_code=error_code,
            error_message=error_message,
        )


class DeliveryAdapterProtocol(Protocol):
    """Protocol for a platform push transport."""

    async def send(
        self,
        device: DeviceSnapshot,
        content: NotificationContent,
    ) -> DeliveryResult:
        """Send content to one device.

        Args:
            device: Target device snapshot (token, platform).
            content: Title, body and optional rich fields.

        Returns:
            DeliveryResult describing the platform's answer.

        Raises:
            DeviceDeliveryError: If the platform rejected the message.
        """
        ...
