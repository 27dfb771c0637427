"""Delivery adapter stub implementation.

Simulates a platform push transport. By default every send succeeds with
a synthetic message id; tests can queue rejections or exceptions per
device.
"""

from __future__ import annotations

from dataclasses import dataclass

from push_dispatch.application.ports.delivery_adapter import (
    DeliveryAdapterProtocol,
    DeliveryResult,
)
from push_dispatch.domain.models.device import DeviceSnapshot
from push_dispatch.domain.models.notification import NotificationContent


@dataclass(frozen=True)
class SentMessage:
    """A send() call captured by the stub."""

    device_id: str
    content: NotificationContent


class StubDeliveryAdapter(DeliveryAdapterProtocol):
    """Configurable in-memory delivery adapter.

    Attributes:
        platform: Label used in synthetic platform responses.
        sent: Every send() call, in order.
    """

    def __init__(self, platform: str = "stub") -> None:
        self.platform = platform
        self.sent: list[SentMessage] = []
        self._results: dict[str, DeliveryResult] = {}
        self._errors: dict[str, Exception] = {}
        self._default_error: Exception | None = None
        self._counter = 0

    async def send(
        self,
        device: DeviceSnapshot,
        content: NotificationContent,
    ) -> DeliveryResult:
        self.sent.append(SentMessage(device_id=device.id, content=content))
        error = self._errors.get(device.id, self._default_error)
        if error is not None:
            raise error
        if device.id in self._results:
            return self._results[device.id]
        self._counter += 1
        return DeliveryResult.delivered(
            {"message_id": f"{self.platform}-{self._counter}"}
        )

    # Testing helper methods

    def set_result(self, device_id: str, result: DeliveryResult) -> None:
        """Return result for every send to device_id."""
        self._results[device_id] = result

    def set_error(self, device_id: str, error: Exception | None) -> None:
        """Raise error for every send to device_id (None clears it)."""
        if error is None:
            self._errors.pop(device_id, None)
        else:
            self._errors[device_id] = error

    def set_default_error(self, error: Exception | None) -> None:
        """Raise error for every send without a per-device override."""
        self._default_error = error

    @property
    def send_count(self) -> int:
        return len(self.sent)

    def sent_to(self, device_id: str) -> list[SentMessage]:
        return [m for m in self.sent if m.device_id == device_id]
