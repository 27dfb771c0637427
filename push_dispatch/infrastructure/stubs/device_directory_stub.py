"""Device directory stub implementation.

In-memory implementation of DeviceDirectoryProtocol for development and
testing. Devices are registered through add_device().
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from push_dispatch.application.ports.device_directory import DeviceDirectoryProtocol
from push_dispatch.domain.models.device import DeviceSnapshot


class DeviceDirectoryStub(DeviceDirectoryProtocol):
    """In-memory stub implementation of DeviceDirectoryProtocol.

    Attributes:
        _devices: Dictionary mapping device id to DeviceSnapshot.
        last_seen: Dictionary mapping device id to its last-seen touch.
    """

    def __init__(self, devices: Sequence[DeviceSnapshot] = ()) -> None:
        self._devices: dict[str, DeviceSnapshot] = {d.id: d for d in devices}
        self.last_seen: dict[str, datetime] = {}
        self._fail_with: Exception | None = None
        self._last_seen_fail_with: Exception | None = None

    async def find_by_id(self, device_id: str) -> DeviceSnapshot | None:
        self._maybe_fail()
        return self._devices.get(device_id)

    async def find_by_ids(self, device_ids: Sequence[str]) -> list[DeviceSnapshot]:
        self._maybe_fail()
        return [self._devices[i] for i in device_ids if i in self._devices]

    async def find_by_user_id(self, user_id: str) -> list[DeviceSnapshot]:
        self._maybe_fail()
        return [d for d in self._devices.values() if d.user_id == user_id]

    async def update_last_seen(self, device_id: str) -> None:
        if self._last_seen_fail_with is not None:
            raise self._last_seen_fail_with
        self.last_seen[device_id] = datetime.now(timezone.utc)

    def _maybe_fail(self) -> None:
        if self._fail_with is not None:
            raise self._fail_with

    # Testing helper methods

    def add_device(self, device: DeviceSnapshot) -> None:
        """Register a device (for testing)."""
        self._devices[device.id] = device

    def set_failure(self, error: Exception | None) -> None:
        """Make lookups raise error (None restores normal behavior)."""
        self._fail_with = error

    def set_last_seen_failure(self, error: Exception | None) -> None:
        """Make update_last_seen raise error (for testing)."""
        self._last_seen_fail_with = error
