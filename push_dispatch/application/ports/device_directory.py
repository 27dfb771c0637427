"""Device directory port.

Device registration and profile storage live outside the dispatch
pipeline. The pipeline only reads device snapshots and touches last-seen.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from push_dispatch.domain.models.device import DeviceSnapshot


class DeviceDirectoryProtocol(Protocol):
    """Protocol for read access to registered devices."""

    async def find_by_id(self, device_id: str) -> DeviceSnapshot | None:
        """Return one device, or None if it is not registered."""
        ...

    async def find_by_ids(self, device_ids: Sequence[str]) -> list[DeviceSnapshot]:
        """Return the registered devices among device_ids; unknown ids are skipped."""
        ...

    async def find_by_user_id(self, user_id: str) -> list[DeviceSnapshot]:
        """Return every device owned by user_id."""
        ...

    async def update_last_seen(self, device_id: str) -> None:
        """Record that the pipeline just reached the device."""
        ...
