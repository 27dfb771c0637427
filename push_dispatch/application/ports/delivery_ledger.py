"""Delivery ledger port.

The ledger is an append-only store of delivery attempts plus the status
aggregation derived from them.

Storage constraints:
- attempt_number = 1 + max(existing for the pair), computed and appended
  atomically so concurrent writers for one (notification, device) pair
  never produce gaps or duplicates
- attempts are never updated or deleted
"""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

from push_dispatch.domain.models.delivery_attempt import (
    DeliveryAttempt,
    DeliveryStatus,
    DeliveryStatusSummary,
)


class DeliveryLedgerProtocol(Protocol):
    """Protocol for the append-only delivery attempt store."""

    async def record_attempt(
        self,
        notification_id: UUID,
        device_id: str,
        status: DeliveryStatus,
        platform_response: dict[str, Any] | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> DeliveryAttempt:
        """Append the next attempt for (notification_id, device_id).

        Returns:
            The stored DeliveryAttempt with its assigned attempt_number.

        Raises:
            LedgerContentionError: If the attempt number could not be
                claimed within the configured retries.
        """
        ...

    async def get_attempts(self, notification_id: UUID) -> list[DeliveryAttempt]:
        """Return every attempt for a notification, ordered by attempted_at."""
        ...

    async def get_status(self, notification_id: UUID) -> DeliveryStatusSummary:
        """Aggregate the notification's attempts into an overall status."""
        ...

    async def delivered_device_ids(self, notification_id: UUID) -> set[str]:
        """Return the devices that already have a delivered attempt."""
        ...
