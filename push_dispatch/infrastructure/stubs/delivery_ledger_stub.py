"""Delivery ledger stub implementation.

In-memory implementation of DeliveryLedgerProtocol for development and
testing. The read-max-then-append sequence runs under an asyncio.Lock, the
in-memory equivalent of an atomically incrementing counter, so concurrent
record_attempt() calls for one pair never produce gaps or duplicates.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from push_dispatch.application.ports.delivery_ledger import DeliveryLedgerProtocol
from push_dispatch.domain.models.delivery_attempt import (
    DeliveryAttempt,
    DeliveryStatus,
    DeliveryStatusSummary,
    aggregate_status,
)


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class DeliveryLedgerStub(DeliveryLedgerProtocol):
    """In-memory stub implementation of DeliveryLedgerProtocol.

    This stub is NOT suitable for production use.

    Attributes:
        _attempts: Append-only list of every recorded attempt.
        _clock: Source of attempted_at timestamps.
        _fail_with: Exception raised by record_attempt (for testing).
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize the stub with empty storage.

        Args:
            clock: Optional time source for attempted_at (defaults to UTC now).
        """
        self._attempts: list[DeliveryAttempt] = []
        self._clock = clock or _utc_now
        self._lock = asyncio.Lock()
        self._fail_with: Exception | None = None

    async def record_attempt(
        self,
        notification_id: UUID,
        device_id: str,
        status: DeliveryStatus,
        platform_response: dict[str, Any] | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> DeliveryAttempt:
        """Append the next attempt for (notification_id, device_id)."""
        if self._fail_with is not None:
            raise self._fail_with

        async with self._lock:
            last_number = max(
                (
                    a.attempt_number
                    for a in self._attempts
                    if a.notification_id == notification_id and a.device_id == device_id
                ),
                default=0,
            )
            # Yield so unlocked writers would interleave here
            await asyncio.sleep(0)
            attempt = DeliveryAttempt(
                id=uuid4(),
                notification_id=notification_id,
                device_id=device_id,
                attempt_number=last_number + 1,
                status=status,
                platform_response=platform_response,
                error_code=error_code,
                error_message=error_message,
                attempted_at=self._clock(),
            )
            self._attempts.append(attempt)
        return attempt

    async def get_attempts(self, notification_id: UUID) -> list[DeliveryAttempt]:
        attempts = [a for a in self._attempts if a.notification_id == notification_id]
        attempts.sort(key=lambda a: a.attempted_at)
        return attempts

    async def get_status(self, notification_id: UUID) -> DeliveryStatusSummary:
        return aggregate_status(await self.get_attempts(notification_id))

    async def delivered_device_ids(self, notification_id: UUID) -> set[str]:
        return {
            a.device_id
            for a in self._attempts
            if a.notification_id == notification_id
            and a.status == DeliveryStatus.DELIVERED
        }

    # Testing helper methods

    def set_failure(self, error: Exception | None) -> None:
        """Make record_attempt raise error (None restores normal behavior)."""
        self._fail_with = error

    def get_all_attempts(self) -> list[DeliveryAttempt]:
        """Get every attempt in append order (for testing)."""
        return list(self._attempts)

    def attempts_for(self, notification_id: UUID, device_id: str) -> list[DeliveryAttempt]:
        """Get attempts of one pair ordered by attempt_number (for testing)."""
        return sorted(
            (
                a
                for a in self._attempts
                if a.notification_id == notification_id and a.device_id == device_id
            ),
            key=lambda a: a.attempt_number,
        )

    def clear(self) -> None:
        """Clear all attempts (for testing)."""
        self._attempts.clear()
        self._fail_with = None
