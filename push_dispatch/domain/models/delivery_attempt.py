"""Delivery attempt domain model and status aggregation.

A DeliveryAttempt is one recorded outcome of trying to deliver a
notification to one device. Attempts are append-only: the ledger creates
one per try and never mutates it.

Invariants:
- attempt_number starts at 1 per (notification_id, device_id)
- attempt_number is strictly increasing with no gaps or duplicates
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID


class DeliveryStatus(str, Enum):
    """Outcome of a single delivery attempt."""

    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    EXPIRED = "expired"


class DeliveryErrorCode(str, Enum):
    """Error codes the processor itself writes to the ledger.

    Adapters may record their own platform codes in addition to these.
    """

    NOTIFICATIONS_DISABLED = "NOTIFICATIONS_DISABLED"
    QUIET_HOURS = "QUIET_HOURS"
    UNKNOWN_PLATFORM = "UNKNOWN_PLATFORM"
    PROCESSING_ERROR = "PROCESSING_ERROR"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True, eq=True)
class DeliveryAttempt:
    """One try at delivering a notification to a device.

    Attributes:
        id: Unique identifier of the attempt.
        notification_id: The notification being delivered.
        device_id: The target device.
        attempt_number: Position in the per-(notification, device) sequence.
        status: Outcome of the attempt.
        platform_response: Opaque response from the push platform.
        error_code: Machine-readable failure reason.
        error_message: Human-readable failure reason.
        attempted_at: When the attempt was recorded.
    """

    id: UUID
    notification_id: UUID
    device_id: str
    attempt_number: int
    status: DeliveryStatus
    platform_response: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None
    attempted_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        """Validate attempt fields."""
        if self.attempt_number < 1:
            raise ValueError(
                f"attempt_number must be >= 1, got {self.attempt_number}"
            )
        if not self.device_id:
            raise ValueError("device_id cannot be empty")

    def to_summary_dict(self) -> dict[str, Any]:
        """Serialize the fields exposed by status queries."""
        return {
            "device_id": self.device_id,
            "attempt_number": self.attempt_number,
            "status": self.status.value,
            "attempted_at": self.attempted_at.isoformat(),
            "error_code": self.error_code,
        }


@dataclass(frozen=True)
class DeliveryStatusSummary:
    """Aggregated delivery status of one notification.

    Attributes:
        status: Overall status derived from every attempt.
        processed_at: attempted_at of the chronologically last attempt.
        attempts: All attempts ordered by attempted_at.
    """

    status: DeliveryStatus
    processed_at: datetime | None
    attempts: tuple[DeliveryAttempt, ...] = ()


def aggregate_status(attempts: Sequence[DeliveryAttempt]) -> DeliveryStatusSummary:
    """Derive a notification's overall status from its attempts.

    Precedence:
        delivered if any attempt was delivered, else failed if every
        attempt failed, else expired if any attempt expired, else pending
        (which includes the no-attempts case).

    Args:
        attempts: Attempts for a single notification, any order.

    Returns:
        DeliveryStatusSummary with attempts sorted by attempted_at.
    """
    ordered = tuple(sorted(attempts, key=lambda a: a.attempted_at))
    if not ordered:
        return DeliveryStatusSummary(status=DeliveryStatus.PENDING, processed_at=None)

    statuses = [attempt.status for attempt in ordered]
    if DeliveryStatus.DELIVERED in statuses:
        overall = DeliveryStatus.DELIVERED
    elif all(s == DeliveryStatus.FAILED for s in statuses):
        overall = DeliveryStatus.FAILED
    elif DeliveryStatus.EXPIRED in statuses:
        overall = DeliveryStatus.EXPIRED
    else:
        overall = DeliveryStatus.PENDING

    return DeliveryStatusSummary(
        status=overall,
        processed_at=ordered[-1].attempted_at,
        attempts=ordered,
    )
