"""Delivery and job infrastructure errors.

DeviceDeliveryError is per device: the processor always records it in the
delivery ledger and never lets it escape to the job queue.

JobInfrastructureError covers storage and queue failures while a job is
loading its notification or resolving devices. These propagate so the
queue's crash retry re-runs the whole job.
"""

from __future__ import annotations

from uuid import UUID

from push_dispatch.domain.exceptions import DispatchError


class DeviceDeliveryError(DispatchError):
    """Raised by a delivery adapter when a platform rejects a message.

    Attributes:
        code: Platform or adapter error code recorded in the ledger.
        message: Human-readable reason recorded in the ledger.
        retryable: Whether the platform signalled a transient condition.
    """

    def __init__(self, code: str, message: str, retryable: bool = False) -> None:
        self.code = code
        self.message = message
        self.retryable = retryable
        super().__init__(f"{code}: {message}")


class JobInfrastructureError(DispatchError):
    """Raised when storage or queue access fails while processing a job.

    Attributes:
        notification_id: The notification the job was working on, if known.
    """

    def __init__(self, message: str, notification_id: UUID | str | None = None) -> None:
        self.notification_id = notification_id
        super().__init__(message)


class LedgerContentionError(JobInfrastructureError):
    """Raised when an attempt number could not be claimed after retries."""

    def __init__(self, notification_id: UUID, device_id: str, retries: int) -> None:
        self.device_id = device_id
        self.retries = retries
        super().__init__(
            f"Could not append delivery attempt for notification {notification_id} "
            f"device {device_id} after {retries} retries",
            notification_id=notification_id,
        )
