"""Domain errors for push dispatch.

Provides specific exception classes for different failure scenarios.
All exceptions inherit from DispatchError.
"""

from push_dispatch.domain.errors.delivery import (
    DeviceDeliveryError,
    JobInfrastructureError,
    LedgerContentionError,
)
from push_dispatch.domain.errors.notification import (
    DuplicateIdempotencyKeyError,
    NotificationNotFoundError,
    NotificationValidationError,
)

__all__: list[str] = [
    "DeviceDeliveryError",
    "DuplicateIdempotencyKeyError",
    "JobInfrastructureError",
    "LedgerContentionError",
    "NotificationNotFoundError",
    "NotificationValidationError",
]
