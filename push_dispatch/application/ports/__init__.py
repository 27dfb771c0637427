"""Application ports - Abstract interfaces for infrastructure adapters.

This module defines the contracts that infrastructure adapters must implement.
Ports enable dependency inversion and make the application layer testable.

Available ports:
- NotificationRepositoryProtocol: Notification persistence with unique idempotency keys
- DeliveryLedgerProtocol: Append-only delivery attempt store
- DeviceDirectoryProtocol: Read access to registered devices
- DeliveryAdapterProtocol: Platform push transport (FCM, APNs, ...)
- JobQueueProtocol: Priority-ranked delayed job queue
"""

from push_dispatch.application.ports.delivery_adapter import (
    DeliveryAdapterProtocol,
    DeliveryResult,
)
from push_dispatch.application.ports.delivery_ledger import DeliveryLedgerProtocol
from push_dispatch.application.ports.device_directory import DeviceDirectoryProtocol
from push_dispatch.application.ports.job_queue import JobHandler, JobQueueProtocol
from push_dispatch.application.ports.notification_repository import (
    NotificationRepositoryProtocol,
)

__all__: list[str] = [
    "DeliveryAdapterProtocol",
    "DeliveryLedgerProtocol",
    "DeliveryResult",
    "DeviceDirectoryProtocol",
    "JobHandler",
    "JobQueueProtocol",
    "NotificationRepositoryProtocol",
]
