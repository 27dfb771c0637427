"""Infrastructure stubs for development and testing.

This module provides in-memory implementations of the application ports
for use in development and testing environments.

Available stubs:
- NotificationRepositoryStub: Notification storage with a unique idempotency key
- DeliveryLedgerStub: Lock-guarded append-only attempt store
- DeviceDirectoryStub: Registered devices with injectable lookup failures
- StubDeliveryAdapter: Push transport with per-device results and errors
- JobQueueStub: Priority-ranked delayed queue with crash retry and DLQ

WARNING: These stubs are NOT for production use.
Production implementations are in push_dispatch/infrastructure/adapters/.
"""

from push_dispatch.infrastructure.stubs.delivery_adapter_stub import (
    SentMessage,
    StubDeliveryAdapter,
)
from push_dispatch.infrastructure.stubs.delivery_ledger_stub import DeliveryLedgerStub
from push_dispatch.infrastructure.stubs.device_directory_stub import DeviceDirectoryStub
from push_dispatch.infrastructure.stubs.job_queue_stub import JobQueueStub
from push_dispatch.infrastructure.stubs.notification_repository_stub import (
    NotificationRepositoryStub,
)

__all__: list[str] = [
    "DeliveryLedgerStub",
    "DeviceDirectoryStub",
    "JobQueueStub",
    "NotificationRepositoryStub",
    "SentMessage",
    "StubDeliveryAdapter",
]
