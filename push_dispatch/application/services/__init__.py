"""Application services - Use case orchestration.

This module contains application services that orchestrate domain
operations and coordinate with infrastructure adapters.

Available services:
- NotificationIntakeService: Validated, idempotent notification intake
- DispatchScheduler: Enqueues accepted notifications with rank and delay
- NotificationProcessor: Per-job expiry, device fan-out, gating and delivery
- RetryCoordinator: Jittered exponential delivery-level retries
- NotificationQueryService: Aggregated status and notification lookups
"""

from push_dispatch.application.services.dispatch_scheduler import DispatchScheduler
from push_dispatch.application.services.notification_intake_service import (
    NotificationIntakeService,
)
from push_dispatch.application.services.notification_processor import (
    NotificationProcessor,
    ProcessingOutcome,
    ProcessingResult,
)
from push_dispatch.application.services.notification_query_service import (
    NotificationQueryService,
)
from push_dispatch.application.services.retry_coordinator import RetryCoordinator

__all__: list[str] = [
    "DispatchScheduler",
    "NotificationIntakeService",
    "NotificationProcessor",
    "NotificationQueryService",
    "ProcessingOutcome",
    "ProcessingResult",
    "RetryCoordinator",
]
