"""Domain models for push dispatch."""

from push_dispatch.domain.models.delivery_attempt import (
    DeliveryAttempt,
    DeliveryErrorCode,
    DeliveryStatus,
    DeliveryStatusSummary,
    aggregate_status,
)
from push_dispatch.domain.models.device import (
    DevicePlatform,
    DeviceSnapshot,
    NotificationPreferences,
    QuietHours,
)
from push_dispatch.domain.models.dispatch_job import (
    PROCESS_NOTIFICATION_JOB,
    BackoffPolicy,
    DeadLetterJob,
    DispatchJob,
    JobOptions,
    JobStatus,
)
from push_dispatch.domain.models.notification import (
    DEFAULT_TTL_SECONDS,
    Notification,
    NotificationContent,
    NotificationPriority,
    NotificationRecipient,
)

__all__: list[str] = [
    "DEFAULT_TTL_SECONDS",
    "PROCESS_NOTIFICATION_JOB",
    "BackoffPolicy",
    "DeadLetterJob",
    "DeliveryAttempt",
    "DeliveryErrorCode",
    "DeliveryStatus",
    "DeliveryStatusSummary",
    "DevicePlatform",
    "DeviceSnapshot",
    "DispatchJob",
    "JobOptions",
    "JobStatus",
    "Notification",
    "NotificationContent",
    "NotificationPreferences",
    "NotificationPriority",
    "NotificationRecipient",
    "QuietHours",
    "aggregate_status",
]
