"""Application-layer DTOs."""

from push_dispatch.application.dtos.notification import (
    CreateNotificationRequest,
    DeliveryAttemptResponse,
    NotificationContentRequest,
    NotificationRecipientRequest,
    NotificationStatusResponse,
    SubmitResult,
)

__all__ = [
    "CreateNotificationRequest",
    "DeliveryAttemptResponse",
    "NotificationContentRequest",
    "NotificationRecipientRequest",
    "NotificationStatusResponse",
    "SubmitResult",
]
