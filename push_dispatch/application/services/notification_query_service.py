"""Read-side queries over notifications and their delivery ledger."""

from __future__ import annotations

from uuid import UUID

import structlog

from push_dispatch.application.dtos.notification import (
    DeliveryAttemptResponse,
    NotificationStatusResponse,
)
from push_dispatch.application.ports.delivery_ledger import DeliveryLedgerProtocol
from push_dispatch.application.ports.notification_repository import (
    NotificationRepositoryProtocol,
)
from push_dispatch.domain.errors import NotificationNotFoundError
from push_dispatch.domain.models.notification import Notification

logger = structlog.get_logger()

DEFAULT_LIST_LIMIT = 100


class NotificationQueryService:
    """Status and lookup queries.

    Attributes:
        _repository: Notification persistence.
        _ledger: Delivery attempt store.
    """

    def __init__(
        self,
        repository: NotificationRepositoryProtocol,
        ledger: DeliveryLedgerProtocol,
    ) -> None:
        self._repository = repository
        self._ledger = ledger

    async def get_status(self, notification_id: UUID) -> NotificationStatusResponse:
        """Return the aggregated delivery status of a notification.

        The status is recomputed from the ledger on every call; a
        notification without attempts (not yet processed, expired before
        processing, or without devices) reports "pending".

        Raises:
            NotificationNotFoundError: If the notification doesn't exist.
        """
        notification = await self.get_notification(notification_id)
        summary = await self._ledger.get_status(notification_id)

        logger.debug(
            "notification_status_queried",
            notification_id=str(notification_id),
            status=summary.status.value,
            attempts=len(summary.attempts),
        )
        return NotificationStatusResponse(
            notification_id=str(notification.id),
            status=summary.status.value,
            created_at=notification.created_at,
            processed_at=summary.processed_at,
            delivery_attempts=[
                DeliveryAttemptResponse(
                    device_id=attempt.device_id,
                    attempt_number=attempt.attempt_number,
                    status=attempt.status.value,
                    attempted_at=attempt.attempted_at,
                    error_code=attempt.error_code,
                )
                for attempt in summary.attempts
            ],
        )

    async def get_notification(self, notification_id: UUID) -> Notification:
        """Look up one notification.

        Raises:
            NotificationNotFoundError: If the notification doesn't exist.
        """
        notification = await self._repository.get(notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        return notification

    async def list_for_user(
        self,
        user_id: str,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> list[Notification]:
        """List a user's notifications, newest first."""
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        if offset < 0:
            raise ValueError(f"offset must be non-negative, got {offset}")
        return await self._repository.list_by_user(user_id, limit=limit, offset=offset)
