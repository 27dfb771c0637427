"""Notification repository port.

Defines the persistence contract for accepted notifications.

Storage constraints:
- idempotency_key is unique; save() raises DuplicateIdempotencyKeyError
  when a concurrent writer already holds the key
- records are immutable once saved
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from push_dispatch.domain.models.notification import Notification


class NotificationRepositoryProtocol(Protocol):
    """Protocol for notification persistence.

    Implementations may use PostgreSQL, in-memory storage, or other
    backends.
    """

    async def save(self, notification: Notification) -> None:
        """Persist a new notification.

        Args:
            notification: The notification to store.

        Raises:
            DuplicateIdempotencyKeyError: If the idempotency key is taken.
        """
        ...

    async def get(self, notification_id: UUID) -> Notification | None:
        """Retrieve a notification by id, or None if unknown."""
        ...

    async def get_by_idempotency_key(self, idempotency_key: str) -> Notification | None:
        """Retrieve the notification holding an idempotency key, if any."""
        ...

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Notification]:
        """List a user's notifications, newest first.

        Args:
            user_id: Recipient user id.
            limit: Maximum number of notifications to return.
            offset: Number of notifications to skip.
        """
        ...
