"""Notification repository stub implementation.

In-memory implementation of NotificationRepositoryProtocol for development
and testing. Enforces the unique idempotency key the way a database
unique index would.
"""

from __future__ import annotations

import asyncio
from uuid import UUID

from push_dispatch.application.ports.notification_repository import (
    NotificationRepositoryProtocol,
)
from push_dispatch.domain.errors import DuplicateIdempotencyKeyError
from push_dispatch.domain.models.notification import Notification


class NotificationRepositoryStub(NotificationRepositoryProtocol):
    """In-memory stub implementation of NotificationRepositoryProtocol.

    This stub is NOT suitable for production use.

    Attributes:
        _notifications: Dictionary mapping notification.id to Notification.
        _by_key: Dictionary mapping idempotency_key to notification.id.
    """

    def __init__(self) -> None:
        """Initialize the stub with empty storage."""
        self._notifications: dict[UUID, Notification] = {}
        self._by_key: dict[str, UUID] = {}
        # Simulates the unique index check-and-insert
        self._lock = asyncio.Lock()
        self.save_calls = 0

    async def save(self, notification: Notification) -> None:
        """Save a new notification.

        Raises:
            DuplicateIdempotencyKeyError: If the idempotency key is taken.
            ValueError: If notification.id already exists.
        """
        self.save_calls += 1
        async with self._lock:
            if notification.idempotency_key in self._by_key:
                raise DuplicateIdempotencyKeyError(notification.idempotency_key)
            if notification.id in self._notifications:
                raise ValueError(f"Notification already exists: {notification.id}")
            self._notifications[notification.id] = notification
            self._by_key[notification.idempotency_key] = notification.id

    async def get(self, notification_id: UUID) -> Notification | None:
        return self._notifications.get(notification_id)

    async def get_by_idempotency_key(self, idempotency_key: str) -> Notification | None:
        notification_id = self._by_key.get(idempotency_key)
        if notification_id is None:
            return None
        return self._notifications.get(notification_id)

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Notification]:
        matching = [
            n for n in self._notifications.values() if n.recipient.user_id == user_id
        ]
        matching.sort(key=lambda n: n.created_at, reverse=True)
        return matching[offset : offset + limit]

    # Testing helper methods

    def add(self, notification: Notification) -> None:
        """Insert a notification directly, bypassing save() (for testing)."""
        self._notifications[notification.id] = notification
        self._by_key[notification.idempotency_key] = notification.id

    def count(self) -> int:
        """Get count of stored notifications (for testing)."""
        return len(self._notifications)

    def clear(self) -> None:
        """Clear all stored notifications (for testing)."""
        self._notifications.clear()
        self._by_key.clear()
        self.save_calls = 0
