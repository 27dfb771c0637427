"""Notification intake and lookup errors.

This module provides exception classes for failures at the edges of the
dispatch pipeline: malformed intake requests, unknown identifiers and
idempotency key collisions at the storage layer.

Error semantics:
- NotificationValidationError: rejected before anything is persisted
- NotificationNotFoundError: unknown id on a direct lookup
- DuplicateIdempotencyKeyError: unique constraint lost at the storage layer;
  intake resolves it by re-reading the winner, callers never see it
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from push_dispatch.domain.exceptions import DispatchError


class NotificationValidationError(DispatchError):
    """Raised when a create-notification request is malformed.

    Attributes:
        errors: Field-level error details (pydantic error dicts).
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable summary.
            errors: Optional list of field errors.
        """
        self.errors = errors or []
        super().__init__(message)

    @property
    def fields(self) -> list[str]:
        """Dotted field locations that failed validation."""
        return [
            ".".join(str(part) for part in error.get("loc", ()))
            for error in self.errors
        ]


class NotificationNotFoundError(DispatchError):
    """Raised when a notification id does not resolve to a record.

    Attributes:
        notification_id: The id that was looked up.
    """

    def __init__(self, notification_id: UUID | str) -> None:
        self.notification_id = notification_id
        super().__init__(f"Notification not found: {notification_id}")


class DuplicateIdempotencyKeyError(DispatchError):
    """Raised by a repository when the idempotency key is already taken.

    Attributes:
        idempotency_key: The colliding key.
    """

    def __init__(self, idempotency_key: str) -> None:
        self.idempotency_key = idempotency_key
        super().__init__(f"Idempotency key already exists: {idempotency_key}")
