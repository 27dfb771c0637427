"""Notification domain model.

A Notification is created exactly once by intake and never mutated
afterwards. Workers and status queries only read it.

Lifecycle:
- created_at is stamped at intake
- expires_at = created_at + (ttl or DEFAULT_TTL_SECONDS)
- scheduled_at, when in the future, delays the first dispatch
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from uuid import UUID

DEFAULT_TTL_SECONDS: int = 24 * 60 * 60


class NotificationPriority(str, Enum):
    """Priority tier of a notification.

    Values:
        CRITICAL: Served first, largest retry budget.
        HIGH: Time-sensitive user notifications.
        MEDIUM: Default tier.
        LOW: Digest-style notifications, smallest retry budget.
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True, eq=True)
class NotificationContent:
    """What the end user sees on the device."""

    title: str
    body: str
    image_url: str | None = None
    deep_link: str | None = None
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize content for adapters and persistence."""
        return {
            "title": self.title,
            "body": self.body,
            "image_url": self.image_url,
            "deep_link": self.deep_link,
            "data": self.data,
        }


@dataclass(frozen=True, eq=True)
class NotificationRecipient:
    """Who receives the notification.

    Attributes:
        user_id: Owner of the target devices.
        device_ids: Explicit device targets; when empty every device
            of user_id is targeted.
    """

    user_id: str
    device_ids: tuple[str, ...] = ()

    @property
    def targets_explicit_devices(self) -> bool:
        """True when the request names specific devices."""
        return len(self.device_ids) > 0

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "device_ids": list(self.device_ids)}


@dataclass(frozen=True, eq=True)
class Notification:
    """A push notification accepted by intake.

    Attributes:
        id: Unique identifier.
        recipient: Target user and optional explicit devices.
        priority: Priority tier (drives queue rank and retry budget).
        content: Title, body and optional rich fields.
        source: Service or system that submitted the notification.
        idempotency_key: Caller-supplied deduplication token (unique).
        expires_at: Instant after which delivery is abandoned.
        created_at: Instant the notification was accepted.
        ttl: Requested time-to-live in seconds, if any.
        scheduled_at: Earliest dispatch instant, if any.
        data: Additional payload forwarded to the device.
        external_id: Caller reference, opaque to the pipeline.
    """

    id: UUID
    recipient: NotificationRecipient
    priority: NotificationPriority
    content: NotificationContent
    source: str
    idempotency_key: str
    expires_at: datetime
    created_at: datetime = field(default_factory=_utc_now)
    ttl: int | None = None
    scheduled_at: datetime | None = None
    data: dict[str, Any] | None = None
    external_id: str | None = None

    def __post_init__(self) -> None:
        """Validate notification fields."""
        if not self.idempotency_key:
            raise ValueError("idempotency_key cannot be empty")
        if not self.recipient.user_id:
            raise ValueError("recipient.user_id cannot be empty")
        if self.expires_at.tzinfo is None:
            raise ValueError("expires_at must be timezone-aware (UTC)")
        if self.created_at.tzinfo is None:
            raise ValueError("created_at must be timezone-aware (UTC)")
        if self.scheduled_at is not None and self.scheduled_at.tzinfo is None:
            raise ValueError("scheduled_at must be timezone-aware (UTC)")

    @classmethod
    def create(
        cls,
        id: UUID,
        recipient: NotificationRecipient,
        priority: NotificationPriority,
        content: NotificationContent,
        source: str,
        idempotency_key: str,
        created_at: datetime,
        ttl: int | None = None,
        scheduled_at: datetime | None = None,
        data: dict[str, Any] | None = None,
        external_id: str | None = None,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> Notification:
        """Build a new notification, computing expires_at from the TTL.

        A ttl of 0 (or None) falls back to default_ttl_seconds.

        Returns:
            New Notification instance.
        """
        effective_ttl = ttl or default_ttl_seconds
        return cls(
            id=id,
            recipient=recipient,
            priority=priority,
            content=content,
            source=source,
            idempotency_key=idempotency_key,
            expires_at=created_at + timedelta(seconds=effective_ttl),
            created_at=created_at,
            ttl=ttl,
            scheduled_at=scheduled_at,
            data=data,
            external_id=external_id,
        )

    def is_expired(self, now: datetime) -> bool:
        """Check whether the notification's TTL has elapsed at now."""
        return now > self.expires_at

    def is_scheduled_for_later(self, now: datetime) -> bool:
        """Check whether the first dispatch must wait for scheduled_at."""
        return self.scheduled_at is not None and self.scheduled_at > now

    def to_dict(self) -> dict[str, Any]:
        """Serialize notification to a dictionary.

        Uses explicit serialization to handle UUID and datetime properly.
        """
        return {
            "id": str(self.id),
            "recipient": self.recipient.to_dict(),
            "priority": self.priority.value,
            "notification": self.content.to_dict(),
            "source": self.source,
            "idempotency_key": self.idempotency_key,
            "ttl": self.ttl,
            "scheduled_at": (
                self.scheduled_at.isoformat() if self.scheduled_at else None
            ),
            "expires_at": self.expires_at.isoformat(),
            "created_at": self.created_at.isoformat(),
            "data": self.data,
            "external_id": self.external_id,
        }
