"""Notification DTOs for the application layer.

Pydantic models describing what intake accepts and what status queries
return. Intake validates raw mappings into CreateNotificationRequest and
converts pydantic errors into NotificationValidationError.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from push_dispatch.domain.models.notification import NotificationPriority


def _require_text(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value


class NotificationContentRequest(BaseModel):
    """Displayed content of a notification."""

    model_config = ConfigDict(extra="forbid")

    title: str
    body: str
    image_url: str | None = None
    deep_link: str | None = None
    data: dict[str, Any] | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _require_text(v, "title")

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        return _require_text(v, "body")


class NotificationRecipientRequest(BaseModel):
    """Target user and optional explicit devices."""

    model_config = ConfigDict(extra="forbid")

    user_id: str
    device_ids: list[str] | None = Field(
        default=None,
        description="Specific devices to target; all user devices when omitted",
    )

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        return _require_text(v, "user_id")

    @field_validator("device_ids")
    @classmethod
    def validate_device_ids(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        if len(v) < 1:
            raise ValueError("device_ids must contain at least one device id")
        for device_id in v:
            _require_text(device_id, "device_ids entry")
        return v


class CreateNotificationRequest(BaseModel):
    """Request accepted by NotificationIntakeService.submit()."""

    model_config = ConfigDict(extra="forbid")

    recipient: NotificationRecipientRequest
    priority: NotificationPriority
    notification: NotificationContentRequest
    source: str
    idempotency_key: str
    data: dict[str, Any] | None = None
    ttl: int | None = Field(default=None, ge=0, description="Time-to-live in seconds")
    scheduled_at: datetime | None = None
    external_id: str | None = None

    @field_validator("idempotency_key")
    @classmethod
    def validate_idempotency_key(cls, v: str) -> str:
        return _require_text(v, "idempotency_key")

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str) -> str:
        return _require_text(v, "source")

    @field_validator("scheduled_at")
    @classmethod
    def validate_scheduled_at(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class SubmitResult(BaseModel):
    """Response of submit(); status is always "accepted"."""

    notification_id: str
    status: str = "accepted"


class DeliveryAttemptResponse(BaseModel):
    """One ledger entry as exposed by status queries."""

    device_id: str
    attempt_number: int
    status: str
    attempted_at: datetime
    error_code: str | None = None


class NotificationStatusResponse(BaseModel):
    """Response of get_status()."""

    notification_id: str
    status: str
    created_at: datetime
    processed_at: datetime | None = None
    delivery_attempts: list[DeliveryAttemptResponse] = Field(default_factory=list)
