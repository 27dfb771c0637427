"""Notification intake with idempotency guard.

submit() validates a create-notification request, deduplicates it by
idempotency key, persists it and hands it to the dispatch scheduler.

Intake contract:
- A known idempotency key returns the existing id with status "accepted";
  nothing is written and nothing is enqueued
- Concurrent submissions of one key may both try to persist; the loser of
  the unique-key race re-reads and returns the winner's id
- Validation failures raise NotificationValidationError before any write
- submit() returns once the job is stored, not once it has run
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog
from pydantic import ValidationError

from push_dispatch.application.dtos.notification import (
    CreateNotificationRequest,
    SubmitResult,
)
from push_dispatch.application.ports.notification_repository import (
    NotificationRepositoryProtocol,
)
from push_dispatch.application.services.dispatch_scheduler import DispatchScheduler
from push_dispatch.config.dispatch_config import DispatchConfig
from push_dispatch.domain.errors import (
    DuplicateIdempotencyKeyError,
    JobInfrastructureError,
    NotificationValidationError,
)
from push_dispatch.domain.models.notification import (
    Notification,
    NotificationContent,
    NotificationRecipient,
)

logger = structlog.get_logger()

ACCEPTED_STATUS = "accepted"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class NotificationIntakeService:
    """Accepts notification requests exactly once per idempotency key.

    Attributes:
        _repository: Notification persistence.
        _scheduler: Dispatch scheduler for newly accepted notifications.
        _config: Intake defaults (TTL).
        _clock: Time source for created_at.
    """

    def __init__(
        self,
        repository: NotificationRepositoryProtocol,
        scheduler: DispatchScheduler,
        config: DispatchConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._scheduler = scheduler
        self._config = config or DispatchConfig()
        self._clock = clock or _utc_now

    async def submit(
        self,
        request: CreateNotificationRequest | Mapping[str, Any],
    ) -> SubmitResult:
        """Accept a notification request.

        Args:
            request: Validated request model, or a raw mapping to validate.

        Returns:
            SubmitResult with the notification id and status "accepted".

        Raises:
            NotificationValidationError: If the request is malformed.
            JobInfrastructureError: If the job could not be enqueued.
        """
        validated = self._validate(request)
        log = logger.bind(
            idempotency_key=validated.idempotency_key,
            user_id=validated.recipient.user_id,
            priority=validated.priority.value,
            source=validated.source,
        )

        existing = await self._repository.get_by_idempotency_key(validated.idempotency_key)
        if existing is not None:
            log.info("notification_duplicate_submission", notification_id=str(existing.id))
            return SubmitResult(notification_id=str(existing.id), status=ACCEPTED_STATUS)

        notification = self._build_notification(validated)
        try:
            await self._repository.save(notification)
        except DuplicateIdempotencyKeyError:
            winner = await self._repository.get_by_idempotency_key(validated.idempotency_key)
            if winner is None:
                # Key collision without a readable winner is a storage fault
                raise
            log.info(
                "notification_idempotency_race_resolved",
                notification_id=str(winner.id),
                discarded_id=str(notification.id),
            )
            return SubmitResult(notification_id=str(winner.id), status=ACCEPTED_STATUS)

        try:
            await self._scheduler.enqueue(notification)
        except Exception as e:
            log.error(
                "notification_enqueue_failed",
                notification_id=str(notification.id),
                error=str(e),
            )
            raise JobInfrastructureError(
                f"Failed to enqueue notification {notification.id}: {e}",
                notification_id=notification.id,
            ) from e

        log.info(
            "notification_accepted",
            notification_id=str(notification.id),
            expires_at=notification.expires_at.isoformat(),
        )
        return SubmitResult(notification_id=str(notification.id), status=ACCEPTED_STATUS)

    def _validate(
        self,
        request: CreateNotificationRequest | Mapping[str, Any],
    ) -> CreateNotificationRequest:
        if isinstance(request, CreateNotificationRequest):
            return request
        try:
            return CreateNotificationRequest.model_validate(dict(request))
        except ValidationError as e:
            errors = e.errors(include_url=False)
            logger.warning(
                "notification_validation_failed",
                fields=[".".join(str(p) for p in err["loc"]) for err in errors],
            )
            raise NotificationValidationError(
                f"Invalid notification request: {e.error_count()} error(s)",
                errors=[dict(err) for err in errors],
            ) from e

    def _build_notification(self, request: CreateNotificationRequest) -> Notification:
        content = request.notification
        return Notification.create(
            id=self._new_id(),
            recipient=NotificationRecipient(
                user_id=request.recipient.user_id,
                device_ids=tuple(request.recipient.device_ids or ()),
            ),
            priority=request.priority,
            content=NotificationContent(
                title=content.title,
                body=content.body,
                image_url=content.image_url,
                deep_link=content.deep_link,
                data=content.data,
            ),
            source=request.source,
            idempotency_key=request.idempotency_key,
            created_at=self._clock(),
            ttl=request.ttl,
            scheduled_at=request.scheduled_at,
            data=request.data,
            external_id=request.external_id,
            default_ttl_seconds=self._config.default_ttl_seconds,
        )

    def _new_id(self) -> UUID:
        return uuid4()
