"""Dispatch scheduler: turns a persisted notification into one queued job.

Immediate notifications are enqueued ready; notifications whose
scheduled_at lies in the future are enqueued with delay
scheduled_at - now. Either way the job carries the priority's rank and
crash-retry options. Enqueueing never runs the job.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime, timezone
from uuid import UUID

import structlog

from push_dispatch.application.ports.job_queue import JobQueueProtocol
from push_dispatch.domain.models.dispatch_job import PROCESS_NOTIFICATION_JOB
from push_dispatch.domain.models.notification import Notification
from push_dispatch.domain.services.priority_policy import policy_for

logger = structlog.get_logger()


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class DispatchScheduler:
    """Enqueues notifications for the worker."""

    def __init__(
        self,
        job_queue: JobQueueProtocol,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            job_queue: Queue receiving process_notification jobs.
            clock: Optional time source (defaults to UTC now).
        """
        self._job_queue = job_queue
        self._clock = clock or _utc_now

    async def enqueue(self, notification: Notification) -> UUID:
        """Enqueue a process_notification job for the notification.

        Returns:
            UUID of the queued job.
        """
        now = self._clock()
        policy = policy_for(notification.priority)
        delay_ms = 0
        if notification.scheduled_at is not None and notification.is_scheduled_for_later(now):
            delay_ms = math.ceil((notification.scheduled_at - now).total_seconds() * 1000)

        job_id = await self._job_queue.enqueue(
            PROCESS_NOTIFICATION_JOB,
            {"notification_id": str(notification.id)},
            policy.job_options(delay_ms=delay_ms),
        )

        if delay_ms:
            logger.info(
                "notification_scheduled",
                notification_id=str(notification.id),
                job_id=str(job_id),
                scheduled_at=notification.scheduled_at.isoformat()
                if notification.scheduled_at
                else None,
                delay_ms=delay_ms,
                priority_rank=policy.priority_rank,
            )
        else:
            logger.info(
                "notification_queued",
                notification_id=str(notification.id),
                job_id=str(job_id),
                priority_rank=policy.priority_rank,
            )
        return job_id
