"""Retry coordinator for delivery-level retries.

Re-enqueues a notification after a delivery failure pattern has been
observed. This is separate from the queue's own crash retry, which re-runs
a job whose handler raised.

Backoff:
    delay = base_delay(priority) * 2 ** (attempt_number - 1)
    jitter = delay * U(0, jitter_ratio)
    final = floor(delay + jitter)

Jitter spreads retries of notifications sharing a priority tier so they
do not hit the push platforms in lockstep.
"""

from __future__ import annotations

import math
import random
from collections.abc import Callable
from uuid import UUID

import structlog

from push_dispatch.application.ports.job_queue import JobQueueProtocol
from push_dispatch.domain.models.dispatch_job import PROCESS_NOTIFICATION_JOB
from push_dispatch.domain.models.notification import NotificationPriority
from push_dispatch.domain.services.priority_policy import policy_for

logger = structlog.get_logger()

DEFAULT_JITTER_RATIO: float = 0.3


class RetryCoordinator:
    """Computes retry backoff and re-enqueues notifications.

    Attributes:
        _job_queue: Queue receiving retry jobs.
        _jitter_source: Returns a float in [0, 1); scaled by jitter_ratio.
        _jitter_ratio: Upper bound of the jitter as a fraction of the delay.
    """

    def __init__(
        self,
        job_queue: JobQueueProtocol,
        jitter_source: Callable[[], float] = random.random,
        jitter_ratio: float = DEFAULT_JITTER_RATIO,
    ) -> None:
        """Initialize the retry coordinator.

        Args:
            job_queue: Queue receiving retry jobs.
            jitter_source: Uniform [0, 1) source (injectable for tests).
            jitter_ratio: Upper bound of the jitter fraction.
        """
        if not 0 <= jitter_ratio <= 1:
            raise ValueError(f"jitter_ratio must be within [0, 1], got {jitter_ratio}")
        self._job_queue = job_queue
        self._jitter_source = jitter_source
        self._jitter_ratio = jitter_ratio

    def calculate_backoff_delay(
        self,
        priority: NotificationPriority | str,
        attempt_number: int,
    ) -> int:
        """Calculate the delay in milliseconds before retry attempt_number.

        Args:
            priority: Priority tier of the notification.
            attempt_number: The attempt that just failed (1-based).

        Returns:
            floor(base * 2^(attempt-1) * (1 + U(0, jitter_ratio))).

        Raises:
            ValueError: If attempt_number < 1.
        """
        _require_positive_attempt(attempt_number)
        delay = policy_for(priority).base_delay_ms * (2 ** (attempt_number - 1))
        jitter = delay * self._jitter_ratio * self._jitter_source()
        return math.floor(delay + jitter)

    def should_retry(self, priority: NotificationPriority | str, attempt_number: int) -> bool:
        """Check whether another attempt fits in the priority's budget."""
        return attempt_number < policy_for(priority).max_attempts

    async def schedule_retry(
        self,
        notification_id: UUID,
        priority: NotificationPriority | str,
        attempt_number: int,
    ) -> UUID:
        """Re-enqueue a notification after a failed attempt.

        The job carries the backoff delay, the priority's rank and the
        remaining budget max_attempts - attempt_number.

        Args:
            notification_id: The notification to retry.
            priority: Its priority tier.
            attempt_number: The attempt that just failed (1-based).

        Returns:
            UUID of the retry job.

        Raises:
            ValueError: If attempt_number < 1 or the budget is spent.
        """
        _require_positive_attempt(attempt_number)
        policy = policy_for(priority)
        remaining = policy.max_attempts - attempt_number
        if remaining < 1:
            raise ValueError(
                f"Retry budget spent: attempt {attempt_number} of {policy.max_attempts}"
            )

        delay_ms = self.calculate_backoff_delay(priority, attempt_number)
        job_id = await self._job_queue.enqueue(
            PROCESS_NOTIFICATION_JOB,
            {"notification_id": str(notification_id)},
            policy.job_options(delay_ms=delay_ms, max_attempts=remaining),
        )

        logger.info(
            "notification_retry_scheduled",
            notification_id=str(notification_id),
            priority=_priority_value(priority),
            attempt_number=attempt_number,
            delay_ms=delay_ms,
            remaining_attempts=remaining,
            job_id=str(job_id),
        )
        return job_id

    async def retry_or_exhaust(
        self,
        notification_id: UUID,
        priority: NotificationPriority | str,
        attempt_number: int,
    ) -> UUID | None:
        """Schedule a retry if the budget allows, otherwise give up.

        Returns:
            The retry job id, or None when the budget is exhausted and the
            notification stays failed.
        """
        if self.should_retry(priority, attempt_number):
            return await self.schedule_retry(notification_id, priority, attempt_number)

        logger.warning(
            "retry_budget_exhausted",
            notification_id=str(notification_id),
            priority=_priority_value(priority),
            attempt_number=attempt_number,
            max_attempts=policy_for(priority).max_attempts,
        )
        return None


def _require_positive_attempt(attempt_number: int) -> None:
    if attempt_number < 1:
        raise ValueError(f"attempt_number must be >= 1, got {attempt_number}")


def _priority_value(priority: NotificationPriority | str) -> str:
    if isinstance(priority, NotificationPriority):
        return priority.value
    return str(priority)
