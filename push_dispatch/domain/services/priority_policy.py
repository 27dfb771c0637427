"""Priority policy: priority tier -> queue rank, retry budget, base backoff.

Pure lookup over a fixed table. The dispatch scheduler uses it to rank
jobs, the retry coordinator uses it to size backoff and retry budgets.

    priority   rank  max attempts  base delay
    critical   1     10            10 s
    high       2     8             30 s
    medium     3     5             2 min
    low        4     3             5 min
    (unknown)  3     5             1 min
"""

from __future__ import annotations

from dataclasses import dataclass

from push_dispatch.domain.models.dispatch_job import BackoffPolicy, JobOptions
from push_dispatch.domain.models.notification import NotificationPriority


@dataclass(frozen=True)
class DispatchPolicy:
    """Queue and retry parameters for one priority tier.

    Attributes:
        priority_rank: Lower is dequeued first among ready jobs.
        max_attempts: Total attempts allowed for the tier.
        base_delay_ms: Base of the exponential retry backoff.
    """

    priority_rank: int
    max_attempts: int
    base_delay_ms: int

    def job_options(self, delay_ms: int = 0, max_attempts: int | None = None) -> JobOptions:
        """Translate the policy into queue options.

        Args:
            delay_ms: Initial delay before the job becomes ready.
            max_attempts: Override for the crash-retry budget.

        Returns:
            JobOptions with exponential backoff from base_delay_ms.
        """
        return JobOptions(
            priority_rank=self.priority_rank,
            max_attempts=max_attempts if max_attempts is not None else self.max_attempts,
            backoff=BackoffPolicy(type="exponential", delay_ms=self.base_delay_ms),
            delay_ms=delay_ms,
        )


DEFAULT_POLICY = DispatchPolicy(priority_rank=3, max_attempts=5, base_delay_ms=60_000)

PRIORITY_POLICIES: dict[NotificationPriority, DispatchPolicy] = {
    NotificationPriority.CRITICAL: DispatchPolicy(
        priority_rank=1, max_attempts=10, base_delay_ms=10_000
    ),
    NotificationPriority.HIGH: DispatchPolicy(
        priority_rank=2, max_attempts=8, base_delay_ms=30_000
    ),
    NotificationPriority.MEDIUM: DispatchPolicy(
        priority_rank=3, max_attempts=5, base_delay_ms=120_000
    ),
    NotificationPriority.LOW: DispatchPolicy(
        priority_rank=4, max_attempts=3, base_delay_ms=300_000
    ),
}


def policy_for(priority: NotificationPriority | str | None) -> DispatchPolicy:
    """Look up the policy for a priority.

    Accepts the enum or its string value; anything unrecognised gets
    DEFAULT_POLICY.
    """
    if isinstance(priority, NotificationPriority):
        return PRIORITY_POLICIES[priority]
    try:
        return PRIORITY_POLICIES[NotificationPriority(priority)]
    except ValueError:
        return DEFAULT_POLICY
