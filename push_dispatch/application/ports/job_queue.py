"""Job queue port for notification dispatch.

This module defines the abstract interface of the queue that carries
process_notification jobs from intake (and the retry coordinator) to the
worker.

Queue semantics:
- enqueue() only stores the job; it never runs a handler
- among ready jobs lower priority_rank first, equal rank FIFO
- a handler exception is a crash: mark_failed() re-schedules the job
  with its exponential backoff until max_attempts, then dead-letters it
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol
from uuid import UUID

from push_dispatch.domain.models.dispatch_job import (
    DeadLetterJob,
    DispatchJob,
    JobOptions,
)

JobHandler = Callable[[DispatchJob], Awaitable[Any]]


class JobQueueProtocol(Protocol):
    """Protocol for the dispatch job queue.

    Methods:
        enqueue: Store a job, ready now or after options.delay_ms
        process: Register the handler for a job type
        get_handler: Look up the handler registered for a job type
        claim_next: Claim the best ready job for processing
        mark_completed: Mark a claimed job as done
        mark_failed: Record a crash (retry with backoff or dead-letter)
        get_job: Look up a job by id
        get_dlq_depth: Count of dead-lettered jobs
    """

    async def enqueue(
        self,
        job_type: str,
        payload: dict[str, Any],
        options: JobOptions,
    ) -> UUID:
        """Store a new job.

        Args:
            job_type: Handler key for the job.
            payload: Job data ({"notification_id": str} for the worker).
            options: Rank, crash-retry budget, backoff and initial delay.

        Returns:
            UUID of the newly enqueued job.
        """
        ...

    def process(self, job_type: str, handler: JobHandler) -> None:
        """Register the handler that runs jobs of job_type."""
        ...

    def get_handler(self, job_type: str) -> JobHandler | None:
        """Return the handler registered for job_type, if any."""
        ...

    async def claim_next(self) -> DispatchJob | None:
        """Claim the ready job with the lowest rank (FIFO within a rank).

        Sets the job status to PROCESSING. Two concurrent callers never
        claim the same job. Queues shared between processes re-run a
        claimed job whose worker never acknowledges it.

        Returns:
            The claimed job, or None if nothing is ready.
        """
        ...

    async def mark_completed(self, job_id: UUID) -> None:
        """Mark a claimed job as successfully completed.

        Queues shared between processes drop the job record here.

        Raises:
            KeyError: If the job doesn't exist.
        """
        ...

    async def mark_failed(self, job_id: UUID, reason: str) -> DeadLetterJob | None:
        """Record a crash of a claimed job.

        Returns:
            DeadLetterJob if the job's budget is spent, None if it was
            re-scheduled after its backoff.

        Raises:
            KeyError: If the job doesn't exist.
        """
        ...

    async def get_job(self, job_id: UUID) -> DispatchJob | None:
        """Get a job by id."""
        ...

    async def get_dlq_depth(self) -> int:
        """Get count of jobs in the dead letter queue."""
        ...
