"""Job queue stub implementation.

This module provides an in-memory implementation of JobQueueProtocol for
development and testing purposes.

Queue semantics:
- Ready jobs are claimed by (priority_rank, run_at, enqueue order)
- Delayed jobs become ready once the injected clock passes run_at
- Crashed jobs re-run after their exponential backoff, then go to the DLQ
"""

from __future__ import annotations

import itertools
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog

from push_dispatch.application.ports.job_queue import JobHandler, JobQueueProtocol
from push_dispatch.domain.models.dispatch_job import (
    DeadLetterJob,
    DispatchJob,
    JobOptions,
    JobStatus,
)

logger = structlog.get_logger()


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class JobQueueStub(JobQueueProtocol):
    """In-memory stub implementation of JobQueueProtocol.

    This stub stores jobs in memory for development and testing.
    It is NOT suitable for production use.

    Attributes:
        _jobs: Dictionary mapping job.id to DispatchJob
        _dlq: Dictionary mapping dlq entry id to DeadLetterJob
        _sequence: Dictionary mapping job.id to its enqueue order
        _handlers: Dictionary mapping job_type to its registered handler
        _completed_jobs: Set of completed job IDs (for testing)
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize the stub with empty storage.

        Args:
            clock: Optional time source (defaults to UTC now).
        """
        self._clock = clock or _utc_now
        self._jobs: dict[UUID, DispatchJob] = {}
        self._dlq: dict[UUID, DeadLetterJob] = {}
        self._sequence: dict[UUID, int] = {}
        self._counter = itertools.count()
        self._handlers: dict[str, JobHandler] = {}
        self._completed_jobs: set[UUID] = set()

    async def enqueue(
        self,
        job_type: str,
        payload: dict[str, Any],
        options: JobOptions,
    ) -> UUID:
        now = self._clock()
        job = DispatchJob(
            id=uuid4(),
            job_type=job_type,
            payload=dict(payload),
            options=options,
            run_at=now + timedelta(milliseconds=options.delay_ms),
            created_at=now,
        )
        self._jobs[job.id] = job
        self._sequence[job.id] = next(self._counter)
        return job.id

    def process(self, job_type: str, handler: JobHandler) -> None:
        self._handlers[job_type] = handler

    def get_handler(self, job_type: str) -> JobHandler | None:
        return self._handlers.get(job_type)

    async def claim_next(self) -> DispatchJob | None:
        """Claim the ready job with the lowest (rank, run_at, enqueue order)."""
        now = self._clock()
        ready = [job for job in self._jobs.values() if job.is_due(now)]
        if not ready:
            return None
        job = min(
            ready,
            key=lambda j: (j.priority_rank, j.run_at, self._sequence[j.id]),
        )
        claimed = job.with_status(JobStatus.PROCESSING)
        self._jobs[job.id] = claimed
        return claimed

    async def mark_completed(self, job_id: UUID) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(f"Job not found: {job_id}")
        self._jobs[job_id] = job.with_status(JobStatus.COMPLETED)
        self._completed_jobs.add(job_id)

    async def mark_failed(self, job_id: UUID, reason: str) -> DeadLetterJob | None:
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(f"Job not found: {job_id}")

        now = self._clock()
        backoff_ms = job.options.backoff.delay_for(job.attempts + 1)
        failed_job = job.with_failure(reason, now + timedelta(milliseconds=backoff_ms))

        if failed_job.should_move_to_dlq():
            dlq_job = DeadLetterJob.from_failed_job(uuid4(), failed_job, reason, now)
            self._dlq[dlq_job.id] = dlq_job
            del self._jobs[job_id]
            self._sequence.pop(job_id, None)
            logger.error(
                "job_moved_to_dlq",
                job_id=str(job_id),
                job_type=job.job_type,
                attempts=failed_job.attempts,
                reason=reason,
            )
            return dlq_job

        self._jobs[job_id] = failed_job.with_status(JobStatus.PENDING)
        logger.warning(
            "job_retry_scheduled",
            job_id=str(job_id),
            job_type=job.job_type,
            attempts=failed_job.attempts,
            backoff_ms=backoff_ms,
        )
        return None

    async def get_job(self, job_id: UUID) -> DispatchJob | None:
        return self._jobs.get(job_id)

    async def get_dlq_depth(self) -> int:
        return len(self._dlq)

    # Testing helper methods

    def get_pending_jobs(self) -> list[DispatchJob]:
        """Get pending jobs in claim order, ignoring run_at (for testing)."""
        pending = [j for j in self._jobs.values() if j.status == JobStatus.PENDING]
        pending.sort(key=lambda j: (j.priority_rank, j.run_at, self._sequence[j.id]))
        return pending

    def get_all_jobs(self) -> list[DispatchJob]:
        """Get all jobs (for testing)."""
        return list(self._jobs.values())

    def get_dlq_jobs(self) -> list[DeadLetterJob]:
        """Get dead-lettered jobs (for testing)."""
        return list(self._dlq.values())

    def get_completed_jobs(self) -> set[UUID]:
        """Get set of completed job IDs (for testing)."""
        return self._completed_jobs.copy()

    def clear(self) -> None:
        """Clear all jobs and DLQ entries (for testing)."""
        self._jobs.clear()
        self._dlq.clear()
        self._sequence.clear()
        self._completed_jobs.clear()
