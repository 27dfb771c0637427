"""Dispatch job domain models for the notification job queue.

This module defines the queue-side models: the job itself, the options
that control its rank and crash-retry budget, and the dead-letter entry a
job becomes once that budget is spent.

Queue semantics:
- Among ready jobs lower priority_rank is served first; equal rank is FIFO
- A handler exception is a crash: the job is re-run after an exponential
  backoff until max_attempts is reached, then moved to the dead letter queue
- Delivery-level retries are separate; they enqueue a fresh job
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

PROCESS_NOTIFICATION_JOB: str = "process_notification"


class JobStatus(Enum):
    """Status of a dispatch job.

    Status transitions:
    PENDING -> PROCESSING -> COMPLETED
                         -> FAILED (retried after backoff, or -> DLQ)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BackoffPolicy:
    """Crash-retry backoff for a job.

    Attributes:
        type: Backoff shape; only "exponential" and "fixed" are understood.
        delay_ms: Base delay in milliseconds.
    """

    type: str = "exponential"
    delay_ms: int = 0

    def delay_for(self, attempts_made: int) -> int:
        """Delay in ms before the next run after attempts_made crashes."""
        if attempts_made < 1:
            return 0
        if self.type == "fixed":
            return self.delay_ms
        return self.delay_ms * (2 ** (attempts_made - 1))


@dataclass(frozen=True)
class JobOptions:
    """Per-job queue options.

    Attributes:
        priority_rank: Lower is served first among ready jobs.
        max_attempts: Crash-retry budget including the first run.
        backoff: Crash-retry backoff policy.
        delay_ms: Delay before the job first becomes ready.
    """

    priority_rank: int
    max_attempts: int
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    delay_ms: int = 0

    def __post_init__(self) -> None:
        if self.priority_rank < 1:
            raise ValueError(f"priority_rank must be >= 1, got {self.priority_rank}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms cannot be negative, got {self.delay_ms}")

    def with_delay(self, delay_ms: int) -> JobOptions:
        """Return a copy of these options with a different initial delay."""
        return replace(self, delay_ms=max(0, delay_ms))

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority_rank": self.priority_rank,
            "max_attempts": self.max_attempts,
            "backoff": {"type": self.backoff.type, "delay_ms": self.backoff.delay_ms},
            "delay_ms": self.delay_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobOptions:
        backoff = data.get("backoff") or {}
        return cls(
            priority_rank=int(data["priority_rank"]),
            max_attempts=int(data["max_attempts"]),
            backoff=BackoffPolicy(
                type=backoff.get("type", "exponential"),
                delay_ms=int(backoff.get("delay_ms", 0)),
            ),
            delay_ms=int(data.get("delay_ms", 0)),
        )


@dataclass(frozen=True, eq=True)
class DispatchJob:
    """A queued unit of work.

    Attributes:
        id: Unique identifier for the job.
        job_type: Handler key (PROCESS_NOTIFICATION_JOB for the worker).
        payload: Job data, {"notification_id": str} for the worker.
        options: Rank, crash-retry budget and backoff.
        run_at: Earliest instant the job may run.
        created_at: When the job was enqueued.
        attempts: Number of runs that ended in a crash.
        last_error: Reason recorded with the last crash.
        status: Current job status.
    """

    id: UUID
    job_type: str
    payload: dict[str, Any]
    options: JobOptions
    run_at: datetime
    created_at: datetime = field(default_factory=_utc_now)
    attempts: int = 0
    last_error: str | None = None
    status: JobStatus = JobStatus.PENDING

    def __post_init__(self) -> None:
        """Validate job fields."""
        if not self.job_type:
            raise ValueError("job_type cannot be empty")
        if self.attempts < 0:
            raise ValueError("attempts cannot be negative")
        if self.run_at.tzinfo is None:
            raise ValueError("run_at must be timezone-aware (UTC)")

    @property
    def priority_rank(self) -> int:
        return self.options.priority_rank

    def with_status(self, new_status: JobStatus) -> DispatchJob:
        """Create new job with updated status."""
        return replace(self, status=new_status)

    def with_failure(self, reason: str, next_run_at: datetime) -> DispatchJob:
        """Create new job recording a crash and its next run instant."""
        return replace(
            self,
            attempts=self.attempts + 1,
            last_error=reason,
            run_at=next_run_at,
            status=JobStatus.FAILED,
        )

    def is_due(self, now: datetime) -> bool:
        """Check if the job is pending and its run_at has passed."""
        return self.status == JobStatus.PENDING and self.run_at <= now

    def should_move_to_dlq(self) -> bool:
        """Check if the crash-retry budget is spent."""
        return self.attempts >= self.options.max_attempts

    def to_dict(self) -> dict[str, Any]:
        """Serialize job to dictionary.

        Uses explicit serialization to handle UUID and datetime properly.
        """
        return {
            "id": str(self.id),
            "job_type": self.job_type,
            "payload": self.payload,
            "options": self.options.to_dict(),
            "run_at": self.run_at.isoformat(),
            "created_at": self.created_at.isoformat(),
            "attempts": self.attempts,
            "last_error": self.last_error,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DispatchJob:
        return cls(
            id=UUID(data["id"]),
            job_type=data["job_type"],
            payload=data["payload"],
            options=JobOptions.from_dict(data["options"]),
            run_at=datetime.fromisoformat(data["run_at"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            attempts=int(data.get("attempts", 0)),
            last_error=data.get("last_error"),
            status=JobStatus(data.get("status", JobStatus.PENDING.value)),
        )


@dataclass(frozen=True, eq=True)
class DeadLetterJob:
    """A job whose crash-retry budget is spent.

    Attributes:
        id: Unique identifier for the DLQ entry.
        original_job_id: The job that failed.
        job_type: Copied job type for independent querying.
        payload: Copied payload for debugging and replay.
        failure_reason: Reason recorded with the final crash.
        failed_at: When the job was moved to the DLQ.
        attempts: Total runs before giving up.
    """

    id: UUID
    original_job_id: UUID
    job_type: str
    payload: dict[str, Any]
    failure_reason: str
    failed_at: datetime = field(default_factory=_utc_now)
    attempts: int = 0

    def __post_init__(self) -> None:
        """Validate dead letter job fields."""
        if not self.job_type:
            raise ValueError("job_type cannot be empty")
        if not self.failure_reason:
            raise ValueError("failure_reason cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "original_job_id": str(self.original_job_id),
            "job_type": self.job_type,
            "payload": self.payload,
            "failure_reason": self.failure_reason,
            "failed_at": self.failed_at.isoformat(),
            "attempts": self.attempts,
        }

    @classmethod
    def from_failed_job(
        cls,
        dlq_id: UUID,
        job: DispatchJob,
        failure_reason: str,
        failed_at: datetime | None = None,
    ) -> DeadLetterJob:
        """Create a DeadLetterJob from a failed DispatchJob.

        Args:
            dlq_id: UUID for the new DLQ entry
            job: The failed DispatchJob
            failure_reason: Why the job ultimately failed
            failed_at: When it was moved (defaults to now)

        Returns:
            New DeadLetterJob instance
        """
        return cls(
            id=dlq_id,
            original_job_id=job.id,
            job_type=job.job_type,
            payload=job.payload,
            failure_reason=failure_reason,
            failed_at=failed_at or _utc_now(),
            attempts=job.attempts,
        )
