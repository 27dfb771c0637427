"""Redis job queue.

Implements JobQueueProtocol with redis.asyncio sorted sets so several
worker processes can share one queue.

Key layout (prefix defaults to "push_dispatch:queue"):
- {prefix}:jobs      hash  job id -> JSON job record
- {prefix}:delayed   zset  member -> run_at (epoch ms)
- {prefix}:ready     zset  member -> priority_rank * RANK_STRIDE + ready ms
- {prefix}:leases    zset  member -> lease deadline (epoch ms) of a claimed job
- {prefix}:dlq       hash  dlq id -> JSON dead-letter record
- {prefix}:seq       counter for enqueue order

Members are "<enqueue seq, zero padded>:<job id>", so equal scores fall
back to enqueue order. Claiming pops the best ready member and records its
lease in one script call, so a claimed job is always in either the ready set
or the lease set. A lease that runs out without mark_completed or mark_failed
counts as a crash: the job goes through the same retry or dead-letter path.
Promotion and lease recovery rely on ZREM returning 1 for only one caller.

Completed jobs are removed from the jobs hash.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog
from redis.asyncio import Redis

from push_dispatch.application.ports.job_queue import JobHandler, JobQueueProtocol
from push_dispatch.domain.models.dispatch_job import (
    DeadLetterJob,
    DispatchJob,
    JobOptions,
    JobStatus,
)

logger = structlog.get_logger()

DEFAULT_KEY_PREFIX = "push_dispatch:queue"
# Larger than any epoch-ms timestamp, so rank always dominates ready time
RANK_STRIDE = 10**13
PROMOTE_BATCH_SIZE = 100
DEFAULT_LEASE_MS = 300_000
LEASE_EXPIRED_REASON = "Lease expired before the job was acknowledged"

# KEYS: ready, leases. ARGV: lease deadline ms. Returns the member or nil.
CLAIM_SCRIPT = """
local popped = redis.call("ZPOPMIN", KEYS[1], 1)
if #popped == 0 then
    return nil
end
redis.call("ZADD", KEYS[2], ARGV[1], popped[1])
return popped[1]
"""


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _member(seq: int, job_id: UUID) -> str:
    return f"{seq:016d}:{job_id}"


def _job_id_from_member(member: str) -> UUID:
    return UUID(member.split(":", 1)[1])


class RedisJobQueue(JobQueueProtocol):
    """Redis implementation of JobQueueProtocol.

    Attributes:
        _redis: redis.asyncio client.
        _prefix: Key prefix for every structure of this queue.
        _lease_ms: How long a claimed job may go unacknowledged.
        _handlers: Handlers registered in this process, keyed by job type.
    """

    def __init__(
        self,
        redis: Redis,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], datetime] | None = None,
        lease_ms: int = DEFAULT_LEASE_MS,
    ) -> None:
        if lease_ms < 1:
            raise ValueError(f"lease_ms must be positive, got {lease_ms}")
        self._redis = redis
        self._prefix = key_prefix
        self._clock = clock or _utc_now
        self._lease_ms = lease_ms
        self._claim_script = redis.register_script(CLAIM_SCRIPT)
        self._handlers: dict[str, JobHandler] = {}

    @property
    def _jobs_key(self) -> str:
        return f"{self._prefix}:jobs"

    @property
    def _delayed_key(self) -> str:
        return f"{self._prefix}:delayed"

    @property
    def _ready_key(self) -> str:
        return f"{self._prefix}:ready"

    @property
    def _leases_key(self) -> str:
        return f"{self._prefix}:leases"

    @property
    def _dlq_key(self) -> str:
        return f"{self._prefix}:dlq"

    @property
    def _seq_key(self) -> str:
        return f"{self._prefix}:seq"

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
        seq = int(await self._redis.incr(self._seq_key))

        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hset(self._jobs_key, str(job.id), self._dump(job, seq))
            self._schedule(pipe, job, seq, ready_now=options.delay_ms == 0)
            await pipe.execute()

        logger.debug(
            "job_enqueued",
            job_id=str(job.id),
            job_type=job_type,
            priority_rank=options.priority_rank,
            delay_ms=options.delay_ms,
        )
        return job.id

    def process(self, job_type: str, handler: JobHandler) -> None:
        self._handlers[job_type] = handler

    def get_handler(self, job_type: str) -> JobHandler | None:
        return self._handlers.get(job_type)

    async def claim_next(self) -> DispatchJob | None:
        """Requeue expired leases and due delayed jobs, then claim the best ready job."""
        await self._recover_expired_leases()
        await self._promote_due_jobs()

        while True:
            deadline_ms = _to_ms(self._clock()) + self._lease_ms
            popped = await self._claim_script(
                keys=[self._ready_key, self._leases_key], args=[deadline_ms]
            )
            if popped is None:
                return None
            member = _decode(popped)
            job_id = _job_id_from_member(member)
            record = await self._load(job_id)
            if record is None:
                # Entry without a job record; nothing left to run
                await self._redis.zrem(self._leases_key, member)
                logger.warning("job_record_missing", job_id=str(job_id))
                continue
            job, seq = record
            claimed = job.with_status(JobStatus.PROCESSING)
            await self._redis.hset(self._jobs_key, str(job_id), self._dump(claimed, seq))
            return claimed

    async def mark_completed(self, job_id: UUID) -> None:
        record = await self._load(job_id)
        if record is None:
            raise KeyError(f"Job not found: {job_id}")
        _, seq = record
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zrem(self._leases_key, _member(seq, job_id))
            pipe.hdel(self._jobs_key, str(job_id))
            await pipe.execute()

    async def mark_failed(self, job_id: UUID, reason: str) -> DeadLetterJob | None:
        record = await self._load(job_id)
        if record is None:
            raise KeyError(f"Job not found: {job_id}")
        job, seq = record
        return await self._fail(job, seq, reason)

    async def get_job(self, job_id: UUID) -> DispatchJob | None:
        """Get a pending, processing or retrying job; completed jobs are gone."""
        record = await self._load(job_id)
        return record[0] if record else None

    async def get_dlq_depth(self) -> int:
        return int(await self._redis.hlen(self._dlq_key))

    async def get_dlq_jobs(self) -> list[dict[str, Any]]:
        """Return dead-letter records as dictionaries."""
        raw = await self._redis.hvals(self._dlq_key)
        return [json.loads(_decode(value)) for value in raw]

    async def get_lease_count(self) -> int:
        """Number of claimed jobs not yet acknowledged."""
        return int(await self._redis.zcard(self._leases_key))

    async def _fail(self, job: DispatchJob, seq: int, reason: str) -> DeadLetterJob | None:
        member = _member(seq, job.id)
        now = self._clock()
        backoff_ms = job.options.backoff.delay_for(job.attempts + 1)
        failed_job = job.with_failure(reason, now + timedelta(milliseconds=backoff_ms))

        if failed_job.should_move_to_dlq():
            dlq_job = DeadLetterJob.from_failed_job(uuid4(), failed_job, reason, now)
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hset(self._dlq_key, str(dlq_job.id), json.dumps(dlq_job.to_dict()))
                pipe.hdel(self._jobs_key, str(job.id))
                pipe.zrem(self._leases_key, member)
                await pipe.execute()
            logger.error(
                "job_moved_to_dlq",
                job_id=str(job.id),
                job_type=job.job_type,
                attempts=failed_job.attempts,
                reason=reason,
            )
            return dlq_job

        pending = failed_job.with_status(JobStatus.PENDING)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hset(self._jobs_key, str(job.id), self._dump(pending, seq))
            pipe.zrem(self._leases_key, member)
            self._schedule(pipe, pending, seq, ready_now=backoff_ms == 0)
            await pipe.execute()
        logger.warning(
            "job_retry_scheduled",
            job_id=str(job.id),
            job_type=job.job_type,
            attempts=failed_job.attempts,
            backoff_ms=backoff_ms,
        )
        return None

    async def _recover_expired_leases(self) -> None:
        now_ms = _to_ms(self._clock())
        expired = await self._redis.zrangebyscore(
            self._leases_key, "-inf", now_ms, start=0, num=PROMOTE_BATCH_SIZE
        )
        for raw_member in expired:
            member = _decode(raw_member)
            if await self._redis.zrem(self._leases_key, member) != 1:
                continue
            job_id = _job_id_from_member(member)
            record = await self._load(job_id)
            if record is None:
                continue
            job, seq = record
            logger.warning("job_lease_expired", job_id=str(job_id), job_type=job.job_type)
            await self._fail(job, seq, LEASE_EXPIRED_REASON)

    async def _promote_due_jobs(self) -> None:
        now_ms = _to_ms(self._clock())
        due = await self._redis.zrangebyscore(
            self._delayed_key, "-inf", now_ms, start=0, num=PROMOTE_BATCH_SIZE
        )
        for raw_member in due:
            member = _decode(raw_member)
            if await self._redis.zrem(self._delayed_key, member) != 1:
                continue
            record = await self._load(_job_id_from_member(member))
            if record is None:
                continue
            job, _ = record
            await self._redis.zadd(self._ready_key, {member: self._ready_score(job)})

    def _schedule(self, pipe: Any, job: DispatchJob, seq: int, ready_now: bool) -> None:
        member = _member(seq, job.id)
        if ready_now:
            pipe.zadd(self._ready_key, {member: self._ready_score(job)})
        else:
            pipe.zadd(self._delayed_key, {member: _to_ms(job.run_at)})

    def _ready_score(self, job: DispatchJob) -> int:
        return job.priority_rank * RANK_STRIDE + _to_ms(job.run_at)

    async def _load(self, job_id: UUID) -> tuple[DispatchJob, int] | None:
        raw = await self._redis.hget(self._jobs_key, str(job_id))
        if raw is None:
            return None
        data = json.loads(_decode(raw))
        return DispatchJob.from_dict(data["job"]), int(data["seq"])

    def _dump(self, job: DispatchJob, seq: int) -> str:
        return json.dumps({"job": job.to_dict(), "seq": seq})
