"""Integration tests for RedisJobQueue."""

from typing import Any

import pytest

from push_dispatch.domain.models.dispatch_job import BackoffPolicy, JobOptions, JobStatus
from push_dispatch.infrastructure.adapters.queue import RedisJobQueue
from tests.helpers import FakeClock

pytestmark = pytest.mark.integration

LEASE_MS = 60_000


def _options(**overrides: Any) -> JobOptions:
    values: dict[str, Any] = {
        "priority_rank": 3,
        "max_attempts": 2,
        "backoff": BackoffPolicy(type="exponential", delay_ms=1_000),
    }
    values.update(overrides)
    return JobOptions(**values)


@pytest.fixture
def queue(redis_client, fake_clock: FakeClock) -> RedisJobQueue:
    return RedisJobQueue(
        redis_client, key_prefix="test:queue", clock=fake_clock, lease_ms=LEASE_MS
    )


async def test_rank_then_fifo(queue: RedisJobQueue) -> None:
    low = await queue.enqueue("process_notification", {"n": "low"}, _options(priority_rank=4))
    first = await queue.enqueue("process_notification", {"n": "a"}, _options(priority_rank=1))
    second = await queue.enqueue("process_notification", {"n": "b"}, _options(priority_rank=1))

    claimed = [(await queue.claim_next()).id for _ in range(3)]

    assert claimed == [first, second, low]
    assert await queue.claim_next() is None


async def test_payload_and_status_round_trip(queue: RedisJobQueue) -> None:
    job_id = await queue.enqueue(
        "process_notification", {"notification_id": "n-1"}, _options()
    )

    job = await queue.claim_next()

    assert job is not None
    assert job.id == job_id
    assert job.payload == {"notification_id": "n-1"}
    assert job.status == JobStatus.PROCESSING
    assert (await queue.get_job(job_id)).status == JobStatus.PROCESSING


async def test_delayed_job_promoted_when_due(
    queue: RedisJobQueue, fake_clock: FakeClock
) -> None:
    await queue.enqueue("process_notification", {}, _options(delay_ms=30_000))

    assert await queue.claim_next() is None
    fake_clock.advance(seconds=30)
    assert await queue.claim_next() is not None


async def test_crash_retry_then_dead_letter(
    queue: RedisJobQueue, fake_clock: FakeClock
) -> None:
    job_id = await queue.enqueue(
        "process_notification", {"notification_id": "n-2"}, _options()
    )

    await queue.claim_next()
    assert await queue.mark_failed(job_id, "RuntimeError: boom") is None
    assert await queue.claim_next() is None
    fake_clock.advance(seconds=1)
    assert (await queue.claim_next()).attempts == 1

    dead = await queue.mark_failed(job_id, "RuntimeError: boom again")

    assert dead is not None
    assert dead.attempts == 2
    assert await queue.get_job(job_id) is None
    assert await queue.get_dlq_depth() == 1
    [record] = await queue.get_dlq_jobs()
    assert record["payload"] == {"notification_id": "n-2"}
    assert record["failure_reason"] == "RuntimeError: boom again"


async def test_completed_job_record_is_removed(
    queue: RedisJobQueue, redis_client
) -> None:
    job_id = await queue.enqueue("process_notification", {}, _options())
    await queue.claim_next()

    await queue.mark_completed(job_id)

    assert await queue.get_job(job_id) is None
    assert await redis_client.hlen("test:queue:jobs") == 0
    assert await queue.get_lease_count() == 0
    with pytest.raises(KeyError):
        await queue.mark_completed(job_id)


async def test_claim_records_lease_until_acknowledged(queue: RedisJobQueue) -> None:
    job_id = await queue.enqueue("process_notification", {}, _options())

    await queue.claim_next()
    assert await queue.get_lease_count() == 1

    await queue.mark_failed(job_id, "RuntimeError: boom")
    assert await queue.get_lease_count() == 0


async def test_unacknowledged_job_is_claimed_again_after_lease(
    queue: RedisJobQueue, fake_clock: FakeClock
) -> None:
    job_id = await queue.enqueue(
        "process_notification", {"notification_id": "n-3"}, _options(max_attempts=3)
    )
    await queue.claim_next()

    fake_clock.advance(milliseconds=LEASE_MS - 1)
    assert await queue.claim_next() is None

    fake_clock.advance(milliseconds=1)
    assert await queue.claim_next() is None
    requeued = await queue.get_job(job_id)
    assert requeued.status == JobStatus.PENDING
    assert requeued.attempts == 1
    assert requeued.last_error == "Lease expired before the job was acknowledged"

    fake_clock.advance(seconds=1)
    reclaimed = await queue.claim_next()

    assert reclaimed is not None
    assert reclaimed.id == job_id
    assert reclaimed.payload == {"notification_id": "n-3"}
    assert await queue.get_lease_count() == 1


async def test_expired_lease_counts_against_budget(
    queue: RedisJobQueue, fake_clock: FakeClock
) -> None:
    job_id = await queue.enqueue("process_notification", {}, _options(max_attempts=1))
    await queue.claim_next()

    fake_clock.advance(milliseconds=LEASE_MS)

    assert await queue.claim_next() is None
    assert await queue.get_job(job_id) is None
    assert await queue.get_dlq_depth() == 1
    assert await queue.get_lease_count() == 0


async def test_late_ack_after_lease_expiry(
    queue: RedisJobQueue, fake_clock: FakeClock
) -> None:
    """A slow worker acknowledging after recovery does not leave a runnable ghost."""
    job_id = await queue.enqueue("process_notification", {}, _options())
    await queue.claim_next()
    fake_clock.advance(milliseconds=LEASE_MS)
    assert await queue.claim_next() is None

    await queue.mark_completed(job_id)
    fake_clock.advance(seconds=1)

    assert await queue.get_job(job_id) is None
    assert await queue.claim_next() is None
