"""Unit tests for JobQueueStub."""

from uuid import uuid4

import pytest

from push_dispatch.domain.models.dispatch_job import BackoffPolicy, JobOptions, JobStatus
from push_dispatch.infrastructure.stubs import JobQueueStub
from tests.helpers import FakeClock


def _options(**overrides) -> JobOptions:
    values = {"priority_rank": 3, "max_attempts": 5}
    values.update(overrides)
    return JobOptions(**values)


@pytest.fixture
def queue(fake_clock: FakeClock) -> JobQueueStub:
    return JobQueueStub(clock=fake_clock)


class TestClaimOrder:
    """Ready jobs are claimed by rank, then FIFO."""

    async def test_rank_then_fifo(self, queue: JobQueueStub) -> None:
        low = await queue.enqueue(
            "process_notification", {"n": "low"}, _options(priority_rank=4)
        )
        first_high = await queue.enqueue(
            "process_notification", {"n": "h1"}, _options(priority_rank=2)
        )
        second_high = await queue.enqueue(
            "process_notification", {"n": "h2"}, _options(priority_rank=2)
        )

        claimed = [(await queue.claim_next()).id for _ in range(3)]

        assert claimed == [first_high, second_high, low]
        assert await queue.claim_next() is None

    async def test_claimed_job_is_processing(self, queue: JobQueueStub) -> None:
        job_id = await queue.enqueue("process_notification", {}, _options())

        job = await queue.claim_next()

        assert job is not None
        assert job.id == job_id
        assert job.status == JobStatus.PROCESSING

    async def test_delayed_job_waits(self, queue: JobQueueStub, fake_clock: FakeClock) -> None:
        await queue.enqueue("process_notification", {}, _options(delay_ms=5_000))

        assert await queue.claim_next() is None
        fake_clock.advance(milliseconds=5_000)
        assert await queue.claim_next() is not None


class TestCrashRetry:
    """Handler crashes re-run the job after backoff, then dead-letter it."""

    async def test_failed_job_rescheduled_with_backoff(
        self, queue: JobQueueStub, fake_clock: FakeClock
    ) -> None:
        job_id = await queue.enqueue(
            "process_notification",
            {},
            _options(max_attempts=3, backoff=BackoffPolicy(type="exponential", delay_ms=1_000)),
        )
        await queue.claim_next()

        dead = await queue.mark_failed(job_id, "RuntimeError: boom")

        assert dead is None
        job = await queue.get_job(job_id)
        assert job is not None
        assert job.attempts == 1
        assert job.last_error == "RuntimeError: boom"
        assert job.status == JobStatus.PENDING
        assert await queue.claim_next() is None
        fake_clock.advance(milliseconds=1_000)
        assert await queue.claim_next() is not None

    async def test_exhausted_job_moves_to_dlq(self, queue: JobQueueStub) -> None:
        job_id = await queue.enqueue(
            "process_notification",
            {"notification_id": "n-1"},
            _options(max_attempts=1),
        )
        await queue.claim_next()

        dead = await queue.mark_failed(job_id, "RuntimeError: boom")

        assert dead is not None
        assert dead.original_job_id == job_id
        assert await queue.get_job(job_id) is None
        assert await queue.get_dlq_depth() == 1

    async def test_mark_completed(self, queue: JobQueueStub) -> None:
        job_id = await queue.enqueue("process_notification", {}, _options())
        await queue.claim_next()

        await queue.mark_completed(job_id)

        assert job_id in queue.get_completed_jobs()
        assert (await queue.get_job(job_id)).status == JobStatus.COMPLETED

    async def test_unknown_job_raises(self, queue: JobQueueStub) -> None:
        with pytest.raises(KeyError):
            await queue.mark_completed(uuid4())
        with pytest.raises(KeyError):
            await queue.mark_failed(uuid4(), "reason")


async def test_handler_registry(queue: JobQueueStub) -> None:
    async def handler(job) -> None:
        return None

    queue.process("process_notification", handler)

    assert queue.get_handler("process_notification") is handler
    assert queue.get_handler("other") is None
