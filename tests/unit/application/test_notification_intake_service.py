"""Unit tests for NotificationIntakeService."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import UUID

import pytest

from push_dispatch.application.dtos.notification import CreateNotificationRequest
from push_dispatch.application.services.dispatch_scheduler import DispatchScheduler
from push_dispatch.application.services.notification_intake_service import (
    NotificationIntakeService,
)
from push_dispatch.config.dispatch_config import TEST_DISPATCH_CONFIG
from push_dispatch.domain.errors import (
    DuplicateIdempotencyKeyError,
    JobInfrastructureError,
    NotificationValidationError,
)
from push_dispatch.domain.models.dispatch_job import PROCESS_NOTIFICATION_JOB
from push_dispatch.domain.models.notification import Notification
from push_dispatch.infrastructure.stubs import JobQueueStub, NotificationRepositoryStub
from tests.helpers import FakeClock, make_request


class RacingRepositoryStub(NotificationRepositoryStub):
    """Repository whose key lookup yields, so concurrent submits interleave."""

    async def get_by_idempotency_key(self, idempotency_key: str) -> Notification | None:
        found = await super().get_by_idempotency_key(idempotency_key)
        await asyncio.sleep(0)
        return found


@pytest.fixture
def repository() -> NotificationRepositoryStub:
    return NotificationRepositoryStub()


@pytest.fixture
def queue(fake_clock: FakeClock) -> JobQueueStub:
    return JobQueueStub(clock=fake_clock)


@pytest.fixture
def service(
    repository: NotificationRepositoryStub,
    queue: JobQueueStub,
    fake_clock: FakeClock,
) -> NotificationIntakeService:
    return NotificationIntakeService(
        repository=repository,
        scheduler=DispatchScheduler(queue, clock=fake_clock),
        config=TEST_DISPATCH_CONFIG,
        clock=fake_clock,
    )


class TestSubmit:
    """Tests for accepting new notifications."""

    async def test_submit_accepts_and_enqueues(
        self,
        service: NotificationIntakeService,
        repository: NotificationRepositoryStub,
        queue: JobQueueStub,
    ) -> None:
        """A new request is persisted and one job is queued for it."""
        result = await service.submit(make_request())

        assert result.status == "accepted"
        stored = await repository.get(UUID(result.notification_id))
        assert stored is not None

        jobs = queue.get_pending_jobs()
        assert len(jobs) == 1
        assert jobs[0].job_type == PROCESS_NOTIFICATION_JOB
        assert jobs[0].payload == {"notification_id": result.notification_id}
        assert jobs[0].priority_rank == 2

    async def test_submit_applies_default_ttl(
        self,
        service: NotificationIntakeService,
        repository: NotificationRepositoryStub,
        fake_clock: FakeClock,
    ) -> None:
        """Without ttl, expires_at uses the configured default TTL."""
        result = await service.submit(make_request())

        stored = await repository.get(UUID(result.notification_id))
        assert stored is not None
        assert stored.created_at == fake_clock()
        assert stored.expires_at == fake_clock() + timedelta(
            seconds=TEST_DISPATCH_CONFIG.default_ttl_seconds
        )

    async def test_submit_accepts_validated_model(
        self,
        service: NotificationIntakeService,
        repository: NotificationRepositoryStub,
    ) -> None:
        request = CreateNotificationRequest.model_validate(make_request(ttl=120))

        result = await service.submit(request)

        stored = await repository.get(UUID(result.notification_id))
        assert stored is not None
        assert stored.ttl == 120

    async def test_submit_keeps_explicit_devices(
        self,
        service: NotificationIntakeService,
        repository: NotificationRepositoryStub,
    ) -> None:
        result = await service.submit(
            make_request(recipient={"user_id": "user-1", "device_ids": ["a", "b"]})
        )

        stored = await repository.get(UUID(result.notification_id))
        assert stored is not None
        assert stored.recipient.device_ids == ("a", "b")


class TestIdempotency:
    """Tests for the idempotency guard."""

    async def test_duplicate_key_returns_same_id(
        self,
        service: NotificationIntakeService,
        repository: NotificationRepositoryStub,
        queue: JobQueueStub,
    ) -> None:
        """Second submit returns the first id; one record, one job."""
        request = make_request(idempotency_key="order-42")

        first = await service.submit(request)
        second = await service.submit(request)

        assert first.notification_id == second.notification_id
        assert second.status == "accepted"
        assert repository.count() == 1
        assert len(queue.get_all_jobs()) == 1

    async def test_duplicate_key_ignores_different_payload(
        self,
        service: NotificationIntakeService,
        repository: NotificationRepositoryStub,
    ) -> None:
        """The key alone decides; the original record is kept."""
        first = await service.submit(make_request(idempotency_key="k"))
        second = await service.submit(
            make_request(
                idempotency_key="k",
                notification={"title": "Different", "body": "Payload"},
            )
        )

        assert first.notification_id == second.notification_id
        stored = await repository.get(UUID(first.notification_id))
        assert stored is not None
        assert stored.content.title == "Order shipped"

    async def test_concurrent_duplicates_converge(
        self,
        queue: JobQueueStub,
        fake_clock: FakeClock,
    ) -> None:
        """Racing submits of one key both return the winner's id."""
        repository = RacingRepositoryStub()
        service = NotificationIntakeService(
            repository=repository,
            scheduler=DispatchScheduler(queue, clock=fake_clock),
            clock=fake_clock,
        )
        request = make_request(idempotency_key="race")

        results = await asyncio.gather(*(service.submit(request) for _ in range(5)))

        assert len({r.notification_id for r in results}) == 1
        assert repository.count() == 1
        assert repository.save_calls > 1
        assert len(queue.get_all_jobs()) == 1

    async def test_collision_without_winner_propagates(self) -> None:
        """A key collision whose winner cannot be read is a storage fault."""
        repository = AsyncMock()
        repository.get_by_idempotency_key.return_value = None
        repository.save.side_effect = DuplicateIdempotencyKeyError("ghost")
        service = NotificationIntakeService(
            repository=repository, scheduler=DispatchScheduler(JobQueueStub())
        )

        with pytest.raises(DuplicateIdempotencyKeyError):
            await service.submit(make_request(idempotency_key="ghost"))


class TestValidation:
    """Tests for rejection of malformed requests."""

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"priority": "urgent"}, "priority"),
            ({"idempotency_key": "  "}, "idempotency_key"),
            ({"source": ""}, "source"),
            ({"notification": {"title": "", "body": "b"}}, "notification.title"),
            ({"notification": {"title": "t"}}, "notification.body"),
            ({"recipient": {"user_id": "u", "device_ids": []}}, "recipient.device_ids"),
            ({"ttl": -1}, "ttl"),
            ({"unexpected": True}, "unexpected"),
        ],
    )
    async def test_invalid_requests_rejected(
        self,
        service: NotificationIntakeService,
        repository: NotificationRepositoryStub,
        queue: JobQueueStub,
        overrides: dict,
        field: str,
    ) -> None:
        with pytest.raises(NotificationValidationError) as exc_info:
            await service.submit(make_request(**overrides))

        assert field in exc_info.value.fields
        assert repository.count() == 0
        assert queue.get_all_jobs() == []

    async def test_missing_idempotency_key(
        self, service: NotificationIntakeService
    ) -> None:
        request = make_request()
        del request["idempotency_key"]

        with pytest.raises(NotificationValidationError) as exc_info:
            await service.submit(request)

        assert "idempotency_key" in exc_info.value.fields


class TestEnqueueFailure:
    """Tests for queue failures during intake."""

    async def test_enqueue_failure_raises_infrastructure_error(
        self,
        repository: NotificationRepositoryStub,
    ) -> None:
        queue = AsyncMock()
        queue.enqueue.side_effect = ConnectionError("queue down")
        service = NotificationIntakeService(
            repository=repository, scheduler=DispatchScheduler(queue)
        )

        with pytest.raises(JobInfrastructureError, match="queue down"):
            await service.submit(make_request())
