"""Unit tests for NotificationQueryService."""

from datetime import timedelta
from uuid import uuid4

import pytest

from push_dispatch.application.services.notification_query_service import (
    NotificationQueryService,
)
from push_dispatch.domain.errors import NotificationNotFoundError
from push_dispatch.domain.models.delivery_attempt import DeliveryStatus
from push_dispatch.infrastructure.stubs import (
    DeliveryLedgerStub,
    NotificationRepositoryStub,
)
from tests.helpers import FakeClock, make_notification


@pytest.fixture
def repository() -> NotificationRepositoryStub:
    return NotificationRepositoryStub()


@pytest.fixture
def ledger(fake_clock: FakeClock) -> DeliveryLedgerStub:
    return DeliveryLedgerStub(clock=fake_clock)


@pytest.fixture
def service(
    repository: NotificationRepositoryStub, ledger: DeliveryLedgerStub
) -> NotificationQueryService:
    return NotificationQueryService(repository, ledger)


class TestGetStatus:
    """Tests for aggregated status queries."""

    async def test_unknown_notification_raises(
        self, service: NotificationQueryService
    ) -> None:
        missing = uuid4()

        with pytest.raises(NotificationNotFoundError) as exc_info:
            await service.get_status(missing)

        assert exc_info.value.notification_id == missing

    async def test_without_attempts_is_pending(
        self,
        service: NotificationQueryService,
        repository: NotificationRepositoryStub,
        fake_clock: FakeClock,
    ) -> None:
        notification = make_notification(created_at=fake_clock())
        repository.add(notification)

        status = await service.get_status(notification.id)

        assert status.notification_id == str(notification.id)
        assert status.status == "pending"
        assert status.created_at == notification.created_at
        assert status.processed_at is None
        assert status.delivery_attempts == []

    async def test_delivered_wins_over_failures(
        self,
        service: NotificationQueryService,
        repository: NotificationRepositoryStub,
        ledger: DeliveryLedgerStub,
        fake_clock: FakeClock,
    ) -> None:
        notification = make_notification(created_at=fake_clock())
        repository.add(notification)
        await ledger.record_attempt(
            notification.id, "phone", DeliveryStatus.FAILED, error_code="QUIET_HOURS"
        )
        fake_clock.advance(seconds=30)
        await ledger.record_attempt(notification.id, "tablet", DeliveryStatus.DELIVERED)

        status = await service.get_status(notification.id)

        assert status.status == "delivered"
        assert status.processed_at == fake_clock()
        assert [
            (a.device_id, a.attempt_number, a.status, a.error_code)
            for a in status.delivery_attempts
        ] == [
            ("phone", 1, "failed", "QUIET_HOURS"),
            ("tablet", 1, "delivered", None),
        ]

    async def test_all_failed_is_failed(
        self,
        service: NotificationQueryService,
        repository: NotificationRepositoryStub,
        ledger: DeliveryLedgerStub,
        fake_clock: FakeClock,
    ) -> None:
        notification = make_notification(created_at=fake_clock())
        repository.add(notification)
        for _ in range(2):
            await ledger.record_attempt(
                notification.id, "phone", DeliveryStatus.FAILED, error_code="UNAVAILABLE"
            )
            fake_clock.advance(seconds=10)

        status = await service.get_status(notification.id)

        assert status.status == "failed"
        assert [a.attempt_number for a in status.delivery_attempts] == [1, 2]

    async def test_status_is_serializable(
        self,
        service: NotificationQueryService,
        repository: NotificationRepositoryStub,
        ledger: DeliveryLedgerStub,
        fake_clock: FakeClock,
    ) -> None:
        notification = make_notification(created_at=fake_clock())
        repository.add(notification)
        await ledger.record_attempt(notification.id, "phone", DeliveryStatus.DELIVERED)

        payload = (await service.get_status(notification.id)).model_dump(mode="json")

        assert payload["status"] == "delivered"
        assert payload["delivery_attempts"][0]["attempted_at"].startswith("2026-01-15T12:00")


class TestListForUser:
    """Tests for per-user listing."""

    async def test_newest_first_with_pagination(
        self,
        service: NotificationQueryService,
        repository: NotificationRepositoryStub,
        fake_clock: FakeClock,
    ) -> None:
        created = []
        for minutes in range(3):
            notification = make_notification(
                created_at=fake_clock() + timedelta(minutes=minutes)
            )
            repository.add(notification)
            created.append(notification)
        repository.add(make_notification(user_id="user-2", created_at=fake_clock()))

        first_page = await service.list_for_user("user-1", limit=2)
        second_page = await service.list_for_user("user-1", limit=2, offset=2)

        assert [n.id for n in first_page] == [created[2].id, created[1].id]
        assert [n.id for n in second_page] == [created[0].id]

    @pytest.mark.parametrize(("limit", "offset"), [(0, 0), (10, -1)])
    async def test_rejects_bad_paging(
        self, service: NotificationQueryService, limit: int, offset: int
    ) -> None:
        with pytest.raises(ValueError):
            await service.list_for_user("user-1", limit=limit, offset=offset)

    async def test_get_notification_raises_for_unknown_id(
        self, service: NotificationQueryService
    ) -> None:
        with pytest.raises(NotificationNotFoundError):
            await service.get_notification(uuid4())
