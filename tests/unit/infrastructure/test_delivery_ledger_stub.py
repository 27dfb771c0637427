"""Unit tests for DeliveryLedgerStub."""

import asyncio
from uuid import uuid4

import pytest

from push_dispatch.domain.models.delivery_attempt import DeliveryStatus
from push_dispatch.infrastructure.stubs import DeliveryLedgerStub
from tests.helpers import FakeClock


@pytest.fixture
def ledger(fake_clock: FakeClock) -> DeliveryLedgerStub:
    return DeliveryLedgerStub(clock=fake_clock)


class TestRecordAttempt:
    """Tests for attempt numbering."""

    async def test_first_attempt_is_one(self, ledger: DeliveryLedgerStub) -> None:
        attempt = await ledger.record_attempt(uuid4(), "phone", DeliveryStatus.DELIVERED)

        assert attempt.attempt_number == 1

    async def test_sequences_are_per_device(self, ledger: DeliveryLedgerStub) -> None:
        notification_id = uuid4()
        await ledger.record_attempt(notification_id, "phone", DeliveryStatus.FAILED)
        await ledger.record_attempt(notification_id, "phone", DeliveryStatus.FAILED)

        tablet = await ledger.record_attempt(notification_id, "tablet", DeliveryStatus.FAILED)

        assert tablet.attempt_number == 1

    async def test_concurrent_writers_get_contiguous_numbers(
        self, ledger: DeliveryLedgerStub
    ) -> None:
        """Racing writers for one pair produce 1..n with no gaps or duplicates."""
        notification_id = uuid4()

        attempts = await asyncio.gather(
            *(
                ledger.record_attempt(notification_id, "phone", DeliveryStatus.FAILED)
                for _ in range(20)
            )
        )

        assert sorted(a.attempt_number for a in attempts) == list(range(1, 21))

    async def test_records_clock_time_and_details(
        self, ledger: DeliveryLedgerStub, fake_clock: FakeClock
    ) -> None:
        attempt = await ledger.record_attempt(
            uuid4(),
            "phone",
            DeliveryStatus.FAILED,
            platform_response={"status_code": 404},
            error_code="UNREGISTERED",
            error_message="gone",
        )

        assert attempt.attempted_at == fake_clock()
        assert attempt.platform_response == {"status_code": 404}
        assert attempt.error_code == "UNREGISTERED"
        assert attempt.error_message == "gone"

    async def test_injected_failure_raises(self, ledger: DeliveryLedgerStub) -> None:
        ledger.set_failure(ConnectionError("down"))

        with pytest.raises(ConnectionError):
            await ledger.record_attempt(uuid4(), "phone", DeliveryStatus.FAILED)


class TestQueries:
    """Tests for ledger reads."""

    async def test_attempts_ordered_by_time(
        self, ledger: DeliveryLedgerStub, fake_clock: FakeClock
    ) -> None:
        notification_id = uuid4()
        await ledger.record_attempt(notification_id, "tablet", DeliveryStatus.FAILED)
        fake_clock.advance(seconds=5)
        await ledger.record_attempt(notification_id, "phone", DeliveryStatus.DELIVERED)
        await ledger.record_attempt(uuid4(), "phone", DeliveryStatus.DELIVERED)

        attempts = await ledger.get_attempts(notification_id)

        assert [a.device_id for a in attempts] == ["tablet", "phone"]

    async def test_status_summary(
        self, ledger: DeliveryLedgerStub, fake_clock: FakeClock
    ) -> None:
        notification_id = uuid4()
        await ledger.record_attempt(notification_id, "phone", DeliveryStatus.FAILED)
        fake_clock.advance(seconds=5)
        await ledger.record_attempt(notification_id, "phone", DeliveryStatus.DELIVERED)

        summary = await ledger.get_status(notification_id)

        assert summary.status == DeliveryStatus.DELIVERED
        assert summary.processed_at == fake_clock()

    async def test_delivered_device_ids(self, ledger: DeliveryLedgerStub) -> None:
        notification_id = uuid4()
        await ledger.record_attempt(notification_id, "phone", DeliveryStatus.DELIVERED)
        await ledger.record_attempt(notification_id, "tablet", DeliveryStatus.FAILED)

        assert await ledger.delivered_device_ids(notification_id) == {"phone"}
