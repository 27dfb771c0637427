"""PostgreSQL delivery ledger.

Implements DeliveryLedgerProtocol on the append-only delivery_attempts
table. The next attempt number is computed inside the INSERT itself
(max + 1 for the pair); two concurrent writers computing the same number
collide on uq_delivery_attempts_sequence and the loser retries with a
fresh read. Numbers therefore stay gapless and unique per pair.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from push_dispatch.application.ports.delivery_ledger import DeliveryLedgerProtocol
from push_dispatch.domain.errors import LedgerContentionError
from push_dispatch.domain.models.delivery_attempt import (
    DeliveryAttempt,
    DeliveryStatus,
    DeliveryStatusSummary,
    aggregate_status,
)

logger = get_logger()

SEQUENCE_CONSTRAINT = "uq_delivery_attempts_sequence"
DEFAULT_MAX_RETRIES = 5


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class PostgresDeliveryLedger(DeliveryLedgerProtocol):
    """PostgreSQL implementation of DeliveryLedgerProtocol.

    Attributes:
        _session_factory: SQLAlchemy async session factory for DB access.
        _max_retries: Attempts to claim a sequence number before giving up.
        _clock: Source of attempted_at timestamps.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self._session_factory = session_factory
        self._max_retries = max_retries
        self._clock = clock or _utc_now

    async def record_attempt(
        self,
        notification_id: UUID,
        device_id: str,
        status: DeliveryStatus,
        platform_response: dict[str, Any] | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> DeliveryAttempt:
        """Append the next attempt for (notification_id, device_id).

        Raises:
            LedgerContentionError: If every try lost the sequence race.
        """
        for retry in range(self._max_retries):
            attempt_id = uuid4()
            attempted_at = self._clock()
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        result = await session.execute(
                            text("""
                                INSERT INTO delivery_attempts (
                                    id, notification_id, device_id, attempt_number,
                                    status, platform_response, error_code,
                                    error_message, attempted_at
                                )
                                SELECT
                                    CAST(:id AS UUID), CAST(:notification_id AS UUID),
                                    CAST(:device_id AS TEXT),
                                    COALESCE(MAX(attempt_number), 0) + 1,
                                    CAST(:status AS TEXT), CAST(:platform_response AS JSONB),
                                    CAST(:error_code AS TEXT), CAST(:error_message AS TEXT),
                                    CAST(:attempted_at AS TIMESTAMPTZ)
                                FROM delivery_attempts
                                WHERE notification_id = :notification_id
                                  AND device_id = :device_id
                                RETURNING attempt_number
                            """),
                            {
                                "id": attempt_id,
                                "notification_id": notification_id,
                                "device_id": device_id,
                                "status": status.value,
                                "platform_response": (
                                    json.dumps(platform_response)
                                    if platform_response is not None
                                    else None
                                ),
                                "error_code": error_code,
                                "error_message": error_message,
                                "attempted_at": attempted_at,
                            },
                        )
                        attempt_number = result.scalar_one()
            except IntegrityError as e:
                if SEQUENCE_CONSTRAINT not in str(e.orig):
                    raise
                logger.debug(
                    "ledger_sequence_conflict",
                    notification_id=str(notification_id),
                    device_id=device_id,
                    retry=retry + 1,
                )
                continue

            return DeliveryAttempt(
                id=attempt_id,
                notification_id=notification_id,
                device_id=device_id,
                attempt_number=attempt_number,
                status=status,
                platform_response=platform_response,
                error_code=error_code,
                error_message=error_message,
                attempted_at=attempted_at,
            )

        logger.error(
            "ledger_contention_exhausted",
            notification_id=str(notification_id),
            device_id=device_id,
            retries=self._max_retries,
        )
        raise LedgerContentionError(notification_id, device_id, self._max_retries)

    async def get_attempts(self, notification_id: UUID) -> list[DeliveryAttempt]:
        async with self._session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT id, notification_id, device_id, attempt_number, status,
                           platform_response, error_code, error_message, attempted_at
                    FROM delivery_attempts
                    WHERE notification_id = :notification_id
                    ORDER BY attempted_at, device_id, attempt_number
                """),
                {"notification_id": notification_id},
            )
            rows = result.mappings().fetchall()
        return [self._row_to_attempt(row) for row in rows]

    async def get_status(self, notification_id: UUID) -> DeliveryStatusSummary:
        return aggregate_status(await self.get_attempts(notification_id))

    async def delivered_device_ids(self, notification_id: UUID) -> set[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT DISTINCT device_id
                    FROM delivery_attempts
                    WHERE notification_id = :notification_id
                      AND status = :status
                """),
                {
                    "notification_id": notification_id,
                    "status": DeliveryStatus.DELIVERED.value,
                },
            )
            return {row[0] for row in result.fetchall()}

    def _row_to_attempt(self, row: Any) -> DeliveryAttempt:
        response = row["platform_response"]
        if isinstance(response, str):
            response = json.loads(response)
        return DeliveryAttempt(
            id=row["id"],
            notification_id=row["notification_id"],
            device_id=row["device_id"],
            attempt_number=row["attempt_number"],
            status=DeliveryStatus(row["status"]),
            platform_response=response,
            error_code=row["error_code"],
            error_message=row["error_message"],
            attempted_at=row["attempted_at"],
        )
