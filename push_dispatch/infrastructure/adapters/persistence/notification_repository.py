"""PostgreSQL notification repository.

Implements NotificationRepositoryProtocol on the notifications table.
The unique constraint on idempotency_key is the arbiter of concurrent
intake: a losing INSERT surfaces as DuplicateIdempotencyKeyError.
"""

from __future__ import annotations

import json
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from push_dispatch.application.ports.notification_repository import (
    NotificationRepositoryProtocol,
)
from push_dispatch.domain.errors import DuplicateIdempotencyKeyError
from push_dispatch.domain.models.notification import (
    Notification,
    NotificationContent,
    NotificationPriority,
    NotificationRecipient,
)

logger = get_logger()

IDEMPOTENCY_CONSTRAINT = "uq_notifications_idempotency_key"

_SELECT_COLUMNS = """
    id, idempotency_key, user_id, device_ids, priority, content, source,
    ttl, scheduled_at, expires_at, created_at, data, external_id
"""


def _load_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _dump_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value)


class PostgresNotificationRepository(NotificationRepositoryProtocol):
    """PostgreSQL implementation of NotificationRepositoryProtocol.

    Attributes:
        _session_factory: SQLAlchemy async session factory for DB access.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, notification: Notification) -> None:
        """Insert a new notification.

        Raises:
            DuplicateIdempotencyKeyError: If the idempotency key is taken.
        """
        content = notification.content
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        text("""
                            INSERT INTO notifications (
                                id, idempotency_key, user_id, device_ids, priority,
                                content, source, ttl, scheduled_at, expires_at,
                                created_at, data, external_id
                            ) VALUES (
                                :id, :idempotency_key, :user_id,
                                CAST(:device_ids AS JSONB), :priority,
                                CAST(:content AS JSONB), :source, :ttl,
                                :scheduled_at, :expires_at, :created_at,
                                CAST(:data AS JSONB), :external_id
                            )
                        """),
                        {
                            "id": notification.id,
                            "idempotency_key": notification.idempotency_key,
                            "user_id": notification.recipient.user_id,
                            "device_ids": _dump_json(list(notification.recipient.device_ids)),
                            "priority": notification.priority.value,
                            "content": _dump_json(content.to_dict()),
                            "source": notification.source,
                            "ttl": notification.ttl,
                            "scheduled_at": notification.scheduled_at,
                            "expires_at": notification.expires_at,
                            "created_at": notification.created_at,
                            "data": _dump_json(notification.data),
                            "external_id": notification.external_id,
                        },
                    )
        except IntegrityError as e:
            if IDEMPOTENCY_CONSTRAINT in str(e.orig):
                logger.info(
                    "notification_idempotency_conflict",
                    idempotency_key=notification.idempotency_key,
                )
                raise DuplicateIdempotencyKeyError(notification.idempotency_key) from e
            raise

    async def get(self, notification_id: UUID) -> Notification | None:
        async with self._session_factory() as session:
            result = await session.execute(
                text(f"SELECT {_SELECT_COLUMNS} FROM notifications WHERE id = :id"),
                {"id": notification_id},
            )
            row = result.mappings().fetchone()
        return self._row_to_notification(row) if row else None

    async def get_by_idempotency_key(self, idempotency_key: str) -> Notification | None:
        async with self._session_factory() as session:
            result = await session.execute(
                text(
                    f"SELECT {_SELECT_COLUMNS} FROM notifications "
                    "WHERE idempotency_key = :idempotency_key"
                ),
                {"idempotency_key": idempotency_key},
            )
            row = result.mappings().fetchone()
        return self._row_to_notification(row) if row else None

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Notification]:
        async with self._session_factory() as session:
            result = await session.execute(
                text(f"""
                    SELECT {_SELECT_COLUMNS}
                    FROM notifications
                    WHERE user_id = :user_id
                    ORDER BY created_at DESC
                    LIMIT :limit OFFSET :offset
                """),
                {"user_id": user_id, "limit": limit, "offset": offset},
            )
            rows = result.mappings().fetchall()
        return [self._row_to_notification(row) for row in rows]

    def _row_to_notification(self, row: Any) -> Notification:
        content = _load_json(row["content"]) or {}
        return Notification(
            id=row["id"] if isinstance(row["id"], UUID) else UUID(str(row["id"])),
            recipient=NotificationRecipient(
                user_id=row["user_id"],
                device_ids=tuple(_load_json(row["device_ids"]) or ()),
            ),
            priority=NotificationPriority(row["priority"]),
            content=NotificationContent(
                title=content.get("title", ""),
                body=content.get("body", ""),
                image_url=content.get("image_url"),
                deep_link=content.get("deep_link"),
                data=content.get("data"),
            ),
            source=row["source"],
            idempotency_key=row["idempotency_key"],
            expires_at=row["expires_at"],
            created_at=row["created_at"],
            ttl=row["ttl"],
            scheduled_at=row["scheduled_at"],
            data=_load_json(row["data"]),
            external_id=row["external_id"],
        )
