"""PostgreSQL schema for notifications and the delivery ledger.

Storage constraints:
- notifications.idempotency_key is unique (intake deduplication)
- delivery_attempts is append-only and unique on
  (notification_id, device_id, attempt_number), which is what makes
  concurrent attempt-number assignment safe
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

NOTIFICATIONS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS notifications (
    id UUID PRIMARY KEY,
    idempotency_key TEXT NOT NULL,
    user_id TEXT NOT NULL,
    device_ids JSONB NOT NULL DEFAULT '[]'::jsonb,
    priority TEXT NOT NULL,
    content JSONB NOT NULL,
    source TEXT NOT NULL,
    ttl INTEGER,
    scheduled_at TIMESTAMPTZ,
    expires_at TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    data JSONB,
    external_id TEXT,
    CONSTRAINT uq_notifications_idempotency_key UNIQUE (idempotency_key)
)
"""

NOTIFICATIONS_USER_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS ix_notifications_user_created
    ON notifications (user_id, created_at DESC)
"""

DELIVERY_ATTEMPTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS delivery_attempts (
    id UUID PRIMARY KEY,
    notification_id UUID NOT NULL REFERENCES notifications (id),
    device_id TEXT NOT NULL,
    attempt_number INTEGER NOT NULL CHECK (attempt_number >= 1),
    status TEXT NOT NULL,
    platform_response JSONB,
    error_code TEXT,
    error_message TEXT,
    attempted_at TIMESTAMPTZ NOT NULL,
    CONSTRAINT uq_delivery_attempts_sequence
        UNIQUE (notification_id, device_id, attempt_number)
)
"""

DELIVERY_ATTEMPTS_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS ix_delivery_attempts_notification
    ON delivery_attempts (notification_id, attempted_at)
"""

SCHEMA_STATEMENTS: tuple[str, ...] = (
    NOTIFICATIONS_TABLE_SQL,
    NOTIFICATIONS_USER_INDEX_SQL,
    DELIVERY_ATTEMPTS_TABLE_SQL,
    DELIVERY_ATTEMPTS_INDEX_SQL,
)


async def create_schema(engine: AsyncEngine) -> None:
    """Create tables and indexes if they do not exist."""
    async with engine.begin() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(text(statement))
