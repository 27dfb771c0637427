"""PostgreSQL persistence adapters (SQLAlchemy async, asyncpg driver)."""

from push_dispatch.infrastructure.adapters.persistence.delivery_ledger import (
    PostgresDeliveryLedger,
)
from push_dispatch.infrastructure.adapters.persistence.notification_repository import (
    PostgresNotificationRepository,
)
from push_dispatch.infrastructure.adapters.persistence.schema import create_schema

__all__: list[str] = [
    "PostgresDeliveryLedger",
    "PostgresNotificationRepository",
    "create_schema",
]
