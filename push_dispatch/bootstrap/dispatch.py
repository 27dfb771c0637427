"""Bootstrap wiring for push dispatch dependencies.

Module-level lazy singletons. Each getter picks the production adapter
when its environment is configured and falls back to the in-memory stub
otherwise:

- DATABASE_URL set   -> PostgreSQL notification repository and ledger
- REDIS_URL set      -> Redis job queue
- FCM_PROJECT_ID set -> FCM adapter for "android" devices
- APNS_TOPIC set     -> APNs adapter for "ios" devices

Bearer tokens for FCM (FCM_ACCESS_TOKEN) and APNs (APNS_AUTH_TOKEN) are
read on every send so a sidecar can rotate them. The device directory is
owned by another system; deployments inject theirs with
set_device_directory().
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable

from structlog import get_logger

from push_dispatch.application.ports.delivery_adapter import DeliveryAdapterProtocol
from push_dispatch.application.ports.delivery_ledger import DeliveryLedgerProtocol
from push_dispatch.application.ports.device_directory import DeviceDirectoryProtocol
from push_dispatch.application.ports.job_queue import JobQueueProtocol
from push_dispatch.application.ports.notification_repository import (
    NotificationRepositoryProtocol,
)
from push_dispatch.application.services.dispatch_scheduler import DispatchScheduler
from push_dispatch.application.services.notification_intake_service import (
    NotificationIntakeService,
)
from push_dispatch.application.services.notification_processor import (
    NotificationProcessor,
)
from push_dispatch.application.services.notification_query_service import (
    NotificationQueryService,
)
from push_dispatch.application.services.retry_coordinator import RetryCoordinator
from push_dispatch.config.dispatch_config import DispatchConfig, PushTransportConfig
from push_dispatch.domain.models.device import DevicePlatform
from push_dispatch.infrastructure.stubs.delivery_ledger_stub import DeliveryLedgerStub
from push_dispatch.infrastructure.stubs.device_directory_stub import DeviceDirectoryStub
from push_dispatch.infrastructure.stubs.job_queue_stub import JobQueueStub
from push_dispatch.infrastructure.stubs.notification_repository_stub import (
    NotificationRepositoryStub,
)

logger = get_logger()

_dispatch_config: DispatchConfig | None = None
_transport_config: PushTransportConfig | None = None
_notification_repository: NotificationRepositoryProtocol | None = None
_delivery_ledger: DeliveryLedgerProtocol | None = None
_device_directory: DeviceDirectoryProtocol | None = None
_job_queue: JobQueueProtocol | None = None
_delivery_adapters: dict[str, DeliveryAdapterProtocol] | None = None
_redis_client = None


def _env_token_provider(name: str) -> Callable[[], Awaitable[str]]:
    async def provide() -> str:
        token = os.environ.get(name)
        if not token:
            raise RuntimeError(f"{name} environment variable not set")
        return token

    return provide


def get_dispatch_config() -> DispatchConfig:
    """Get dispatch config, loaded from the environment on first use."""
    global _dispatch_config
    if _dispatch_config is None:
        _dispatch_config = DispatchConfig.from_environment()
    return _dispatch_config


def get_transport_config() -> PushTransportConfig:
    """Get push transport config, loaded from the environment on first use."""
    global _transport_config
    if _transport_config is None:
        _transport_config = PushTransportConfig.from_environment()
    return _transport_config


def get_notification_repository() -> NotificationRepositoryProtocol:
    """Get notification repository instance.

    Returns the PostgreSQL repository if DATABASE_URL is configured,
    otherwise the in-memory stub.
    """
    global _notification_repository
    if _notification_repository is None:
        if os.environ.get("DATABASE_URL"):
            try:
                from push_dispatch.bootstrap.database import get_session_factory
                from push_dispatch.infrastructure.adapters.persistence import (
                    PostgresNotificationRepository,
                )

                _notification_repository = PostgresNotificationRepository(
                    session_factory=get_session_factory()
                )
                logger.info("notification_repository_initialized", repository_type="PostgreSQL")
            except Exception as e:
                logger.error(
                    "postgres_repository_init_failed",
                    error=str(e),
                    message="Falling back to in-memory stub",
                )
                _notification_repository = NotificationRepositoryStub()
        else:
            logger.warning(
                "notification_repository_initialized",
                repository_type="stub",
                message="DATABASE_URL not set, notifications are kept in memory",
            )
            _notification_repository = NotificationRepositoryStub()
    return _notification_repository


def get_delivery_ledger() -> DeliveryLedgerProtocol:
    """Get delivery ledger instance (PostgreSQL when DATABASE_URL is set)."""
    global _delivery_ledger
    if _delivery_ledger is None:
        if os.environ.get("DATABASE_URL"):
            try:
                from push_dispatch.bootstrap.database import get_session_factory
                from push_dispatch.infrastructure.adapters.persistence import (
                    PostgresDeliveryLedger,
                )

                _delivery_ledger = PostgresDeliveryLedger(
                    session_factory=get_session_factory(),
                    max_retries=get_dispatch_config().ledger_max_retries,
                )
                logger.info("delivery_ledger_initialized", ledger_type="PostgreSQL")
            except Exception as e:
                logger.error(
                    "postgres_ledger_init_failed",
                    error=str(e),
                    message="Falling back to in-memory stub",
                )
                _delivery_ledger = DeliveryLedgerStub()
        else:
            logger.warning(
                "delivery_ledger_initialized",
                ledger_type="stub",
                message="DATABASE_URL not set, delivery attempts are kept in memory",
            )
            _delivery_ledger = DeliveryLedgerStub()
    return _delivery_ledger


def get_device_directory() -> DeviceDirectoryProtocol:
    """Get the device directory (stub unless one was injected)."""
    global _device_directory
    if _device_directory is None:
        logger.warning(
            "device_directory_initialized",
            directory_type="stub",
            message="No device directory injected, using empty in-memory directory",
        )
        _device_directory = DeviceDirectoryStub()
    return _device_directory


def get_job_queue() -> JobQueueProtocol:
    """Get job queue instance (Redis when REDIS_URL is set)."""
    global _job_queue, _redis_client
    if _job_queue is None:
        redis_url = os.environ.get("REDIS_URL")
        if redis_url:
            import redis.asyncio as aioredis

            from push_dispatch.infrastructure.adapters.queue import RedisJobQueue

            _redis_client = aioredis.from_url(redis_url)
            _job_queue = RedisJobQueue(
                _redis_client,
                lease_ms=get_dispatch_config().job_lease_seconds * 1000,
            )
            logger.info("job_queue_initialized", queue_type="redis")
        else:
            logger.warning(
                "job_queue_initialized",
                queue_type="stub",
                message="REDIS_URL not set, jobs are kept in memory",
            )
            _job_queue = JobQueueStub()
    return _job_queue


def get_delivery_adapters() -> dict[str, DeliveryAdapterProtocol]:
    """Get delivery adapters keyed by platform name.

    Platforms whose transport is not configured get no adapter, so their
    devices are recorded as UNKNOWN_PLATFORM.
    """
    global _delivery_adapters
    if _delivery_adapters is None:
        transport = get_transport_config()
        adapters: dict[str, DeliveryAdapterProtocol] = {}
        if transport.fcm_enabled:
            from push_dispatch.infrastructure.adapters.delivery import FcmDeliveryAdapter

            adapters[DevicePlatform.ANDROID.value] = FcmDeliveryAdapter(
                project_id=transport.fcm_project_id,
                token_provider=_env_token_provider("FCM_ACCESS_TOKEN"),
                endpoint=transport.fcm_endpoint,
                timeout=transport.http_timeout_seconds,
            )
        if transport.apns_enabled:
            from push_dispatch.infrastructure.adapters.delivery import ApnsDeliveryAdapter

            adapters[DevicePlatform.IOS.value] = ApnsDeliveryAdapter(
                topic=transport.apns_topic,
                token_provider=_env_token_provider("APNS_AUTH_TOKEN"),
                endpoint=transport.apns_endpoint,
                timeout=transport.http_timeout_seconds,
            )
        logger.info("delivery_adapters_initialized", platforms=sorted(adapters))
        _delivery_adapters = adapters
    return _delivery_adapters


def get_retry_coordinator() -> RetryCoordinator:
    return RetryCoordinator(
        job_queue=get_job_queue(),
        jitter_ratio=get_dispatch_config().retry_jitter_ratio,
    )


def get_intake_service() -> NotificationIntakeService:
    """Build the intake service on the shared repository and queue."""
    return NotificationIntakeService(
        repository=get_notification_repository(),
        scheduler=DispatchScheduler(get_job_queue()),
        config=get_dispatch_config(),
    )


def get_notification_processor() -> NotificationProcessor:
    """Build the processor on the shared stores, directory and adapters."""
    return NotificationProcessor(
        repository=get_notification_repository(),
        ledger=get_delivery_ledger(),
        device_directory=get_device_directory(),
        adapters=get_delivery_adapters(),
        retry_coordinator=get_retry_coordinator(),
        device_concurrency=get_dispatch_config().device_concurrency,
    )


def get_query_service() -> NotificationQueryService:
    return NotificationQueryService(
        repository=get_notification_repository(),
        ledger=get_delivery_ledger(),
    )


def set_notification_repository(repo: NotificationRepositoryProtocol) -> None:
    """Set custom notification repository for testing."""
    global _notification_repository
    _notification_repository = repo


def set_delivery_ledger(ledger: DeliveryLedgerProtocol) -> None:
    """Set custom delivery ledger for testing."""
    global _delivery_ledger
    _delivery_ledger = ledger


def set_device_directory(directory: DeviceDirectoryProtocol) -> None:
    """Set the device directory implementation."""
    global _device_directory
    _device_directory = directory


def set_job_queue(queue: JobQueueProtocol) -> None:
    """Set custom job queue for testing."""
    global _job_queue
    _job_queue = queue


def set_delivery_adapters(adapters: dict[str, DeliveryAdapterProtocol]) -> None:
    """Set custom delivery adapters for testing."""
    global _delivery_adapters
    _delivery_adapters = dict(adapters)


def set_dispatch_config(config: DispatchConfig) -> None:
    """Set custom dispatch config for testing."""
    global _dispatch_config
    _dispatch_config = config


def reset_dispatch_dependencies() -> None:
    """Reset dispatch dependency singletons."""
    global _dispatch_config
    global _transport_config
    global _notification_repository
    global _delivery_ledger
    global _device_directory
    global _job_queue
    global _delivery_adapters
    global _redis_client

    _dispatch_config = None
    _transport_config = None
    _notification_repository = None
    _delivery_ledger = None
    _device_directory = None
    _job_queue = None
    _delivery_adapters = None
    _redis_client = None


async def shutdown_dispatch() -> None:
    """Close network resources held by the singletons."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
    if os.environ.get("DATABASE_URL"):
        from push_dispatch.bootstrap.database import close_database_engine

        await close_database_engine()
