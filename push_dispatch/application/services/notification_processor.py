"""Notification processor: one invocation per dequeued job.

Processing steps:
1. Load the notification; a missing record is a fatal referential error
   (logged, job dropped, never retried)
2. Past expires_at: complete with zero delivery attempts
3. Resolve target devices (explicit device_ids, else every device of the
   user); none: complete with zero attempts. Devices that already hold a
   delivered attempt are skipped so a re-run never delivers twice
4. Per device, isolated from its siblings:
   a. preferences disabled  -> failed / NOTIFICATIONS_DISABLED
   b. inside quiet hours    -> failed / QUIET_HOURS
   c. platform adapter send -> delivered, or failed with adapter code;
      no adapter for the platform -> failed / UNKNOWN_PLATFORM
   d. anything unexpected   -> failed / PROCESSING_ERROR
5. Failures in steps 1-3 propagate so the queue's crash retry re-runs the
   whole job

Gating is evaluated on every run, so a retried job sees current
preferences and the current quiet-hours window.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TypeVar
from uuid import UUID

import structlog

from push_dispatch.application.ports.delivery_adapter import (
    DeliveryAdapterProtocol,
    DeliveryResult,
)
from push_dispatch.application.ports.delivery_ledger import DeliveryLedgerProtocol
from push_dispatch.application.ports.device_directory import DeviceDirectoryProtocol
from push_dispatch.application.ports.job_queue import JobQueueProtocol
from push_dispatch.application.ports.notification_repository import (
    NotificationRepositoryProtocol,
)
from push_dispatch.application.services.retry_coordinator import RetryCoordinator
from push_dispatch.domain.errors import (
    DeviceDeliveryError,
    JobInfrastructureError,
)
from push_dispatch.domain.exceptions import DispatchError
from push_dispatch.domain.models.delivery_attempt import (
    DeliveryAttempt,
    DeliveryErrorCode,
    DeliveryStatus,
)
from push_dispatch.domain.models.device import DevicePlatform, DeviceSnapshot
from push_dispatch.domain.models.dispatch_job import (
    PROCESS_NOTIFICATION_JOB,
    DispatchJob,
)
from push_dispatch.domain.models.notification import Notification
from push_dispatch.domain.services.quiet_hours import is_in_quiet_hours

logger = structlog.get_logger()

T = TypeVar("T")

GENERIC_DELIVERY_FAILURE = "DELIVERY_FAILED"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class ProcessingOutcome(str, Enum):
    """How a job run ended."""

    PROCESSED = "processed"
    EXPIRED = "expired"
    NO_DEVICES = "no_devices"
    MISSING = "missing"
    ALREADY_DELIVERED = "already_delivered"


@dataclass(frozen=True)
class ProcessingResult:
    """Summary of one job run.

    Attributes:
        notification_id: The processed notification (None if unparseable).
        outcome: How the run ended.
        attempts: Ledger entries written during the run.
        retry_job_id: Delivery-level retry scheduled by the run, if any.
    """

    notification_id: UUID | None
    outcome: ProcessingOutcome
    attempts: tuple[DeliveryAttempt, ...] = field(default_factory=tuple)
    retry_job_id: UUID | None = None

    @property
    def delivered_count(self) -> int:
        return sum(1 for a in self.attempts if a.status == DeliveryStatus.DELIVERED)

    @property
    def failed_count(self) -> int:
        return sum(1 for a in self.attempts if a.status == DeliveryStatus.FAILED)


@dataclass(frozen=True)
class _DeviceOutcome:
    attempt: DeliveryAttempt | None
    retryable: bool = False


class NotificationProcessor:
    """Processes process_notification jobs.

    Attributes:
        _repository: Notification lookup.
        _ledger: Append-only delivery attempt store.
        _devices: External device directory.
        _adapters: Delivery adapters keyed by platform name.
        _retry_coordinator: Optional delivery-level retry scheduling for
            failures the adapter marked retryable.
        _device_concurrency: Devices processed at the same time.
    """

    def __init__(
        self,
        repository: NotificationRepositoryProtocol,
        ledger: DeliveryLedgerProtocol,
        device_directory: DeviceDirectoryProtocol,
        adapters: Mapping[DevicePlatform | str, DeliveryAdapterProtocol],
        retry_coordinator: RetryCoordinator | None = None,
        device_concurrency: int = 1,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if device_concurrency < 1:
            raise ValueError(
                f"device_concurrency must be at least 1, got {device_concurrency}"
            )
        self._repository = repository
        self._ledger = ledger
        self._devices = device_directory
        self._adapters: dict[str, DeliveryAdapterProtocol] = {
            _platform_key(platform): adapter for platform, adapter in adapters.items()
        }
        self._retry_coordinator = retry_coordinator
        self._device_concurrency = device_concurrency
        self._clock = clock or _utc_now

    def register(self, job_queue: JobQueueProtocol) -> None:
        """Register this processor as the queue's process_notification handler."""
        job_queue.process(PROCESS_NOTIFICATION_JOB, self.handle_job)

    async def handle_job(self, job: DispatchJob) -> ProcessingResult:
        """Queue handler entry point.

        Reads {"notification_id": str} from the payload. A payload that does
        not name a valid id can never succeed, so it is dropped like a
        missing notification.
        """
        raw_id = job.payload.get("notification_id")
        try:
            notification_id = UUID(str(raw_id))
        except ValueError:
            logger.error(
                "job_payload_invalid",
                job_id=str(job.id),
                notification_id=raw_id,
            )
            return ProcessingResult(notification_id=None, outcome=ProcessingOutcome.MISSING)
        return await self.process(notification_id, job_id=job.id)

    async def process(
        self,
        notification_id: UUID,
        job_id: UUID | None = None,
    ) -> ProcessingResult:
        """Run the processing steps for one notification.

        Raises:
            JobInfrastructureError: If loading the notification, resolving
                devices or reading prior deliveries fails.
        """
        log = logger.bind(
            notification_id=str(notification_id),
            job_id=str(job_id) if job_id else None,
        )
        log.info("notification_processing_started")

        notification = await self._infrastructure_step(
            "load_notification", notification_id, self._repository.get(notification_id)
        )
        if notification is None:
            log.error("notification_missing")
            return ProcessingResult(
                notification_id=notification_id, outcome=ProcessingOutcome.MISSING
            )

        if notification.is_expired(self._clock()):
            log.warning(
                "notification_expired",
                expires_at=notification.expires_at.isoformat(),
            )
            return ProcessingResult(
                notification_id=notification_id, outcome=ProcessingOutcome.EXPIRED
            )

        devices = await self._infrastructure_step(
            "resolve_devices", notification_id, self._resolve_devices(notification)
        )
        if not devices:
            log.warning("notification_no_devices", user_id=notification.recipient.user_id)
            return ProcessingResult(
                notification_id=notification_id, outcome=ProcessingOutcome.NO_DEVICES
            )

        delivered = await self._infrastructure_step(
            "read_deliveries",
            notification_id,
            self._ledger.delivered_device_ids(notification_id),
        )
        pending_devices = [d for d in devices if d.id not in delivered]
        if not pending_devices:
            log.info("notification_already_delivered", devices=len(devices))
            return ProcessingResult(
                notification_id=notification_id,
                outcome=ProcessingOutcome.ALREADY_DELIVERED,
            )
        if len(pending_devices) < len(devices):
            log.info(
                "notification_redelivery_skipped_devices",
                skipped=sorted(delivered & {d.id for d in devices}),
            )

        outcomes = await self._fan_out(notification, pending_devices)

        unrecorded = [
            device.id
            for device, outcome in zip(pending_devices, outcomes)
            if outcome.attempt is None
        ]
        if unrecorded:
            # Outcomes that never reached the ledger would be lost; re-run
            # the job, the redelivery guard protects devices already served.
            raise JobInfrastructureError(
                f"Delivery outcomes for devices {unrecorded} could not be recorded",
                notification_id=notification_id,
            )

        attempts = tuple(o.attempt for o in outcomes if o.attempt is not None)
        retry_job_id = await self._maybe_schedule_retry(notification, outcomes)

        result = ProcessingResult(
            notification_id=notification_id,
            outcome=ProcessingOutcome.PROCESSED,
            attempts=attempts,
            retry_job_id=retry_job_id,
        )
        log.info(
            "notification_processing_completed",
            devices=len(pending_devices),
            delivered=result.delivered_count,
            failed=result.failed_count,
            retry_scheduled=retry_job_id is not None,
        )
        return result

    async def _infrastructure_step(
        self, step: str, notification_id: UUID, awaitable: Awaitable[T]
    ) -> T:
        try:
            return await awaitable
        except DispatchError:
            raise
        except Exception as e:
            logger.error(
                "notification_processing_infrastructure_error",
                notification_id=str(notification_id),
                step=step,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise JobInfrastructureError(
                f"{step} failed for notification {notification_id}: {e}",
                notification_id=notification_id,
            ) from e

    async def _resolve_devices(self, notification: Notification) -> list[DeviceSnapshot]:
        recipient = notification.recipient
        if recipient.targets_explicit_devices:
            return list(await self._devices.find_by_ids(list(recipient.device_ids)))
        return list(await self._devices.find_by_user_id(recipient.user_id))

    async def _fan_out(
        self,
        notification: Notification,
        devices: Sequence[DeviceSnapshot],
    ) -> list[_DeviceOutcome]:
        if self._device_concurrency == 1:
            return [await self._process_device(notification, d) for d in devices]

        semaphore = asyncio.Semaphore(self._device_concurrency)

        async def bounded(device: DeviceSnapshot) -> _DeviceOutcome:
            async with semaphore:
                return await self._process_device(notification, device)

        return list(await asyncio.gather(*(bounded(d) for d in devices)))

    async def _process_device(
        self,
        notification: Notification,
        device: DeviceSnapshot,
    ) -> _DeviceOutcome:
        """Process one device; never raises."""
        log = logger.bind(
            notification_id=str(notification.id),
            device_id=device.id,
            platform=device.platform,
        )
        try:
            return await self._deliver_to_device(notification, device)
        except Exception as e:
            log.error(
                "device_processing_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            try:
                attempt = await self._ledger.record_attempt(
                    notification.id,
                    device.id,
                    DeliveryStatus.FAILED,
                    error_code=DeliveryErrorCode.PROCESSING_ERROR.value,
                    error_message=str(e) or type(e).__name__,
                )
            except Exception as record_error:
                log.error(
                    "device_outcome_unrecorded",
                    error=str(record_error),
                    error_type=type(record_error).__name__,
                )
                return _DeviceOutcome(attempt=None)
            return _DeviceOutcome(attempt=attempt)

    async def _deliver_to_device(
        self,
        notification: Notification,
        device: DeviceSnapshot,
    ) -> _DeviceOutcome:
        log = logger.bind(notification_id=str(notification.id), device_id=device.id)

        if not device.notification_preferences.enabled:
            log.debug("device_notifications_disabled")
            return _DeviceOutcome(
                attempt=await self._record_failure(
                    notification,
                    device,
                    DeliveryErrorCode.NOTIFICATIONS_DISABLED.value,
                    "Notifications are disabled for this device",
                )
            )

        if is_in_quiet_hours(self._clock(), device):
            log.debug("device_in_quiet_hours")
            return _DeviceOutcome(
                attempt=await self._record_failure(
                    notification,
                    device,
                    DeliveryErrorCode.QUIET_HOURS.value,
                    "Device is in quiet hours",
                )
            )

        adapter = self._adapters.get(_platform_key(device.platform))
        if adapter is None:
            log.warning("device_platform_unsupported", platform=device.platform)
            return _DeviceOutcome(
                attempt=await self._record_failure(
                    notification,
                    device,
                    DeliveryErrorCode.UNKNOWN_PLATFORM.value,
                    f"Unknown platform: {device.platform}",
                )
            )

        retryable = False
        try:
            result = await adapter.send(device, notification.content)
        except DeviceDeliveryError as e:
            result = DeliveryResult.rejected(e.code, e.message)
            retryable = e.retryable

        await self._touch_last_seen(device)

        if result.success:
            attempt = await self._ledger.record_attempt(
                notification.id,
                device.id,
                DeliveryStatus.DELIVERED,
                platform_response=result.platform_response,
            )
            log.info("device_delivery_succeeded", attempt_number=attempt.attempt_number)
            return _DeviceOutcome(attempt=attempt)

        attempt = await self._ledger.record_attempt(
            notification.id,
            device.id,
            DeliveryStatus.FAILED,
            platform_response=result.platform_response,
            error_code=result.error_code or GENERIC_DELIVERY_FAILURE,
            error_message=result.error_message,
        )
        log.warning(
            "device_delivery_failed",
            attempt_number=attempt.attempt_number,
            error_code=attempt.error_code,
            retryable=retryable,
        )
        return _DeviceOutcome(attempt=attempt, retryable=retryable)

    async def _record_failure(
        self,
        notification: Notification,
        device: DeviceSnapshot,
        error_code: str,
        error_message: str,
    ) -> DeliveryAttempt:
        return await self._ledger.record_attempt(
            notification.id,
            device.id,
            DeliveryStatus.FAILED,
            error_code=error_code,
            error_message=error_message,
        )

    async def _touch_last_seen(self, device: DeviceSnapshot) -> None:
        try:
            await self._devices.update_last_seen(device.id)
        except Exception as e:
            logger.warning(
                "device_last_seen_update_failed",
                device_id=device.id,
                error=str(e),
            )

    async def _maybe_schedule_retry(
        self,
        notification: Notification,
        outcomes: Sequence[_DeviceOutcome],
    ) -> UUID | None:
        if self._retry_coordinator is None:
            return None
        retryable = [o.attempt for o in outcomes if o.retryable and o.attempt is not None]
        if not retryable:
            return None
        attempt_number = max(a.attempt_number for a in retryable)
        return await self._retry_coordinator.retry_or_exhaust(
            notification.id, notification.priority, attempt_number
        )


def _platform_key(platform: DevicePlatform | str) -> str:
    if isinstance(platform, DevicePlatform):
        return platform.value
    return str(platform).lower()
