"""Dispatch pipeline configuration.

This module defines configuration for intake defaults, worker concurrency
and push transports, with environment variable overrides for production
tuning.

Environment Variables (Dispatch):
- NOTIFICATION_DEFAULT_TTL_SECONDS: TTL when a request sets none (default: 86400)
- DISPATCH_WORKER_CONCURRENCY: Jobs processed concurrently (default: 4)
- DISPATCH_DEVICE_CONCURRENCY: Devices of one job processed concurrently (default: 1)
- DISPATCH_POLL_INTERVAL_SECONDS: Idle sleep between queue polls (default: 1.0)
- DISPATCH_RETRY_JITTER_RATIO: Upper bound of retry jitter (default: 0.3)
- DISPATCH_LEDGER_MAX_RETRIES: Attempt-number contention retries (default: 5)

Environment Variables (Push transports):
- FCM_PROJECT_ID: Firebase project for the FCM HTTP v1 API
- FCM_ENDPOINT: FCM API base URL (default: https://fcm.googleapis.com)
- APNS_TOPIC: APNs topic (the app bundle id)
- APNS_USE_SANDBOX: Use the APNs development endpoint (default: false)
- PUSH_HTTP_TIMEOUT_SECONDS: Per-request transport timeout (default: 10.0)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from push_dispatch.domain.models.notification import DEFAULT_TTL_SECONDS


def _get_int_env(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name.
        default: Default value if not set or invalid.

    Returns:
        Parsed integer value or default.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    """Get float environment variable with default."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool_env(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class DispatchConfig:
    """Configuration for intake and the dispatch worker.

    Attributes:
        default_ttl_seconds: TTL applied when a request sets none.
        worker_concurrency: Jobs the worker runs at the same time.
        device_concurrency: Devices of one job processed at the same time.
            1 means strictly sequential fan-out.
        poll_interval_seconds: Worker sleep when the queue has no ready job.
        retry_jitter_ratio: Upper bound of the uniform retry jitter.
        ledger_max_retries: Retries when two writers race for the same
            attempt number.
        job_lease_seconds: How long a claimed job may stay unacknowledged
            before the queue hands it to another worker.
    """

    default_ttl_seconds: int = DEFAULT_TTL_SECONDS
    worker_concurrency: int = 4
    device_concurrency: int = 1
    poll_interval_seconds: float = 1.0
    retry_jitter_ratio: float = 0.3
    ledger_max_retries: int = 5
    job_lease_seconds: int = 300

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.default_ttl_seconds < 1:
            raise ValueError(
                f"default_ttl_seconds must be positive, got {self.default_ttl_seconds}"
            )
        if self.worker_concurrency < 1:
            raise ValueError(
                f"worker_concurrency must be at least 1, got {self.worker_concurrency}"
            )
        if self.device_concurrency < 1:
            raise ValueError(
                f"device_concurrency must be at least 1, got {self.device_concurrency}"
            )
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"poll_interval_seconds must be positive, got {self.poll_interval_seconds}"
            )
        if not 0 <= self.retry_jitter_ratio <= 1:
            raise ValueError(
                f"retry_jitter_ratio must be within [0, 1], got {self.retry_jitter_ratio}"
            )
        if self.ledger_max_retries < 1:
            raise ValueError(
                f"ledger_max_retries must be at least 1, got {self.ledger_max_retries}"
            )
        if self.job_lease_seconds < 1:
            raise ValueError(
                f"job_lease_seconds must be positive, got {self.job_lease_seconds}"
            )

    @classmethod
    def from_environment(cls) -> DispatchConfig:
        """Create config from environment variables with defaults."""
        return cls(
            default_ttl_seconds=_get_int_env(
                "NOTIFICATION_DEFAULT_TTL_SECONDS", DEFAULT_TTL_SECONDS
            ),
            worker_concurrency=_get_int_env("DISPATCH_WORKER_CONCURRENCY", 4),
            device_concurrency=_get_int_env("DISPATCH_DEVICE_CONCURRENCY", 1),
            poll_interval_seconds=_get_float_env("DISPATCH_POLL_INTERVAL_SECONDS", 1.0),
            retry_jitter_ratio=_get_float_env("DISPATCH_RETRY_JITTER_RATIO", 0.3),
            ledger_max_retries=_get_int_env("DISPATCH_LEDGER_MAX_RETRIES", 5),
            job_lease_seconds=_get_int_env("DISPATCH_JOB_LEASE_SECONDS", 300),
        )


@dataclass(frozen=True)
class PushTransportConfig:
    """Configuration for the FCM and APNs delivery adapters.

    Attributes:
        fcm_project_id: Firebase project id; FCM is disabled when empty.
        fcm_endpoint: Base URL of the FCM HTTP v1 API.
        apns_topic: APNs topic (bundle id); APNs is disabled when empty.
        apns_use_sandbox: Target the APNs development environment.
        http_timeout_seconds: Per-request timeout for both transports.
    """

    fcm_project_id: str = ""
    fcm_endpoint: str = "https://fcm.googleapis.com"
    apns_topic: str = ""
    apns_use_sandbox: bool = False
    http_timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.http_timeout_seconds <= 0:
            raise ValueError(
                f"http_timeout_seconds must be positive, got {self.http_timeout_seconds}"
            )

    @property
    def apns_endpoint(self) -> str:
        if self.apns_use_sandbox:
            return "https://api.sandbox.push.apple.com"
        return "https://api.push.apple.com"

    @property
    def fcm_enabled(self) -> bool:
        return bool(self.fcm_project_id)

    @property
    def apns_enabled(self) -> bool:
        return bool(self.apns_topic)

    @classmethod
    def from_environment(cls) -> PushTransportConfig:
        """Create config from environment variables with defaults."""
        return cls(
            fcm_project_id=os.environ.get("FCM_PROJECT_ID", ""),
            fcm_endpoint=os.environ.get("FCM_ENDPOINT", "https://fcm.googleapis.com"),
            apns_topic=os.environ.get("APNS_TOPIC", ""),
            apns_use_sandbox=_get_bool_env("APNS_USE_SANDBOX", False),
            http_timeout_seconds=_get_float_env("PUSH_HTTP_TIMEOUT_SECONDS", 10.0),
        )


# Default configuration instances
DEFAULT_DISPATCH_CONFIG = DispatchConfig()

# Test configuration: small TTL, fast polling, sequential fan-out
TEST_DISPATCH_CONFIG = DispatchConfig(
    default_ttl_seconds=3600,
    worker_concurrency=2,
    device_concurrency=1,
    poll_interval_seconds=0.01,
)
