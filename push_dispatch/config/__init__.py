"""Configuration module for push dispatch.

Available Configurations:
- DispatchConfig: Intake defaults, worker and fan-out concurrency, retry jitter
- PushTransportConfig: FCM and APNs transport settings
"""

from push_dispatch.config.dispatch_config import (
    DEFAULT_DISPATCH_CONFIG,
    TEST_DISPATCH_CONFIG,
    DispatchConfig,
    PushTransportConfig,
)

__all__ = [
    "DEFAULT_DISPATCH_CONFIG",
    "TEST_DISPATCH_CONFIG",
    "DispatchConfig",
    "PushTransportConfig",
]
