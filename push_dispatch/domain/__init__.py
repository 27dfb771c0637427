"""
Domain layer - Pure business logic for push dispatch.

This layer contains:
- Domain models (Notification, DeliveryAttempt, DeviceSnapshot, DispatchJob)
- Pure domain services (priority policy, quiet-hours evaluation)
- Domain exceptions

CRITICAL: This layer must NOT import from application or infrastructure.
"""

from push_dispatch.domain.exceptions import DispatchError

__all__: list[str] = ["DispatchError"]
