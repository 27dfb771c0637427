"""Pure domain services: priority policy and quiet-hours evaluation."""

from push_dispatch.domain.services.priority_policy import (
    DEFAULT_POLICY,
    PRIORITY_POLICIES,
    DispatchPolicy,
    policy_for,
)
from push_dispatch.domain.services.quiet_hours import is_in_quiet_hours

__all__: list[str] = [
    "DEFAULT_POLICY",
    "PRIORITY_POLICIES",
    "DispatchPolicy",
    "is_in_quiet_hours",
    "policy_for",
]
