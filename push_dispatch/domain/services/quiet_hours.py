"""Quiet-hours evaluation for device-local do-not-disturb windows.

Pure and deterministic given (now, device). Availability of delivery wins
over strict silence: any malformed window or unresolvable timezone makes
the evaluator answer "not in quiet hours".

Window semantics (minutes since local midnight, bounds inclusive):
- start < end: same-day window, inside iff start <= now <= end
- start >= end: overnight window, inside iff now >= start or now <= end
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

import structlog

from push_dispatch.domain.models.device import DeviceSnapshot, QuietHours

logger = structlog.get_logger()

UTC_ZONE_NAME = "UTC"


def parse_clock_time(value: str) -> int:
    """Parse an HH:MM string into minutes since midnight.

    Raises:
        ValueError: If value is not a valid 24-hour HH:MM time.
    """
    parts = value.strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def resolve_timezone(quiet_hours: QuietHours, device: DeviceSnapshot) -> tzinfo:
    """Resolve the zone the window is expressed in.

    quiet_hours.timezone wins, then device.timezone, then UTC.

    Raises:
        ZoneInfoNotFoundError: If the zone name is unknown.
        ValueError: If the zone name is malformed.
    """
    name = quiet_hours.timezone or device.timezone or UTC_ZONE_NAME
    return ZoneInfo(name)


def minutes_since_midnight(now: datetime, zone: tzinfo) -> int:
    """Convert an instant into local minutes since midnight in zone."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(zone)
    return local.hour * 60 + local.minute


def is_within_window(current: int, start: int, end: int) -> bool:
    """Check a minutes-since-midnight value against a window."""
    if start < end:
        return start <= current <= end
    return current >= start or current <= end


def is_in_quiet_hours(now: datetime, device: DeviceSnapshot) -> bool:
    """Check whether a device is inside its quiet hours at now.

    Args:
        now: The instant to evaluate (timezone-aware; naive means UTC).
        device: Device snapshot carrying preferences and timezone.

    Returns:
        True only when a valid, enabled window contains now.
    """
    quiet_hours = device.notification_preferences.quiet_hours
    if quiet_hours is None or not quiet_hours.enabled:
        return False
    if not quiet_hours.start or not quiet_hours.end:
        return False

    try:
        zone = resolve_timezone(quiet_hours, device)
        start = parse_clock_time(quiet_hours.start)
        end = parse_clock_time(quiet_hours.end)
        current = minutes_since_midnight(now, zone)
    except Exception as e:
        # Directory records are untyped; any bad value fails open
        logger.warning(
            "quiet_hours_evaluation_failed",
            device_id=device.id,
            start=quiet_hours.start,
            end=quiet_hours.end,
            timezone=quiet_hours.timezone or device.timezone,
            error=str(e),
            error_type=type(e).__name__,
        )
        return False

    return is_within_window(current, start, end)
