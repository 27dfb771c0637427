"""Device snapshot models.

Devices are owned by the external device directory. The dispatch pipeline
fetches a read-only snapshot per use and never writes device state other
than the best-effort last-seen touch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DevicePlatform(str, Enum):
    """Push platforms with a known delivery adapter."""

    ANDROID = "android"
    IOS = "ios"


@dataclass(frozen=True)
class QuietHours:
    """Device-local do-not-disturb window.

    Attributes:
        enabled: Whether the window is active at all.
        start: Window start as HH:MM (device local time).
        end: Window end as HH:MM (device local time).
        timezone: IANA zone overriding the device timezone.
    """

    enabled: bool = False
    start: str | None = None
    end: str | None = None
    timezone: str | None = None


@dataclass(frozen=True)
class NotificationPreferences:
    """Per-device notification preferences."""

    enabled: bool = True
    categories: dict[str, bool] = field(default_factory=dict)
    quiet_hours: QuietHours | None = None


@dataclass(frozen=True)
class DeviceSnapshot:
    """Read-only view of a registered device.

    Attributes:
        id: Device identifier.
        user_id: Owner of the device.
        platform: Platform name; values outside DevicePlatform have no adapter.
        device_token: Platform push token (FCM registration token, APNs token).
        timezone: Device IANA timezone, used when quiet hours set none.
        notification_preferences: Gating preferences.
    """

    id: str
    user_id: str
    platform: str
    device_token: str = ""
    timezone: str | None = None
    notification_preferences: NotificationPreferences = field(
        default_factory=NotificationPreferences
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceSnapshot:
        """Build a snapshot from a directory record.

        Accepts the nested notification_preferences / quiet_hours shape
        used by device registration payloads.
        """
        prefs_data = data.get("notification_preferences") or {}
        quiet_data = prefs_data.get("quiet_hours")
        quiet_hours = (
            QuietHours(
                enabled=bool(quiet_data.get("enabled", False)),
                start=quiet_data.get("start"),
                end=quiet_data.get("end"),
                timezone=quiet_data.get("timezone"),
            )
            if quiet_data
            else None
        )
        platform = data.get("platform", "")
        if isinstance(platform, DevicePlatform):
            platform = platform.value
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            platform=str(platform),
            device_token=data.get("device_token", ""),
            timezone=data.get("timezone"),
            notification_preferences=NotificationPreferences(
                enabled=bool(prefs_data.get("enabled", True)),
                categories=dict(prefs_data.get("categories") or {}),
                quiet_hours=quiet_hours,
            ),
        )
