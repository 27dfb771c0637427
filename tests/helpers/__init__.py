"""Test helpers for push dispatch tests.

Helpers:
    FakeClock: Controllable clock callable for deterministic tests
    make_device, make_notification, make_request: Test data factories

Usage:
    from tests.helpers import FakeClock, make_device
"""

from tests.helpers.factories import make_device, make_notification, make_request
from tests.helpers.fake_clock import FakeClock

__all__ = ["FakeClock", "make_device", "make_notification", "make_request"]
