"""Unit tests for structured logging configuration."""

import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from push_dispatch.infrastructure.observability.correlation import correlation_scope
from push_dispatch.infrastructure.observability.logging import (
    configure_structlog,
    get_logger_for_service,
)


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


def _processors() -> list:
    return list(structlog.get_config()["processors"])


class TestConfigureStructlog:
    """Tests for configure_structlog function."""

    def test_production_renders_json(self) -> None:
        configure_structlog(environment="production")

        assert isinstance(_processors()[-1], structlog.processors.JSONRenderer)

    def test_development_renders_console(self) -> None:
        configure_structlog(environment="development")

        assert isinstance(_processors()[-1], structlog.dev.ConsoleRenderer)

    def test_log_level_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        configure_structlog(environment="production")

        logger = structlog.get_logger()

        assert not logger.is_enabled_for(logging.INFO)
        assert logger.is_enabled_for(logging.WARNING)

    def test_production_entry_carries_service_and_correlation(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        configure_structlog(environment="production")

        with correlation_scope("job-42"):
            structlog.get_logger().info("notification_accepted", notification_id="n-1")

        entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert entry["event"] == "notification_accepted"
        assert entry["level"] == "info"
        assert entry["service"] == "push_dispatch"
        assert entry["correlation_id"] == "job-42"
        assert entry["notification_id"] == "n-1"
        assert "timestamp" in entry


class TestGetLoggerForService:
    """Tests for get_logger_for_service."""

    def test_binds_service_and_component(self) -> None:
        with structlog.testing.capture_logs() as captured:
            get_logger_for_service("DispatchWorker", component="worker").info("tick")

        assert captured == [
            {
                "event": "tick",
                "log_level": "info",
                "service": "DispatchWorker",
                "component": "worker",
            }
        ]

    def test_component_defaults_to_dispatch(self) -> None:
        with structlog.testing.capture_logs() as captured:
            get_logger_for_service("NotificationProcessor").info("tick")

        assert captured[0]["component"] == "dispatch"
