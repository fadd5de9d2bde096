"""Unit tests for core.logger module.

Tests the structlog-based logging configuration:
- configure_logging() sets up a single root handler
- JSON output when LOG_FORMAT=json
- context-bound fields appear on every line
- noisy third-party loggers are quieted
"""

import json
import logging

import pytest
import structlog
from structlog.testing import capture_logs

from core.config import Settings
from core.logger import (
    bind_contextvars,
    clear_contextvars,
    configure_logging,
    get_logger,
    tenant_context,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Save and restore root logger and structlog state around each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    clear_contextvars()
    structlog.reset_defaults()


@pytest.mark.unit
class TestConfigureLogging:
    def test_installs_single_stdout_handler(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        configure_logging()

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")

        configure_logging()

        assert logging.getLogger().level == logging.INFO

    def test_quiets_third_party_loggers(self):
        configure_logging()

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("aiosqlite").level == logging.WARNING

    def test_explicit_settings_override_environment(
        self, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        configure_logging(
            Settings(database_url="sqlite+aiosqlite:///:memory:", log_level="WARNING")
        )

        assert logging.getLogger().level == logging.WARNING

    def test_repeated_calls_keep_one_handler(self):
        configure_logging()
        configure_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_json_format_renders_event_and_fields(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ):
        monkeypatch.setenv("LOG_FORMAT", "json")
        configure_logging()

        get_logger("tests.json").info("enrollment.created", class_id="c-1")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        parsed = json.loads(line)
        assert parsed["event"] == "enrollment.created"
        assert parsed["class_id"] == "c-1"
        assert parsed["level"] == "info"
        assert parsed["logger"] == "tests.json"
        assert "timestamp" in parsed


@pytest.mark.unit
class TestContextBinding:
    def test_bound_fields_are_merged(self):
        bind_contextvars(organization_id="org-1")
        bind_contextvars(class_id="c-1")

        assert structlog.contextvars.get_contextvars() == {
            "organization_id": "org-1",
            "class_id": "c-1",
        }

    def test_clear_drops_bound_fields(self):
        bind_contextvars(organization_id="org-1")
        clear_contextvars()

        assert structlog.contextvars.get_contextvars() == {}

    def test_events_carry_structured_fields(self):
        with capture_logs() as logs:
            get_logger("tests.ctx").warning("bulk_enroll.item_failed", index=2)

        assert logs == [
            {"event": "bulk_enroll.item_failed", "index": 2, "log_level": "warning"}
        ]

    def test_tenant_context_scopes_fields(self):
        bind_contextvars(request_id="r-1")

        with tenant_context("org-1", command="dashboard"):
            assert structlog.contextvars.get_contextvars() == {
                "request_id": "r-1",
                "organization_id": "org-1",
                "command": "dashboard",
            }

        assert structlog.contextvars.get_contextvars() == {"request_id": "r-1"}
