"""
Tests for structlog configuration.
"""

import json

import structlog

from app.core.config import get_settings
from app.core.logging import configure_logging


class TestConfigureLogging:
    def teardown_method(self):
        settings = get_settings()
        configure_logging(settings.log_level, settings.log_format)

    def test_json_format_filters_below_level(self, capsys):
        configure_logging("info", "json")
        log = structlog.get_logger()

        log.debug("studio.debug_noise")
        log.info("studio.created", studio_id="abc")

        lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
        assert len(lines) == 1
        event = json.loads(lines[0])
        assert event["event"] == "studio.created"
        assert event["level"] == "info"
        assert event["studio_id"] == "abc"
        assert "timestamp" in event

    def test_text_format_at_debug(self, capsys):
        configure_logging("debug", "text")
        structlog.get_logger().debug("invite.looked_up", invitation_id="xyz")

        out = capsys.readouterr().out
        assert "invite.looked_up" in out
        assert "xyz" in out

    def test_level_name_is_case_insensitive(self, capsys):
        configure_logging("WARNING", "json")
        log = structlog.get_logger()

        log.info("membership.role_changed")
        log.warning("invite.email_not_sent")

        out = capsys.readouterr().out
        assert "membership.role_changed" not in out
        assert "invite.email_not_sent" in out
