"""Tests for structured logging configuration."""
import json

import structlog

from sentinel.observability import configure_logging


class TestConfigureLogging:

    def test_json_events_carry_identifiers(self, capsys):
        configure_logging(level="INFO", fmt="json")

        structlog.get_logger("sentinel.test").info("case_created", case_id="c-1", actor="Safeguarding Lead")

        event = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert event["event"] == "case_created"
        assert event["case_id"] == "c-1"
        assert event["level"] == "info"

    def test_level_filters_events(self, capsys):
        configure_logging(level="WARNING", fmt="json")

        logger = structlog.get_logger("sentinel.test")
        logger.info("case_updated", case_id="c-1")
        logger.warning("evidence_ids_not_found", count=2)

        lines = capsys.readouterr().out.strip().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["evidence_ids_not_found"]

    def test_defaults_come_from_settings(self, capsys):
        configure_logging(level=None, fmt=None)

        structlog.get_logger("sentinel.test").warning("report_generation_failed", status_code=503)

        assert "report_generation_failed" in capsys.readouterr().out
