"""
Structured logging setup tests.
"""

from __future__ import annotations

import json

import pytest
import structlog

from app.core.config import get_settings
from app.core.logging import configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)


def test_json_at_info_level(capsys):
    configure_logging("info", "json")
    log = structlog.get_logger()

    log.debug("hidden.event")
    log.info("shown.event", file_id=7)

    out = capsys.readouterr().out
    assert "hidden.event" not in out
    line = json.loads(out.strip())
    assert line["event"] == "shown.event"
    assert line["level"] == "info"
    assert line["file_id"] == 7
    assert "timestamp" in line


def test_text_at_debug_level(capsys):
    configure_logging("debug", "text")
    structlog.get_logger().debug("debug.event")
    assert "debug.event" in capsys.readouterr().out


def test_level_name_is_case_insensitive(capsys):
    configure_logging("WARNING", "json")
    log = structlog.get_logger()
    log.info("quiet.event")
    log.warning("loud.event")
    out = capsys.readouterr().out
    assert "quiet.event" not in out and "loud.event" in out
