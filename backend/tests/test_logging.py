"""Tests for logging configuration."""

import json
import logging

from tokenvault.core.logging import JSONFormatter, get_logger
from tokenvault.services.token_kinds import TokenKind


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("tokenvault.test", logging.WARNING, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_output_is_valid_json(self):
        line = JSONFormatter().format(_record('quote " and\nnewline'))

        entry = json.loads(line)
        assert entry["message"] == 'quote " and\nnewline'
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "tokenvault.test"

    def test_token_kind_field(self):
        line = JSONFormatter().format(_record("stale token", token_kind=TokenKind.REFRESH))

        assert json.loads(line)["token_kind"] == "refresh"

    def test_no_token_kind_by_default(self):
        assert "token_kind" not in json.loads(JSONFormatter().format(_record("plain")))


def test_get_logger_prefix():
    assert get_logger("token_service").name == "tokenvault.token_service"
