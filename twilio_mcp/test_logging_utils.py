"""
Tests for the JSON log formatter.
"""

import json
import logging
from datetime import datetime, timezone

from twilio_mcp.logging_utils import CustomJsonFormatter, request_id_ctx


def format_record(message="hello"):
    formatter = CustomJsonFormatter("%(ts)s %(level)s %(name)s %(message)s")
    record = logging.LogRecord("twilio_mcp.test", logging.INFO, __file__, 1, message, None, None)
    return json.loads(formatter.format(record)), record


class TestCustomJsonFormatter:
    def test_ts_is_iso8601_utc(self):
        data, record = format_record()

        assert isinstance(data["ts"], str)
        ts = datetime.fromisoformat(data["ts"])
        assert ts.utcoffset() == timezone.utc.utcoffset(None)
        assert abs(ts.timestamp() - record.created) < 0.002

    def test_standard_fields(self):
        data, _ = format_record()

        assert data["level"] == "INFO"
        assert data["name"] == "twilio_mcp.test"
        assert data["message"] == "hello"
        assert "request_id" not in data

    def test_request_id_from_context(self):
        token = request_id_ctx.set("req-123")
        try:
            data, _ = format_record()
        finally:
            request_id_ctx.reset(token)

        assert data["request_id"] == "req-123"
