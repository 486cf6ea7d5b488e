"""
Tests for settings validation.
"""

import pytest
from pydantic import ValidationError

from twilio_mcp.config import Settings

VALID = {
    "TWILIO_ACCOUNT_SID": "AC" + "1" * 32,
    "TWILIO_AUTH_TOKEN": "a" * 32,
    "TWILIO_PHONE_NUMBER": "+15550000000",
    "WEBHOOK_BASE_URL": "https://example.ngrok.io/",
}


def make_settings(**overrides):
    return Settings(_env_file=None, **{**VALID, **overrides})


class TestSettings:
    def test_defaults(self):
        config = make_settings()

        assert config.WEBHOOK_PORT == 3000
        assert config.AUTO_CREATE_CONVERSATIONS is True
        assert config.ENABLE_MMS is True

    def test_base_url_trailing_slash_stripped(self):
        assert make_settings().WEBHOOK_BASE_URL == "https://example.ngrok.io"

    def test_log_level_normalized(self):
        assert make_settings(LOG_LEVEL="warn").LOG_LEVEL == "WARNING"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"TWILIO_ACCOUNT_SID": "XX" + "1" * 32},
            {"TWILIO_AUTH_TOKEN": "short"},
            {"TWILIO_PHONE_NUMBER": "5550000000"},
            {"WEBHOOK_BASE_URL": "ftp://example.test"},
            {"WEBHOOK_PORT": 0},
            {"LOG_LEVEL": "LOUD"},
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(ValidationError):
            make_settings(**overrides)
