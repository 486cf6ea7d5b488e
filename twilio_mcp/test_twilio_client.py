"""
Tests for TwilioTransport against a mocked Twilio REST client.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from twilio.request_validator import RequestValidator

from twilio_mcp.config import settings
from twilio_mcp.errors import MmsDisabledError
from twilio_mcp.twilio_client import TwilioTransport


@pytest.fixture
def rest_client():
    return MagicMock()


@pytest.fixture
def twilio(rest_client):
    return TwilioTransport(settings, client=rest_client)


class TestSend:
    def test_sms_uses_default_from(self, twilio, rest_client):
        twilio.send_sms("+15551234567", "Hello")

        rest_client.messages.create.assert_called_once_with(
            to="+15551234567",
            from_=settings.TWILIO_PHONE_NUMBER,
            body="Hello",
        )

    def test_sms_custom_from(self, twilio, rest_client):
        twilio.send_sms("+15551234567", "Hello", from_="+15555550123")

        assert rest_client.messages.create.call_args.kwargs["from_"] == "+15555550123"

    def test_mms_passes_media(self, twilio, rest_client):
        urls = ["https://example.test/a.jpg"]

        twilio.send_mms("+15551234567", "Look", urls)

        assert rest_client.messages.create.call_args.kwargs["media_url"] == urls

    def test_mms_disabled(self, monkeypatch, twilio, rest_client):
        monkeypatch.setattr(settings, "ENABLE_MMS", False)

        with pytest.raises(MmsDisabledError):
            twilio.send_mms("+15551234567", "Look", ["https://example.test/a.jpg"])
        rest_client.messages.create.assert_not_called()


class TestLookup:
    def test_fetch_message(self, twilio, rest_client):
        twilio.fetch_message("SM123")

        rest_client.messages.assert_called_once_with("SM123")
        rest_client.messages.return_value.fetch.assert_called_once_with()

    def test_list_only_passes_given_filters(self, twilio, rest_client):
        twilio.list_messages(to="+15550000000", limit=10)

        rest_client.messages.list.assert_called_once_with(limit=10, to="+15550000000")

    def test_list_all_filters(self, twilio, rest_client):
        after = datetime(2025, 1, 15, tzinfo=timezone.utc)

        twilio.list_messages(to="+15550000000", from_="+15551234567", sent_after=after)

        rest_client.messages.list.assert_called_once_with(
            limit=50, to="+15550000000", from_="+15551234567", date_sent_after=after
        )


class TestValidateSignature:
    URL = "https://webhooks.example.test/webhooks/twilio/sms"
    PARAMS = {"MessageSid": "SM123", "From": "+15551234567", "Body": "Hi"}

    def test_valid(self, twilio):
        signature = RequestValidator(settings.TWILIO_AUTH_TOKEN).compute_signature(self.URL, self.PARAMS)

        assert twilio.validate_signature(signature, self.URL, self.PARAMS)

    @pytest.mark.parametrize("signature", [None, "", "bogus"])
    def test_invalid(self, twilio, signature):
        assert not twilio.validate_signature(signature, self.URL, self.PARAMS)

    def test_tampered_params(self, twilio):
        signature = RequestValidator(settings.TWILIO_AUTH_TOKEN).compute_signature(self.URL, self.PARAMS)

        assert not twilio.validate_signature(signature, self.URL, {**self.PARAMS, "Body": "Bye"})
