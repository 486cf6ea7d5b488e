"""
Pytest configuration and shared fixtures.

Test settings are injected into the environment before any twilio_mcp module
reads them; a real .env or exported variables take precedence.
"""

import os
import tempfile
import uuid
from types import SimpleNamespace

_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"twilio-mcp-test-{os.getpid()}.db")

os.environ.setdefault("TWILIO_ACCOUNT_SID", "AC" + "0" * 32)
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-auth-token-0123456789abcdef-0123")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+15550000000")
os.environ.setdefault("WEBHOOK_BASE_URL", "https://webhooks.example.test")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB_PATH}")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from twilio.base.exceptions import TwilioRestException

# Clear settings cache before any app imports to ensure test env vars are used
from twilio_mcp.config import get_settings
get_settings.cache_clear()

from twilio_mcp.config import settings
from twilio_mcp.storage import Base, SessionLocal, engine
from twilio_mcp import models  # noqa: F401  registers tables on Base.metadata


class FakeTransport:
    """In-memory stand-in for TwilioTransport; records every send."""

    def __init__(self):
        self.sent = []
        self.messages = {}
        self.fail_with = None

    def send_sms(self, to, body, from_=None):
        return self._send(to, body, from_, None)

    def send_mms(self, to, body, media_urls, from_=None):
        return self._send(to, body, from_, media_urls)

    def _send(self, to, body, from_, media_urls):
        if self.fail_with is not None:
            raise self.fail_with
        prefix = "MM" if media_urls else "SM"
        message = SimpleNamespace(
            sid=f"{prefix}{uuid.uuid4().hex}",
            status="queued",
            to=to,
            from_=from_ or settings.TWILIO_PHONE_NUMBER,
            body=body,
            date_updated=None,
            error_code=None,
            error_message=None,
        )
        self.sent.append({"to": to, "body": body, "from_": from_, "media_urls": media_urls})
        self.messages[message.sid] = message
        return message

    def fetch_message(self, message_sid):
        if message_sid not in self.messages:
            raise TwilioRestException(
                404,
                f"https://api.twilio.com/2010-04-01/Accounts/AC/Messages/{message_sid}.json",
                msg="The requested resource was not found",
            )
        return self.messages[message_sid]


@pytest.fixture(scope="function")
def db():
    """Session on a fresh schema for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def transport():
    return FakeTransport()
