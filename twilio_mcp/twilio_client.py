"""Twilio transport: outbound sends, message lookups and webhook signature checks."""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Mapping, Optional

from twilio.request_validator import RequestValidator
from twilio.rest import Client

from twilio_mcp.config import Settings, settings
from twilio_mcp.errors import MmsDisabledError

logger = logging.getLogger(__name__)


class TwilioTransport:
    """
    Thin wrapper over the Twilio SDK.

    Provider errors (TwilioRestException) are not caught here; they propagate
    to the caller unchanged.
    """

    def __init__(self, config: Settings, client: Optional[Client] = None):
        self.config = config
        self.client = client or Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
        self.validator = RequestValidator(config.TWILIO_AUTH_TOKEN)
        self.default_from = config.TWILIO_PHONE_NUMBER

    def send_sms(self, to: str, body: str, from_: Optional[str] = None):
        logger.info(f"Sending SMS to {to}")
        return self.client.messages.create(
            to=to,
            from_=from_ or self.default_from,
            body=body,
        )

    def send_mms(self, to: str, body: str, media_urls: list[str], from_: Optional[str] = None):
        if not self.config.ENABLE_MMS:
            raise MmsDisabledError()
        logger.info(f"Sending MMS to {to} with {len(media_urls)} attachment(s)")
        return self.client.messages.create(
            to=to,
            from_=from_ or self.default_from,
            body=body,
            media_url=media_urls,
        )

    def fetch_message(self, message_sid: str):
        return self.client.messages(message_sid).fetch()

    def list_messages(
        self,
        to: Optional[str] = None,
        from_: Optional[str] = None,
        sent_after: Optional[datetime] = None,
        limit: int = 50,
    ) -> list:
        filters = {"limit": limit}
        if to:
            filters["to"] = to
        if from_:
            filters["from_"] = from_
        if sent_after:
            filters["date_sent_after"] = sent_after
        return self.client.messages.list(**filters)

    def validate_signature(self, signature: Optional[str], url: str, params: Mapping[str, str]) -> bool:
        """Check an X-Twilio-Signature header against the full webhook URL and form fields."""
        if not signature:
            return False
        return self.validator.validate(url, dict(params), signature)


@lru_cache()
def get_transport() -> TwilioTransport:
    """Shared transport built from the global settings; also a FastAPI dependency."""
    return TwilioTransport(settings)
