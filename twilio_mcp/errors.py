"""
Error taxonomy shared by the tool server and the webhook receiver.

Transport failures are not wrapped: exceptions raised by the Twilio SDK
propagate unchanged to the tool dispatcher.
"""

from pydantic import ValidationError


class TwilioMcpError(Exception):
    """Base class for errors raised by this service."""


class ToolValidationError(TwilioMcpError, ValueError):
    """Raised when tool arguments fail validation, before any store or transport call."""

    def __init__(self, tool: str, error: ValidationError) -> None:
        details = "; ".join(
            f"{'.'.join(str(part) for part in item['loc']) or 'arguments'}: {item['msg']}"
            for item in error.errors()
        )
        super().__init__(f"Invalid arguments for {tool}: {details}")
        self.tool = tool
        self.errors = error.errors()


class ConversationNotFoundError(TwilioMcpError, LookupError):
    """Raised when a conversation id does not exist."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class MessageNotFoundError(TwilioMcpError, LookupError):
    """Raised when a message SID is unknown to the provider."""

    def __init__(self, message_sid: str) -> None:
        super().__init__(f"Message {message_sid} not found")
        self.message_sid = message_sid


class AutoCreateDisabledError(TwilioMcpError):
    """Raised on the outbound path when no conversation exists and auto-creation is off."""

    def __init__(self) -> None:
        super().__init__("No conversation found and auto-creation is disabled")


class MmsDisabledError(TwilioMcpError):
    """Raised before any network call when MMS sending is disabled."""

    def __init__(self) -> None:
        super().__init__("MMS is not enabled. Set ENABLE_MMS=true in environment.")
