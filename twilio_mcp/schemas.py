"""
Pydantic schemas for domain records and tool validation.

This module contains:
- Domain records returned by the conversation and message stores
- Tool argument models (validated before any store or transport call)
- Tool result models (serialized with camelCase keys)
- Webhook/health response models
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from twilio_mcp.utils import is_e164, parse_message_sid


# =============================================================================
# Domain Records
# =============================================================================

class ConversationStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class ConversationRecord(BaseModel):
    """A conversation as read from the store; participants are sorted."""
    id: str
    participants: list[str]
    created_at: datetime
    last_activity: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)
    status: ConversationStatus = ConversationStatus.ACTIVE


class NewMessage(BaseModel):
    """Input for MessageStore.create; timestamp defaults to now when omitted."""
    message_sid: str
    conversation_id: str
    direction: Direction
    from_number: str
    to_number: str
    body: str = ""
    media_urls: Optional[list[str]] = None
    timestamp: Optional[datetime] = None
    status: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class MessageRecord(BaseModel):
    """A stored message. media_urls is None when the message had no attachments."""
    message_sid: str
    conversation_id: str
    direction: Direction
    from_number: str
    to_number: str
    body: str
    media_urls: Optional[list[str]] = None
    timestamp: datetime
    status: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None


# =============================================================================
# Tool Argument Models
# =============================================================================

def _check_e164(value: Optional[str], field_name: str) -> Optional[str]:
    if value is not None and not is_e164(value):
        raise ValueError(f"{field_name} must be in E.164 format (+1234567890)")
    return value


class ToolArguments(BaseModel):
    """Base for tool arguments: camelCase on the wire, snake_case in code."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendSmsArgs(ToolArguments):
    to: str = Field(..., description="Recipient phone number in E.164 format (e.g., +1234567890)")
    message: str = Field(
        ...,
        min_length=1,
        max_length=1600,
        description="SMS message content (1-1600 characters)",
    )
    # 'from' is a reserved word in Python, so we use alias
    from_number: Optional[str] = Field(
        None,
        alias="from",
        description="Optional: Sender phone number (uses default Twilio number if not provided)",
    )
    conversation_id: Optional[UUID] = Field(
        None,
        description="Optional: UUID of existing conversation to link this message to",
    )
    media_urls: Optional[list[str]] = Field(
        None,
        min_length=1,
        max_length=10,
        description="Optional: Public media URLs to attach; sends an MMS",
    )

    @field_validator("to", "from_number")
    @classmethod
    def validate_e164_format(cls, v: Optional[str], info) -> Optional[str]:
        return _check_e164(v, info.field_name)

    @field_validator("media_urls")
    @classmethod
    def validate_media_urls(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        for url in v or []:
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"media URL must be http(s): {url}")
        return v


class GetInboundMessagesArgs(ToolArguments):
    from_number: Optional[str] = Field(
        None,
        alias="from",
        description="Filter by sender phone number in E.164 format",
    )
    to: Optional[str] = Field(
        None,
        description="Filter by recipient phone number (your Twilio number)",
    )
    conversation_id: Optional[UUID] = Field(None, description="Filter by conversation UUID")
    since: Optional[datetime] = Field(
        None,
        description="ISO 8601 timestamp to filter messages after this date",
    )
    limit: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum number of messages to return (1-1000, default: 50)",
    )

    @field_validator("to", "from_number")
    @classmethod
    def validate_e164_format(cls, v: Optional[str], info) -> Optional[str]:
        return _check_e164(v, info.field_name)


class CreateConversationArgs(ToolArguments):
    participants: list[str] = Field(
        ...,
        min_length=2,
        description="Array of phone numbers in E.164 format (minimum 2 participants)",
    )
    metadata: Optional[dict[str, Any]] = Field(
        None,
        description="Optional: Custom metadata to attach to the conversation",
    )

    @field_validator("participants")
    @classmethod
    def validate_participants(cls, v: list[str]) -> list[str]:
        for number in v:
            _check_e164(number, "participants")
        return v


class GetConversationThreadArgs(ToolArguments):
    conversation_id: UUID = Field(..., description="UUID of the conversation to retrieve")
    include_context: bool = Field(
        default=False,
        description="Include AI context summary (default: false)",
    )


class GetMessageStatusArgs(ToolArguments):
    message_sid: str = Field(..., description="Twilio message SID (starts with MM or SM)")

    @field_validator("message_sid")
    @classmethod
    def validate_sid(cls, v: str) -> str:
        return parse_message_sid(v).value


class ListConversationsArgs(ToolArguments):
    limit: int = Field(
        default=50,
        ge=1,
        le=200,
        description="Maximum number of conversations to return (1-200, default: 50)",
    )


class ArchiveConversationArgs(ToolArguments):
    conversation_id: UUID = Field(..., description="UUID of the conversation to archive")


# =============================================================================
# Tool Result Models
# =============================================================================

class ToolResultModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendSmsResult(ToolResultModel):
    message_sid: str
    status: str
    to: str
    from_number: str = Field(..., alias="from")
    conversation_id: str
    timestamp: datetime


class MessageView(ToolResultModel):
    message_sid: str
    direction: Direction
    from_number: str = Field(..., alias="from")
    to: str
    body: str
    media_urls: Optional[list[str]] = None
    timestamp: datetime
    conversation_id: str
    status: str

    @classmethod
    def from_record(cls, record: MessageRecord) -> "MessageView":
        return cls(
            message_sid=record.message_sid,
            direction=record.direction,
            from_number=record.from_number,
            to=record.to_number,
            body=record.body,
            media_urls=record.media_urls,
            timestamp=record.timestamp,
            conversation_id=record.conversation_id,
            status=record.status,
        )


class InboundMessagesResult(ToolResultModel):
    messages: list[MessageView] = Field(default_factory=list)
    total_count: int = Field(..., ge=0)


class ConversationCreatedResult(ToolResultModel):
    conversation_id: str
    participants: list[str]
    created_at: datetime
    metadata: dict[str, Any]


class ThreadContext(ToolResultModel):
    summary: str
    last_activity: datetime
    message_count: int


class ConversationThreadResult(ToolResultModel):
    conversation_id: str
    participants: list[str]
    status: ConversationStatus
    messages: list[MessageView] = Field(default_factory=list)
    context: Optional[ThreadContext] = None


class MessageStatusResult(ToolResultModel):
    message_sid: str
    channel: str
    status: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    timestamp: datetime
    to: str
    from_number: Optional[str] = Field(None, alias="from")


class ConversationSummary(ToolResultModel):
    conversation_id: str
    participants: list[str]
    created_at: datetime
    last_activity: datetime
    status: ConversationStatus
    metadata: dict[str, Any]

    @classmethod
    def from_record(cls, record: ConversationRecord) -> "ConversationSummary":
        return cls(
            conversation_id=record.id,
            participants=record.participants,
            created_at=record.created_at,
            last_activity=record.last_activity,
            status=record.status,
            metadata=record.metadata,
        )


class ConversationListResult(ToolResultModel):
    conversations: list[ConversationSummary] = Field(default_factory=list)
    total_count: int = Field(..., ge=0)


class ArchiveConversationResult(ToolResultModel):
    conversation_id: str
    status: ConversationStatus


# =============================================================================
# HTTP Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Response model for the liveness probe."""
    status: str = Field(..., description="Health status")
    service: str = Field(default="twilio-mcp-webhook", description="Service name")
    timestamp: datetime = Field(..., description="Server time (UTC)")


class ReadinessResponse(BaseModel):
    """Response model for the readiness probe."""
    status: str = Field(..., description="Readiness status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
