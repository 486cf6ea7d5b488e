"""
MCP tool operations.

Each tool validates its arguments with a pydantic model before touching the
stores or the transport. dispatch_tool runs a tool in its own database session
and turns every failure into an error result instead of raising.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session
from twilio.base.exceptions import TwilioRestException

from twilio_mcp.config import settings
from twilio_mcp.conversation_store import ConversationStore
from twilio_mcp.errors import (
    ConversationNotFoundError,
    MessageNotFoundError,
    MmsDisabledError,
    ToolValidationError,
)
from twilio_mcp.message_store import MessageStore
from twilio_mcp.metrics import record_tool_call
from twilio_mcp.schemas import (
    ArchiveConversationArgs,
    ArchiveConversationResult,
    ConversationCreatedResult,
    ConversationListResult,
    ConversationStatus,
    ConversationSummary,
    ConversationThreadResult,
    CreateConversationArgs,
    GetConversationThreadArgs,
    GetInboundMessagesArgs,
    GetMessageStatusArgs,
    InboundMessagesResult,
    ListConversationsArgs,
    MessageStatusResult,
    MessageView,
    SendSmsArgs,
    SendSmsResult,
    ThreadContext,
    ToolArguments,
    ToolResultModel,
)
from twilio_mcp.storage import SessionLocal
from twilio_mcp.threading_service import record_outbound_message, resolve_outbound_conversation
from twilio_mcp.twilio_client import TwilioTransport, get_transport
from twilio_mcp.utils import parse_message_sid, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Tool Handlers
# =============================================================================

def send_sms(args: SendSmsArgs, db: Session, transport: TwilioTransport) -> SendSmsResult:
    """Send an SMS (or MMS when media URLs are given) and thread it into a conversation."""
    if args.media_urls and not settings.ENABLE_MMS:
        raise MmsDisabledError()

    from_number = args.from_number or settings.TWILIO_PHONE_NUMBER

    if args.conversation_id:
        conversation_id = str(args.conversation_id)
        if ConversationStore(db).get_by_id(conversation_id) is None:
            raise ConversationNotFoundError(conversation_id)
    else:
        conversation_id = resolve_outbound_conversation(
            db, from_number, args.to, settings.AUTO_CREATE_CONVERSATIONS
        ).id

    if args.media_urls:
        sent = transport.send_mms(args.to, args.message, args.media_urls, from_=args.from_number)
    else:
        sent = transport.send_sms(args.to, args.message, from_=args.from_number)

    message = record_outbound_message(
        db,
        conversation_id=conversation_id,
        message_sid=sent.sid,
        from_number=sent.from_ or from_number,
        to_number=sent.to or args.to,
        body=sent.body if sent.body is not None else args.message,
        status=str(sent.status),
        media_urls=args.media_urls,
    )

    return SendSmsResult(
        message_sid=message.message_sid,
        status=message.status,
        to=message.to_number,
        from_number=message.from_number,
        conversation_id=message.conversation_id,
        timestamp=message.timestamp,
    )


def get_inbound_messages(
    args: GetInboundMessagesArgs, db: Session, transport: TwilioTransport
) -> InboundMessagesResult:
    messages = MessageStore(db).query(
        from_number=args.from_number,
        to_number=args.to,
        conversation_id=str(args.conversation_id) if args.conversation_id else None,
        since=args.since,
        limit=args.limit,
    )
    return InboundMessagesResult(
        messages=[MessageView.from_record(message) for message in messages],
        total_count=len(messages),
    )


def create_conversation(
    args: CreateConversationArgs, db: Session, transport: TwilioTransport
) -> ConversationCreatedResult:
    conversation = ConversationStore(db).create(args.participants, args.metadata)
    return ConversationCreatedResult(
        conversation_id=conversation.id,
        participants=conversation.participants,
        created_at=conversation.created_at,
        metadata=conversation.metadata,
    )


def get_conversation_thread(
    args: GetConversationThreadArgs, db: Session, transport: TwilioTransport
) -> ConversationThreadResult:
    conversation_id = str(args.conversation_id)
    conversation = ConversationStore(db).get_by_id(conversation_id)
    if conversation is None:
        raise ConversationNotFoundError(conversation_id)

    messages = MessageStore(db)
    result = ConversationThreadResult(
        conversation_id=conversation.id,
        participants=conversation.participants,
        status=conversation.status,
        messages=[MessageView.from_record(m) for m in messages.get_by_conversation(conversation_id)],
    )

    if args.include_context and settings.ENABLE_AI_CONTEXT:
        result.context = ThreadContext(
            summary=f"Conversation with {len(conversation.participants)} participants",
            last_activity=conversation.last_activity,
            message_count=messages.get_conversation_message_count(conversation_id),
        )

    return result


def get_message_status(
    args: GetMessageStatusArgs, db: Session, transport: TwilioTransport
) -> MessageStatusResult:
    sid = parse_message_sid(args.message_sid)
    try:
        message = transport.fetch_message(sid.value)
    except TwilioRestException as e:
        if e.status == 404:
            raise MessageNotFoundError(sid.value) from e
        raise

    return MessageStatusResult(
        message_sid=message.sid,
        channel=sid.kind.channel,
        status=str(message.status),
        error_code=str(message.error_code) if message.error_code is not None else None,
        error_message=message.error_message or None,
        timestamp=message.date_updated or utc_now(),
        to=message.to,
        from_number=message.from_ or None,
    )


def list_conversations(
    args: ListConversationsArgs, db: Session, transport: TwilioTransport
) -> ConversationListResult:
    conversations = ConversationStore(db).list_active(args.limit)
    return ConversationListResult(
        conversations=[ConversationSummary.from_record(c) for c in conversations],
        total_count=len(conversations),
    )


def archive_conversation(
    args: ArchiveConversationArgs, db: Session, transport: TwilioTransport
) -> ArchiveConversationResult:
    conversation_id = str(args.conversation_id)
    ConversationStore(db).archive(conversation_id)
    return ArchiveConversationResult(
        conversation_id=conversation_id,
        status=ConversationStatus.ARCHIVED,
    )


# =============================================================================
# Registry & Dispatch
# =============================================================================

@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    arguments: type[ToolArguments]
    handler: Callable[[Any, Session, TwilioTransport], ToolResultModel]

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.arguments.model_json_schema(by_alias=True)


@dataclass
class ToolResult:
    text: str
    is_error: bool = False


TOOLS: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            "send_sms",
            "Send an SMS message via Twilio. Automatically creates or links to a conversation thread. "
            "Pass mediaUrls to send an MMS.",
            SendSmsArgs,
            send_sms,
        ),
        ToolSpec(
            "get_inbound_messages",
            "Query received SMS/MMS messages from storage with optional filters.",
            GetInboundMessagesArgs,
            get_inbound_messages,
        ),
        ToolSpec(
            "create_conversation",
            "Initialize a new conversation thread between participants.",
            CreateConversationArgs,
            create_conversation,
        ),
        ToolSpec(
            "get_conversation_thread",
            "Retrieve full conversation history with all messages.",
            GetConversationThreadArgs,
            get_conversation_thread,
        ),
        ToolSpec(
            "get_message_status",
            "Check the delivery status of a sent message.",
            GetMessageStatusArgs,
            get_message_status,
        ),
        ToolSpec(
            "list_conversations",
            "List active conversations, most recently active first.",
            ListConversationsArgs,
            list_conversations,
        ),
        ToolSpec(
            "archive_conversation",
            "Archive a conversation so new messages between its participants start a fresh thread.",
            ArchiveConversationArgs,
            archive_conversation,
        ),
    )
}


def dispatch_tool(
    name: str,
    arguments: Optional[dict[str, Any]],
    transport: Optional[TwilioTransport] = None,
) -> ToolResult:
    """
    Run a tool by name.

    Returns:
        ToolResult with the JSON-encoded result, or an error result carrying
        "Error: <message>" when validation, lookup, policy or transport fails
    """
    spec = TOOLS.get(name)
    if spec is None:
        logger.warning(f"Unknown tool requested: {name}")
        record_tool_call("unknown", "error")
        return ToolResult(f"Error: Unknown tool: {name}", is_error=True)

    logger.info(f"Tool call: {name}")
    try:
        try:
            args = spec.arguments.model_validate(arguments or {})
        except ValidationError as e:
            raise ToolValidationError(name, e) from e

        with SessionLocal() as db:
            result = spec.handler(args, db, transport or get_transport())
    except ToolValidationError as e:
        logger.warning(str(e))
        record_tool_call(name, "error")
        return ToolResult(f"Error: {e}", is_error=True)
    except Exception as e:
        logger.exception(f"Tool {name} failed: {e}")
        record_tool_call(name, "error")
        return ToolResult(f"Error: {e}", is_error=True)

    record_tool_call(name, "success")
    payload = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    return ToolResult(json.dumps(payload, indent=2))
