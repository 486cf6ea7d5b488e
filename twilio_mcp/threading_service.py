"""
Conversation threading shared by the outbound tool path and the inbound webhook path.

For each message event: resolve the conversation for the participant pair
(find, or create when auto-creation is on), store the message against it,
then touch the conversation's last activity.
"""

import logging
from datetime import datetime
from threading import Lock
from typing import Any, Optional

from sqlalchemy.orm import Session

from twilio_mcp.conversation_store import ConversationStore
from twilio_mcp.errors import AutoCreateDisabledError
from twilio_mcp.message_store import MessageStore
from twilio_mcp.schemas import ConversationRecord, Direction, MessageRecord, NewMessage

logger = logging.getLogger(__name__)

# Serializes find-then-create so racing entry points in this process share one conversation
_RESOLVE_LOCK = Lock()


def resolve_conversation(
    db: Session,
    participants: list[str],
    auto_create: bool,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[ConversationRecord]:
    """
    Find the active conversation for participants, creating it when allowed.

    Returns:
        The conversation, or None when none exists and auto_create is False
    """
    conversations = ConversationStore(db)
    with _RESOLVE_LOCK:
        conversation = conversations.find_by_participants(participants)
        if conversation is None and auto_create:
            conversation = conversations.create(participants, metadata)
            logger.info(f"Created conversation {conversation.id} for {' <-> '.join(participants)}")
    return conversation


def _store_and_touch(db: Session, conversation_id: str, message: NewMessage) -> MessageRecord:
    record = MessageStore(db).create(message)
    ConversationStore(db).update_last_activity(conversation_id)
    return record


def record_outbound_message(
    db: Session,
    *,
    conversation_id: str,
    message_sid: str,
    from_number: str,
    to_number: str,
    body: str,
    status: str,
    media_urls: Optional[list[str]] = None,
    timestamp: Optional[datetime] = None,
) -> MessageRecord:
    """Store a sent message against an already-resolved conversation."""
    return _store_and_touch(
        db,
        conversation_id,
        NewMessage(
            message_sid=message_sid,
            conversation_id=conversation_id,
            direction=Direction.OUTBOUND,
            from_number=from_number,
            to_number=to_number,
            body=body,
            media_urls=media_urls,
            timestamp=timestamp,
            status=status,
        ),
    )


def resolve_outbound_conversation(
    db: Session,
    from_number: str,
    to_number: str,
    auto_create: bool,
) -> ConversationRecord:
    """
    Resolve the conversation for an outbound send before the transport call.

    Raises:
        AutoCreateDisabledError: no conversation exists and auto-creation is off
    """
    conversation = resolve_conversation(db, [from_number, to_number], auto_create)
    if conversation is None:
        raise AutoCreateDisabledError()
    return conversation


def record_inbound_message(
    db: Session,
    *,
    message_sid: str,
    from_number: str,
    to_number: str,
    body: str,
    auto_create: bool,
    media_urls: Optional[list[str]] = None,
) -> tuple[Optional[MessageRecord], bool]:
    """
    Thread and store a message received from the provider.

    Provider retries are idempotent: a SID that is already stored is
    returned as-is without touching the conversation.

    Returns:
        Tuple of (message, is_duplicate). message is None when no
        conversation exists and auto-creation is off (the message is
        accepted but not stored).
    """
    existing = MessageStore(db).get_by_sid(message_sid)
    if existing is not None:
        logger.info(f"Duplicate inbound message ignored: {message_sid}")
        return existing, True

    conversation = resolve_conversation(
        db,
        [from_number, to_number],
        auto_create,
        metadata={"source": "inbound_sms", "firstMessage": body},
    )
    if conversation is None:
        logger.warning(
            f"No conversation for {from_number} -> {to_number} and auto-creation is disabled; "
            f"message {message_sid} not stored"
        )
        return None, False

    message = _store_and_touch(
        db,
        conversation.id,
        NewMessage(
            message_sid=message_sid,
            conversation_id=conversation.id,
            direction=Direction.INBOUND,
            from_number=from_number,
            to_number=to_number,
            body=body,
            media_urls=media_urls,
            status="received",
        ),
    )
    return message, False
