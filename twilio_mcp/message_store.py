"""
Message storage: SMS/MMS messages linked to conversations.

Reading orders differ on purpose: get_by_conversation returns a thread
oldest-first, query returns recent activity newest-first.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from twilio_mcp.models import Message
from twilio_mcp.schemas import Direction, MessageRecord, NewMessage
from twilio_mcp.utils import from_db_datetime, to_db_datetime, utc_now

logger = logging.getLogger(__name__)


class MessageStore:
    """Persists messages keyed by Twilio SID. Messages are created once, never upserted."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, message: NewMessage) -> MessageRecord:
        """
        Store a new message.

        Args:
            message: Message fields; timestamp defaults to now

        Returns:
            The stored message

        Raises:
            sqlalchemy.exc.IntegrityError: if the SID already exists or the
                conversation does not
        """
        timestamp = message.timestamp or utc_now()
        row = Message(
            message_sid=message.message_sid,
            conversation_id=message.conversation_id,
            direction=message.direction.value,
            from_number=message.from_number,
            to_number=message.to_number,
            body=message.body,
            media_urls=list(message.media_urls) if message.media_urls is not None else None,
            timestamp=to_db_datetime(timestamp),
            status=message.status,
            error_code=message.error_code,
            error_message=message.error_message,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            f"Message stored: sid={message.message_sid}, "
            f"conversation={message.conversation_id}, direction={message.direction.value}"
        )
        return self._to_record(row)

    def get_by_sid(self, message_sid: str) -> Optional[MessageRecord]:
        row = self.db.get(Message, message_sid)
        return self._to_record(row) if row else None

    def get_by_conversation(self, conversation_id: str, limit: int = 100) -> list[MessageRecord]:
        """Messages of a conversation in reading order (oldest first)."""
        rows = (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.timestamp.asc())
            .limit(limit)
            .all()
        )
        return [self._to_record(row) for row in rows]

    def query(
        self,
        from_number: Optional[str] = None,
        to_number: Optional[str] = None,
        conversation_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50,
    ) -> list[MessageRecord]:
        """
        Query messages with ANDed filters, newest first.

        Args:
            from_number: Exact sender match
            to_number: Exact recipient match
            conversation_id: Exact conversation match
            since: Only messages with timestamp >= since
            limit: Maximum number of messages to return
        """
        logger.debug(
            f"Querying messages: from={from_number}, to={to_number}, "
            f"conversation={conversation_id}, since={since}, limit={limit}"
        )
        query = self.db.query(Message)

        if from_number:
            query = query.filter(Message.from_number == from_number)
        if to_number:
            query = query.filter(Message.to_number == to_number)
        if conversation_id:
            query = query.filter(Message.conversation_id == conversation_id)
        if since:
            query = query.filter(Message.timestamp >= to_db_datetime(since))

        rows = query.order_by(Message.timestamp.desc()).limit(limit).all()
        return [self._to_record(row) for row in rows]

    def update_status(
        self,
        message_sid: str,
        status: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        Overwrite the delivery status and both error fields.

        Omitted error fields are cleared, so a later success wipes an earlier failure.

        Returns:
            True if a message with this SID was updated
        """
        result = self.db.execute(
            update(Message)
            .where(Message.message_sid == message_sid)
            .values({
                Message.status: status,
                Message.error_code: error_code or None,
                Message.error_message: error_message or None,
            })
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        updated = result.rowcount > 0
        if not updated:
            logger.warning(f"Status update for unknown message: {message_sid}")
        return updated

    def get_conversation_message_count(self, conversation_id: str) -> int:
        return (
            self.db.query(func.count(Message.message_sid))
            .filter(Message.conversation_id == conversation_id)
            .scalar()
            or 0
        )

    @staticmethod
    def _to_record(row: Message) -> MessageRecord:
        return MessageRecord(
            message_sid=row.message_sid,
            conversation_id=row.conversation_id,
            direction=Direction(row.direction),
            from_number=row.from_number,
            to_number=row.to_number,
            body=row.body,
            media_urls=list(row.media_urls) if row.media_urls is not None else None,
            timestamp=from_db_datetime(row.timestamp),
            status=row.status,
            error_code=row.error_code,
            error_message=row.error_message,
        )
