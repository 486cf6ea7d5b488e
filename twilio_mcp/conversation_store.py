"""
Conversation storage.

Conversations are keyed by their participant set: the participants column
holds the canonical key (sorted numbers joined with '|'), so [A, B] and
[B, A] resolve to the same active conversation.
"""

import logging
import uuid
from typing import Any, Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from twilio_mcp.errors import ConversationNotFoundError
from twilio_mcp.models import Conversation
from twilio_mcp.schemas import ConversationRecord, ConversationStatus
from twilio_mcp.utils import (
    from_db_datetime,
    participants_key,
    split_participants_key,
    to_db_datetime,
    utc_now,
)

logger = logging.getLogger(__name__)


class ConversationStore:
    """Persists conversation threads. All writes commit immediately."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        participants: Iterable[str],
        metadata: Optional[dict[str, Any]] = None,
    ) -> ConversationRecord:
        """
        Insert a new active conversation.

        Never checks for an existing match; callers wanting find-or-create
        must call find_by_participants first.
        """
        now = to_db_datetime(utc_now())
        conversation = Conversation(
            id=str(uuid.uuid4()),
            participants=participants_key(participants),
            created_at=now,
            last_activity=now,
            meta=metadata or {},
            status=ConversationStatus.ACTIVE.value,
        )
        self.db.add(conversation)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Conversation created: {conversation.id}")
        return self._to_record(conversation)

    def find_by_participants(self, participants: Iterable[str]) -> Optional[ConversationRecord]:
        """Most recently active conversation for this exact participant set, ignoring archived ones."""
        key = participants_key(participants)
        row = (
            self.db.query(Conversation)
            .filter(
                Conversation.participants == key,
                Conversation.status == ConversationStatus.ACTIVE.value,
            )
            .order_by(Conversation.last_activity.desc())
            .first()
        )
        logger.debug(f"Participant lookup {key}: {'found' if row else 'not found'}")
        return self._to_record(row) if row else None

    def get_by_id(self, conversation_id: str) -> Optional[ConversationRecord]:
        row = self.db.get(Conversation, conversation_id)
        return self._to_record(row) if row else None

    def update_last_activity(self, conversation_id: str) -> None:
        self._update(conversation_id, {Conversation.last_activity: to_db_datetime(utc_now())})

    def update_metadata(self, conversation_id: str, metadata: dict[str, Any]) -> None:
        """Replace (not merge) the conversation's metadata."""
        self._update(conversation_id, {Conversation.meta: metadata})

    def archive(self, conversation_id: str) -> None:
        """Archived conversations stay readable by id but drop out of participant lookup."""
        self._update(conversation_id, {Conversation.status: ConversationStatus.ARCHIVED.value})
        logger.info(f"Conversation archived: {conversation_id}")

    def list_active(self, limit: int = 50) -> list[ConversationRecord]:
        rows = (
            self.db.query(Conversation)
            .filter(Conversation.status == ConversationStatus.ACTIVE.value)
            .order_by(Conversation.last_activity.desc())
            .limit(limit)
            .all()
        )
        return [self._to_record(row) for row in rows]

    def _update(self, conversation_id: str, values: dict) -> None:
        result = self.db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise ConversationNotFoundError(conversation_id)
        self.db.commit()

    @staticmethod
    def _to_record(row: Conversation) -> ConversationRecord:
        return ConversationRecord(
            id=row.id,
            participants=split_participants_key(row.participants),
            created_at=from_db_datetime(row.created_at),
            last_activity=from_db_datetime(row.last_activity),
            metadata=row.meta or {},
            status=ConversationStatus(row.status),
        )
