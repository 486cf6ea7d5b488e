"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For domain records and tool request/response schemas, see schemas.py.
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text

from twilio_mcp.storage import Base


class Conversation(Base):
    """
    A thread between a set of phone numbers.

    Table: conversations
    participants holds the canonical key (sorted, pipe-joined numbers).
    """
    __tablename__ = "conversations"

    id = Column(String, primary_key=True)
    participants = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)  # naive UTC
    last_activity = Column(DateTime, nullable=False, index=True)  # naive UTC
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=False, default=dict)
    status = Column(String, nullable=False, default="active")


class Message(Base):
    """
    An SMS/MMS message linked to a conversation.

    Table: messages
    Primary Key: message_sid (Twilio SID)
    """
    __tablename__ = "messages"

    message_sid = Column(String, primary_key=True)
    conversation_id = Column(String, ForeignKey("conversations.id"), nullable=False, index=True)
    direction = Column(String, nullable=False)
    from_number = Column(String, nullable=False, index=True)
    to_number = Column(String, nullable=False, index=True)
    body = Column(Text, nullable=False, default="")
    # none_as_null keeps "no attachments" as SQL NULL instead of JSON null
    media_urls = Column(JSON(none_as_null=True), nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)  # naive UTC
    status = Column(String, nullable=False)
    error_code = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
