import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")

# Delimiter for the canonical participants key; never part of an E.164 number
PARTICIPANTS_DELIMITER = "|"


def is_e164(value: str) -> bool:
    """Return True if value looks like an E.164 phone number (+ and up to 15 digits)."""
    return bool(E164_PATTERN.match(value))


def participants_key(participants: Iterable[str]) -> str:
    """
    Build the canonical lookup key for a participant set.

    The key is identical for any ordering of the same participants:
    ['+15559876543', '+15551234567'] -> '+15551234567|+15559876543'
    """
    return PARTICIPANTS_DELIMITER.join(sorted(participants))


def split_participants_key(key: str) -> list[str]:
    return key.split(PARTICIPANTS_DELIMITER)


# =============================================================================
# Message SIDs
# =============================================================================

class SidKind(str, Enum):
    """Twilio message SID families, keyed by their two-letter prefix."""
    SMS = "SM"
    MMS = "MM"

    @property
    def channel(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class MessageSid:
    kind: SidKind
    value: str

    def __str__(self) -> str:
        return self.value


def parse_message_sid(value: str) -> MessageSid:
    """
    Parse a Twilio message SID into its tagged form.

    Raises:
        ValueError: if the prefix is not SM/MM or nothing follows it
    """
    prefix, suffix = value[:2], value[2:]
    try:
        kind = SidKind(prefix)
    except ValueError:
        raise ValueError("Message SID must start with MM or SM") from None
    if not suffix:
        raise ValueError("Message SID must have characters after the MM/SM prefix")
    return MessageSid(kind=kind, value=value)


# =============================================================================
# Time helpers
# =============================================================================

def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_db_datetime(value: datetime) -> datetime:
    """Normalize a datetime to the naive UTC form stored in SQLite."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive datetime read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
