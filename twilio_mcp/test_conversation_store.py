"""
Tests for ConversationStore.

Tests cover:
- Creation defaults and participant normalization
- Order-independent participant lookup
- Archive exclusion from participant lookup
- Most-recently-active wins among duplicates
- Metadata replacement and not-found signalling
"""

import time
import uuid
from itertools import permutations

import pytest

from twilio_mcp.conversation_store import ConversationStore
from twilio_mcp.errors import ConversationNotFoundError
from twilio_mcp.schemas import ConversationStatus

ALICE = "+15551234567"
BOB = "+15559876543"
CAROL = "+15555550123"


@pytest.fixture
def store(db):
    return ConversationStore(db)


class TestCreate:
    def test_defaults(self, store):
        conversation = store.create([BOB, ALICE])

        assert uuid.UUID(conversation.id)
        assert conversation.status is ConversationStatus.ACTIVE
        assert conversation.metadata == {}
        assert conversation.created_at == conversation.last_activity
        assert conversation.created_at.tzinfo is not None

    def test_get_by_id_returns_sorted_participants(self, store):
        conversation = store.create(["+15559876543", "+15551234567"])

        fetched = store.get_by_id(conversation.id)
        assert fetched.participants == ["+15551234567", "+15559876543"]

    def test_metadata_is_stored(self, store):
        metadata = {"campaign": "support", "tags": ["vip", "priority"], "nested": {"a": 1}}
        conversation = store.create([ALICE, BOB], metadata)

        assert store.get_by_id(conversation.id).metadata == metadata

    def test_create_twice_yields_distinct_conversations(self, store):
        first = store.create([ALICE, BOB])
        second = store.create([ALICE, BOB])

        assert first.id != second.id


class TestFindByParticipants:
    def test_bidirectional(self, store):
        conversation = store.create([ALICE, BOB])

        assert store.find_by_participants([ALICE, BOB]).id == conversation.id
        assert store.find_by_participants([BOB, ALICE]).id == conversation.id

    def test_all_permutations_match(self, store):
        conversation = store.create([ALICE, BOB, CAROL])

        for order in permutations([ALICE, BOB, CAROL]):
            assert store.find_by_participants(list(order)).id == conversation.id

    def test_subset_does_not_match(self, store):
        store.create([ALICE, BOB, CAROL])

        assert store.find_by_participants([ALICE, BOB]) is None

    def test_not_found(self, store):
        assert store.find_by_participants([ALICE, BOB]) is None

    def test_most_recently_active_wins(self, store):
        older = store.create([ALICE, BOB])
        newer = store.create([ALICE, BOB])
        assert store.find_by_participants([ALICE, BOB]).id in {older.id, newer.id}

        time.sleep(0.01)
        store.update_last_activity(older.id)
        assert store.find_by_participants([BOB, ALICE]).id == older.id


class TestArchive:
    def test_archived_excluded_from_lookup(self, store):
        conversation = store.create([ALICE, BOB])
        store.archive(conversation.id)

        assert store.find_by_participants([ALICE, BOB]) is None
        archived = store.get_by_id(conversation.id)
        assert archived is not None
        assert archived.status is ConversationStatus.ARCHIVED

    def test_new_conversation_after_archive(self, store):
        archived = store.create([ALICE, BOB])
        store.archive(archived.id)
        fresh = store.create([BOB, ALICE])

        assert store.find_by_participants([ALICE, BOB]).id == fresh.id

    def test_archive_unknown_id(self, store):
        with pytest.raises(ConversationNotFoundError):
            store.archive(str(uuid.uuid4()))


class TestUpdates:
    def test_update_last_activity(self, store):
        conversation = store.create([ALICE, BOB])
        time.sleep(0.01)
        store.update_last_activity(conversation.id)

        fetched = store.get_by_id(conversation.id)
        assert fetched.last_activity > conversation.last_activity
        assert fetched.created_at == conversation.created_at

    def test_update_last_activity_unknown_id(self, store):
        missing = str(uuid.uuid4())
        with pytest.raises(ConversationNotFoundError, match=missing):
            store.update_last_activity(missing)

    def test_update_metadata_replaces(self, store):
        conversation = store.create([ALICE, BOB], {"a": 1, "b": 2})
        store.update_metadata(conversation.id, {"c": 3})

        assert store.get_by_id(conversation.id).metadata == {"c": 3}

    def test_update_metadata_unknown_id(self, store):
        with pytest.raises(ConversationNotFoundError):
            store.update_metadata(str(uuid.uuid4()), {"c": 3})


class TestListActive:
    def test_ordered_by_last_activity_desc(self, store):
        first = store.create([ALICE, BOB])
        time.sleep(0.01)
        second = store.create([ALICE, CAROL])
        time.sleep(0.01)
        store.update_last_activity(first.id)

        ids = [c.id for c in store.list_active()]
        assert ids == [first.id, second.id]

    def test_excludes_archived_and_respects_limit(self, store):
        conversations = [store.create([ALICE, f"+1555000000{i}"]) for i in range(3)]
        store.archive(conversations[0].id)

        active = store.list_active()
        assert {c.id for c in active} == {conversations[1].id, conversations[2].id}
        assert len(store.list_active(limit=1)) == 1
