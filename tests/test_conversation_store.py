import asyncio

import pytest

from tests.conftest import AlwaysConflictingStore, InterleavingStore, SlowStore
from twinlink.core.exceptions import ConcurrencyExceeded, InvalidArgument, NotFound, OperationTimeout
from twinlink.models.conversation import Conversation, Message, Participant, Session
from twinlink.storage.conversation_store import ConversationStore


def _seed(key):
    def seed(first: Message) -> Conversation:
        return Conversation(key=key, participants=["alice", "bob"], messages=[first])
    return seed


def _message(message_id: str, sender: str = "alice", recipient: str = "bob") -> Message:
    return Message(message_id=message_id, sender_id=sender, recipient_id=recipient, body=f"body {message_id}")


@pytest.mark.asyncio
async def test_first_append_seeds_document(conversation_store):
    outcome = await conversation_store.upsert_message("alice_bob", _message("m1"), seed_fn=_seed("alice_bob"))

    assert outcome.created is True
    assert outcome.duplicate is False
    stored = await conversation_store.load("alice_bob")
    assert [m.message_id for m in stored.messages] == ["m1"]


@pytest.mark.asyncio
async def test_append_is_idempotent_on_message_id(conversation_store, documents):
    await conversation_store.upsert_message("alice_bob", _message("m1"), seed_fn=_seed("alice_bob"))
    before = await documents.get("conversations", "alice_bob")

    again = await conversation_store.upsert_message("alice_bob", _message("m1"), seed_fn=_seed("alice_bob"))

    after = await documents.get("conversations", "alice_bob")
    assert again.duplicate is True
    assert again.stored_message.message_id == "m1"
    assert after.document.etag == before.document.etag
    assert (await conversation_store.load("alice_bob")).message_count == 1


@pytest.mark.asyncio
async def test_missing_document_without_seed_is_not_found(conversation_store):
    with pytest.raises(NotFound):
        await conversation_store.upsert_message("nobody_here", _message("m1"))


@pytest.mark.asyncio
async def test_concurrent_writers_both_land(documents):
    racing = InterleavingStore(documents)
    store = ConversationStore(racing, "conversations", Conversation, max_write_retries=5)

    await asyncio.gather(
        store.upsert_message("alice_bob", _message("m1"), seed_fn=_seed("alice_bob")),
        store.upsert_message("alice_bob", _message("m2", "bob", "alice"), seed_fn=_seed("alice_bob")),
    )

    stored = await store.load("alice_bob")
    assert sorted(m.message_id for m in stored.messages) == ["m1", "m2"]
    assert racing.conflicts >= 1


@pytest.mark.asyncio
async def test_many_concurrent_appends_are_all_kept(documents):
    racing = InterleavingStore(documents)
    store = ConversationStore(racing, "conversations", Conversation, max_write_retries=20)
    await store.upsert_message("alice_bob", _message("m0"), seed_fn=_seed("alice_bob"))

    await asyncio.gather(*[
        store.upsert_message("alice_bob", _message(f"m{i}")) for i in range(1, 6)
    ])

    stored = await store.load("alice_bob")
    assert stored.message_count == 6
    assert len({m.message_id for m in stored.messages}) == 6


@pytest.mark.asyncio
async def test_retry_budget_exhausted_raises_concurrency_exceeded():
    conflicting = AlwaysConflictingStore()
    store = ConversationStore(conflicting, "conversations", Conversation, max_write_retries=3)

    with pytest.raises(ConcurrencyExceeded) as excinfo:
        await store.upsert_message("alice_bob", _message("m1"), seed_fn=_seed("alice_bob"))

    assert conflicting.put_attempts == 3
    assert excinfo.value.attempts == 3
    assert excinfo.value.retryable is True


@pytest.mark.asyncio
async def test_slow_store_times_out():
    store = ConversationStore(SlowStore(), "conversations", Conversation, timeout_seconds=0.05)

    with pytest.raises(OperationTimeout):
        await store.load("alice_bob")


@pytest.mark.asyncio
async def test_mutate_without_change_does_not_write(conversation_store, documents):
    await conversation_store.upsert_message("alice_bob", _message("m1"), seed_fn=_seed("alice_bob"))
    before = await documents.get("conversations", "alice_bob")

    outcome = await conversation_store.mutate("alice_bob", lambda doc: (None, doc.message_count))

    after = await documents.get("conversations", "alice_bob")
    assert outcome.changed is False
    assert outcome.value == 1
    assert after.document.etag == before.document.etag


@pytest.mark.asyncio
async def test_create_rejects_existing_key(session_store):
    session = Session(
        session_id="s1",
        participants=[Participant(participant_id="ana"), Participant(participant_id="luis")],
    )
    await session_store.create("s1", session)

    with pytest.raises(InvalidArgument):
        await session_store.create("s1", session)


@pytest.mark.asyncio
async def test_find_by_member_indexes_participants(conversation_store):
    await conversation_store.upsert_message("alice_bob", _message("m1"), seed_fn=_seed("alice_bob"))

    found, _ = await conversation_store.find_by_member("bob")
    missing, _ = await conversation_store.find_by_member("carol")

    assert [c.key for c in found] == ["alice_bob"]
    assert missing == []
