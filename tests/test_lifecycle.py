from datetime import datetime, timedelta, timezone

import pytest

from twinlink.core.exceptions import ErrorKind
from twinlink.messaging.lifecycle import MessageLifecycleEngine, enrich, mark_delivered, mark_read
from twinlink.models.conversation import Conversation, Message, MessageState

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _message(message_id, sender="alice", recipient="bob", **kwargs) -> Message:
    return Message(message_id=message_id, sender_id=sender, recipient_id=recipient, body="hi", **kwargs)


def test_mark_read_implies_delivered():
    read = mark_read(_message("m1"), now=T0)

    assert read.is_read and read.is_delivered
    assert read.read_at == T0
    assert read.delivered_at == T0
    assert read.state == MessageState.READ


def test_mark_read_keeps_earlier_delivery_time():
    delivered = mark_delivered(_message("m1"), now=T0)
    read = mark_read(delivered, now=T0 + timedelta(minutes=5))

    assert read.delivered_at == T0
    assert read.read_at == T0 + timedelta(minutes=5)


def test_transitions_never_move_backwards():
    read = mark_read(_message("m1"), now=T0)

    assert mark_read(read, now=T0 + timedelta(hours=1)) is read
    assert mark_delivered(read, now=T0 + timedelta(hours=1)) is read


def test_original_message_is_not_modified():
    original = _message("m1")
    mark_read(original, now=T0)
    assert original.is_read is False
    assert original.state == MessageState.SENT


def test_enrich_flags_and_counts():
    messages = [
        _message("m1", "alice", "bob"),
        _message("m2", "bob", "alice"),
        mark_read(_message("m3", "alice", "bob"), now=T0),
        _message("m4", "carol", None),
    ]

    view = enrich(messages, "bob")
    by_id = {m.message_id: m for m in view.messages}

    assert view.total_count == 4
    assert view.unread_count == 2
    assert by_id["m1"].needs_read_confirmation is True
    assert by_id["m2"].is_mine is True
    assert by_id["m2"].needs_read_confirmation is False
    assert by_id["m3"].needs_read_confirmation is False
    assert by_id["m4"].is_for_me is True
    assert by_id["m4"].needs_read_confirmation is True


def test_enrich_unread_only_keeps_full_counts():
    messages = [_message("m1"), mark_read(_message("m2"), now=T0)]

    view = enrich(messages, "bob", unread_only=True)

    assert [m.message_id for m in view.messages] == ["m1"]
    assert view.messages[0].state == MessageState.SENT
    assert view.total_count == 2
    assert view.unread_count == 1


def test_message_for_someone_else_does_not_need_confirmation():
    view = enrich([_message("m1", "alice", "carol")], "bob")
    assert view.messages[0].is_for_me is False
    assert view.unread_count == 0


async def _seeded(conversation_store):
    conversation = Conversation(
        key="alice_bob",
        participants=["alice", "bob"],
        messages=[_message("m1"), _message("m2"), _message("m3", "bob", "alice")],
    )
    await conversation_store.create("alice_bob", conversation)


@pytest.mark.asyncio
async def test_batch_report_categories(conversation_store):
    await _seeded(conversation_store)
    engine = MessageLifecycleEngine(conversation_store)

    first = await engine.mark_read("alice_bob", ["m1", "m1", "m3", "missing"], "bob")

    assert first.success
    report = first.value
    assert report.marked == ["m1"]
    assert report.not_addressed == ["m3"]
    assert report.not_found == ["missing"]
    assert first.cost > 0

    second = await engine.mark_read("alice_bob", ["m1", "m2"], "bob")
    assert second.value.already_done == ["m1"]
    assert second.value.marked == ["m2"]


@pytest.mark.asyncio
async def test_read_at_is_set_only_once(conversation_store):
    await _seeded(conversation_store)
    engine = MessageLifecycleEngine(conversation_store)

    await engine.mark_read("alice_bob", ["m1"], "bob")
    first_read_at = (await conversation_store.load("alice_bob")).find_message("m1").read_at

    await engine.mark_read("alice_bob", ["m1"], "bob")
    stored = (await conversation_store.load("alice_bob")).find_message("m1")

    assert stored.read_at == first_read_at
    assert stored.is_delivered


@pytest.mark.asyncio
async def test_batch_without_changes_does_not_write(conversation_store, documents):
    await _seeded(conversation_store)
    engine = MessageLifecycleEngine(conversation_store)
    before = await documents.get("conversations", "alice_bob")

    result = await engine.mark_delivered("alice_bob", ["m3", "missing"], "bob")

    after = await documents.get("conversations", "alice_bob")
    assert result.success
    assert result.value.marked_count == 0
    assert after.document.etag == before.document.etag


@pytest.mark.asyncio
async def test_unknown_conversation_is_a_tagged_failure(conversation_store):
    engine = MessageLifecycleEngine(conversation_store)

    result = await engine.mark_read("nobody_here", ["m1"], "bob")

    assert result.success is False
    assert result.error == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_outsider_cannot_mark_messages(conversation_store, documents):
    await _seeded(conversation_store)
    engine = MessageLifecycleEngine(conversation_store)
    before = await documents.get("conversations", "alice_bob")

    result = await engine.mark_read("alice_bob", ["m1"], "carol")

    after = await documents.get("conversations", "alice_bob")
    assert result.error == ErrorKind.INVALID_ARGUMENT
    assert after.document.etag == before.document.etag


@pytest.mark.asyncio
async def test_empty_reader_is_invalid(conversation_store):
    await _seeded(conversation_store)
    engine = MessageLifecycleEngine(conversation_store)

    result = await engine.mark_read("alice_bob", ["m1"], "  ")

    assert result.error == ErrorKind.INVALID_ARGUMENT
