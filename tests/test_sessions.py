import asyncio

import pytest

from tests.conftest import FakeCompletion
from twinlink.core.exceptions import ErrorKind
from twinlink.messaging.sessions import GroupSessionManager
from twinlink.models.conversation import Participant


async def _create(manager, session_id="trip", participants=("ana", "luis")):
    result = await manager.create_session(list(participants), name="Weekend trip", session_id=session_id)
    assert result.success, result.message
    return result.value


@pytest.mark.asyncio
async def test_single_participant_is_rejected(session_manager):
    result = await session_manager.create_session(["ana", "ana"])

    assert result.success is False
    assert result.error == ErrorKind.INVALID_ARGUMENT


@pytest.mark.asyncio
async def test_create_generates_id_and_records_founders(session_manager):
    result = await session_manager.create_session(
        [Participant(participant_id="ana", display_name="Ana"), "luis"]
    )

    session = result.value
    assert session.session_id
    assert session.founding_participant_ids == ["ana", "luis"]
    assert session.is_active
    assert session.continuation_state == ""


@pytest.mark.asyncio
async def test_mention_calls_completion_and_returns_new_state(session_manager, completion):
    await _create(session_manager)

    result = await session_manager.send_message("trip", "ana", "@Assistant where should we eat?")

    assert result.success
    assert result.value.assistant_reply == "assistant reply 1"
    assert result.value.continuation_state == "state-1"
    assert len(completion.calls) == 1
    assert completion.calls[0]["continuation_state"] is None
    assert "Weekend trip" in completion.calls[0]["instructions"]

    stored = (await session_manager.get_session("trip")).value
    assert stored.continuation_state == "state-1"
    assert stored.find_message(result.value.message.message_id).is_delivered


@pytest.mark.asyncio
async def test_message_without_mention_passes_state_through(session_manager, completion):
    await _create(session_manager)

    result = await session_manager.send_message("trip", "luis", "sounds good", continuation_state="S0")

    assert result.value.continuation_state == "S0"
    assert result.value.assistant_reply is None
    assert completion.calls == []


@pytest.mark.asyncio
async def test_stored_state_is_used_when_caller_omits_it(session_manager, completion):
    await _create(session_manager)
    await session_manager.send_message("trip", "ana", "@assistant hello")

    await session_manager.send_message("trip", "luis", "@assistant and dessert?")

    assert completion.calls[1]["continuation_state"] == "state-1"


@pytest.mark.asyncio
async def test_resend_of_same_id_does_not_call_assistant_again(session_manager, completion):
    await _create(session_manager)
    first = await session_manager.send_message("trip", "ana", "@assistant ideas?", message_id="m1")

    again = await session_manager.send_message("trip", "ana", "@assistant ideas?", message_id="m1")

    assert again.success
    assert again.value.duplicate is True
    assert again.value.message == first.value.message
    assert again.value.continuation_state == "state-1"
    assert len(completion.calls) == 1
    assert (await session_manager.get_session("trip")).value.message_count == 1


@pytest.mark.asyncio
async def test_completion_failure_stores_nothing(session_store):
    manager = GroupSessionManager(session_store, FakeCompletion(fail=True))
    await _create(manager)

    result = await manager.send_message("trip", "ana", "@assistant help")

    assert result.error == ErrorKind.COLLABORATOR_FAILURE
    assert result.retryable is True
    assert (await manager.get_session("trip")).value.message_count == 0


@pytest.mark.asyncio
async def test_slow_completion_times_out(session_store):
    manager = GroupSessionManager(
        session_store, FakeCompletion(delay=1.0), collaborator_timeout_seconds=0.05
    )
    await _create(manager)

    result = await manager.send_message("trip", "ana", "@assistant help")

    assert result.error == ErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_non_participant_cannot_post_or_read(session_manager):
    await _create(session_manager)

    await session_manager.send_message("trip", "ana", "hello all", message_id="b1")

    sent = await session_manager.send_message("trip", "mallory", "hello")
    read = await session_manager.get_messages("trip", "mallory")
    marked = await session_manager.mark_read("trip", ["b1"], "mallory")
    luis_view = (await session_manager.get_messages("trip", "luis")).value

    assert sent.error == ErrorKind.INVALID_ARGUMENT
    assert read.error == ErrorKind.INVALID_ARGUMENT
    assert marked.error == ErrorKind.INVALID_ARGUMENT
    assert luis_view.messages[0].is_read is False
    assert luis_view.unread_count == 1


@pytest.mark.asyncio
async def test_unknown_session_is_not_found(session_manager):
    result = await session_manager.send_message("missing", "ana", "hello")
    assert result.error == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_closed_session_rejects_messages(session_manager):
    await _create(session_manager)

    closed = await session_manager.close_session("trip")
    closed_again = await session_manager.close_session("trip")
    sent = await session_manager.send_message("trip", "ana", "anyone?")

    assert closed.value.is_active is False
    assert closed_again.success
    assert sent.error == ErrorKind.INVALID_ARGUMENT


@pytest.mark.asyncio
async def test_add_participant_keeps_founders(session_manager):
    await _create(session_manager)

    added = await session_manager.add_participant("trip", Participant(participant_id="eva", display_name="Eva"))
    again = await session_manager.add_participant("trip", "eva")

    assert added.value.participant_ids == ["ana", "luis", "eva"]
    assert added.value.founding_participant_ids == ["ana", "luis"]
    assert again.value.participant_ids == ["ana", "luis", "eva"]

    posted = await session_manager.send_message("trip", "eva", "hi all")
    assert posted.success


@pytest.mark.asyncio
async def test_read_receipts_and_enriched_view(session_manager):
    await _create(session_manager, participants=("ana", "luis", "eva"))
    await session_manager.send_message("trip", "ana", "to everyone", message_id="b1")
    await session_manager.send_message("trip", "ana", "just luis", recipient_id="luis", message_id="d1")

    eva_view = (await session_manager.get_messages("trip", "eva")).value
    assert eva_view.unread_count == 1

    report = (await session_manager.mark_read("trip", ["b1", "d1"], "eva")).value
    assert report.marked == ["b1"]
    assert report.not_addressed == ["d1"]

    luis_unread = (await session_manager.get_messages("trip", "luis", unread_only=True)).value
    assert [m.message_id for m in luis_unread.messages] == ["b1", "d1"]


@pytest.mark.asyncio
async def test_recipient_must_be_participant(session_manager):
    await _create(session_manager)

    result = await session_manager.send_message("trip", "ana", "psst", recipient_id="mallory")

    assert result.error == ErrorKind.INVALID_ARGUMENT


@pytest.mark.asyncio
async def test_list_sessions_most_recent_first(session_manager):
    await _create(session_manager, session_id="older")
    await _create(session_manager, session_id="newer")
    await session_manager.close_session("older")
    await asyncio.sleep(0.01)
    await session_manager.send_message("newer", "ana", "bump")

    listed = (await session_manager.list_sessions("ana")).value
    active = (await session_manager.list_sessions("ana", active_only=True)).value

    assert [s.session_id for s in listed][0] == "newer"
    assert {s.session_id for s in listed} == {"older", "newer"}
    assert [s.session_id for s in active] == ["newer"]
