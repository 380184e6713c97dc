import pytest

from twinlink.core.exceptions import ErrorKind, WriteConflict
from twinlink.models.conversation import Conversation
from twinlink.services.conversation_service import ConversationService
from twinlink.storage.conversation_store import ConversationStore
from twinlink.storage.sql_store import SQLDocumentStore


@pytest.fixture
def sql_store():
    store = SQLDocumentStore("sqlite://")
    store.init_tables()
    yield store
    store.drop_tables()
    store.close()


@pytest.mark.asyncio
async def test_conditional_put(sql_store):
    created = await sql_store.put("conversations", "alice_bob", {"n": 1}, None, members=["alice", "bob"])
    updated = await sql_store.put("conversations", "alice_bob", {"n": 2}, created.etag, members=["alice", "bob"])

    with pytest.raises(WriteConflict):
        await sql_store.put("conversations", "alice_bob", {"n": 3}, created.etag)
    with pytest.raises(WriteConflict):
        await sql_store.put("conversations", "alice_bob", {"n": 3}, None)

    read = await sql_store.get("conversations", "alice_bob")
    assert read.document.body == {"n": 2}
    assert read.document.etag == updated.etag
    assert updated.cost > 0


@pytest.mark.asyncio
async def test_missing_document_reads_as_none(sql_store):
    read = await sql_store.get("conversations", "nobody_here")
    assert read.document is None


@pytest.mark.asyncio
async def test_find_by_member(sql_store):
    await sql_store.put("sessions", "s1", {"id": "s1"}, None, members=["ana", "luis"])
    await sql_store.put("sessions", "s2", {"id": "s2"}, None, members=["luis"])

    luis = await sql_store.find_by_member("sessions", "luis")
    ana = await sql_store.find_by_member("sessions", "ana")
    other_collection = await sql_store.find_by_member("conversations", "luis")

    assert sorted(doc.key for doc in luis.documents) == ["s1", "s2"]
    assert [doc.key for doc in ana.documents] == ["s1"]
    assert other_collection.documents == []


@pytest.mark.asyncio
async def test_check_connection(sql_store):
    assert await sql_store.check_connection() is True


@pytest.mark.asyncio
async def test_service_round_trip_on_sql(sql_store):
    service = ConversationService(ConversationStore(sql_store, "conversations", Conversation))

    await service.send_message("alice", "bob", "hi", message_id="m1")
    await service.send_message("bob", "alice", "hey", message_id="m2")
    read = await service.mark_read("alice_bob", ["m1"], "bob")
    view = (await service.get_messages("alice_bob", "alice")).value

    assert read.value.marked == ["m1"]
    assert sorted(m.message_id for m in view.messages) == ["m1", "m2"]
    assert (await service.list_conversations("bob")).value[0].key == "alice_bob"


@pytest.mark.asyncio
async def test_unknown_key_through_service_is_not_found(sql_store):
    service = ConversationService(ConversationStore(sql_store, "conversations", Conversation))

    result = await service.get_conversation("alice_bob")

    assert result.error == ErrorKind.NOT_FOUND
