import asyncio

import pytest
from bson import ObjectId

from conftest import emitted
from db.schemas.messages_schema import AttachmentInDB, AttachmentKind, MessageType
from services.exceptions import EmptyMessage, Forbidden, InvalidParty, NotFound, UpstreamFailure, ValidationError
from services.storage_service import PendingUpload


async def unread(db, conversation_id, user_id):
    conversation = await db.conversations.find_one({"_id": ObjectId(conversation_id)})
    return conversation["unread_counts"].get(user_id, 0)


async def test_first_contact_between_two_users(chat_service, users, db):
    alice, bob = users["alice"], users["bob"]

    conversation = await chat_service.get_or_create_conversation(alice, bob)
    assert conversation.unread_count == 0
    assert conversation.last_message is None
    assert {p.username for p in conversation.participants} == {"alice", "bob"}

    hello = await chat_service.send_message(conversation.id, alice, "hello")
    stored = await db.conversations.find_one({"_id": ObjectId(conversation.id)})
    assert stored["last_message_id"] == ObjectId(hello.id)
    assert stored["unread_counts"][bob] == 1
    assert stored["unread_counts"][alice] == 0

    await chat_service.mark_read(conversation.id, bob)
    assert await unread(db, conversation.id, bob) == 0

    await chat_service.send_message(conversation.id, bob, "hi")
    assert await unread(db, conversation.id, alice) == 1

    page = await chat_service.list_messages(conversation.id, alice)
    assert [m.content for m in page.messages] == ["hello", "hi"]
    assert page.pagination.total_messages == 2
    assert page.pagination.total_pages == 1


async def test_outsider_cannot_read_or_write(chat_service, users):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])

    with pytest.raises(Forbidden):
        await chat_service.list_messages(conversation.id, users["carol"])
    with pytest.raises(Forbidden):
        await chat_service.send_message(conversation.id, users["carol"], "hello")
    with pytest.raises(Forbidden):
        await chat_service.mark_read(conversation.id, users["carol"])


async def test_one_conversation_per_pair_in_either_order(chat_service, users, db):
    first = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    again = await chat_service.get_or_create_conversation(users["bob"], users["alice"])

    assert first.id == again.id
    assert await db.conversations.count_documents({}) == 1


async def test_conversation_with_yourself_is_rejected(chat_service, users, db):
    with pytest.raises(InvalidParty):
        await chat_service.get_or_create_conversation(users["alice"], users["alice"])
    assert await db.conversations.count_documents({}) == 0


async def test_conversation_with_unknown_or_malformed_user(chat_service, users):
    with pytest.raises(NotFound):
        await chat_service.get_or_create_conversation(users["alice"], str(ObjectId()))
    with pytest.raises(InvalidParty):
        await chat_service.get_or_create_conversation(users["alice"], "not-an-id")


async def test_unknown_conversation(chat_service, users):
    with pytest.raises(NotFound):
        await chat_service.list_messages(str(ObjectId()), users["alice"])
    with pytest.raises(InvalidParty):
        await chat_service.send_message("nope", users["alice"], "hello")


@pytest.mark.parametrize("content", ["", "   ", "\n\t", None])
async def test_blank_message_is_rejected_without_writing(chat_service, users, db, content):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])

    with pytest.raises(EmptyMessage):
        await chat_service.send_message(conversation.id, users["alice"], content)
    # checked before participation
    with pytest.raises(EmptyMessage):
        await chat_service.send_message(conversation.id, users["carol"], content)

    assert await db.messages.count_documents({}) == 0
    assert await unread(db, conversation.id, users["bob"]) == 0


async def test_content_is_trimmed(chat_service, users):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    message = await chat_service.send_message(conversation.id, users["alice"], "  hey there \n")
    assert message.content == "hey there"
    assert message.message_type == MessageType.TEXT
    assert message.sender.username == "alice"


async def test_sent_message_timestamp_matches_the_stored_one(chat_service, users):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    sent = await chat_service.send_message(conversation.id, users["alice"], "hello")

    page = await chat_service.list_messages(conversation.id, users["bob"])

    assert sent.created_at.microsecond % 1000 == 0
    assert page.messages[0].created_at == sent.created_at


async def test_unread_counter_counts_every_concurrent_send(chat_service, users, db):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])

    await asyncio.gather(*[
        chat_service.send_message(conversation.id, users["alice"], f"message {i}")
        for i in range(10)
    ])

    assert await unread(db, conversation.id, users["bob"]) == 10
    assert await unread(db, conversation.id, users["alice"]) == 0


async def test_sending_resets_the_senders_own_counter(chat_service, users, db):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    await chat_service.send_message(conversation.id, users["alice"], "one")
    await chat_service.send_message(conversation.id, users["alice"], "two")
    assert await unread(db, conversation.id, users["bob"]) == 2

    # replying without opening the chat still clears bob's own counter
    await chat_service.send_message(conversation.id, users["bob"], "three")
    assert await unread(db, conversation.id, users["bob"]) == 0
    assert await unread(db, conversation.id, users["alice"]) == 1


async def test_mark_read_flips_only_the_other_sides_messages(chat_service, users, db):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    await chat_service.send_message(conversation.id, users["alice"], "from alice")
    await chat_service.send_message(conversation.id, users["bob"], "from bob")

    marked = await chat_service.mark_read(conversation.id, users["bob"])

    assert marked == 1
    page = await chat_service.list_messages(conversation.id, users["bob"])
    by_content = {m.content: m for m in page.messages}
    assert by_content["from alice"].is_read is True
    assert by_content["from alice"].read_at is not None
    assert by_content["from bob"].is_read is False
    # nothing left to mark
    assert await chat_service.mark_read(conversation.id, users["bob"]) == 0


async def test_messages_are_paged_newest_page_first_in_chronological_order(chat_service, users):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    for i in range(5):
        await chat_service.send_message(conversation.id, users["alice"], f"m{i}")

    latest = await chat_service.list_messages(conversation.id, users["bob"], page=1, page_size=2)
    older = await chat_service.list_messages(conversation.id, users["bob"], page=2, page_size=2)
    oldest = await chat_service.list_messages(conversation.id, users["bob"], page=3, page_size=2)

    assert [m.content for m in latest.messages] == ["m3", "m4"]
    assert [m.content for m in older.messages] == ["m1", "m2"]
    assert [m.content for m in oldest.messages] == ["m0"]
    assert latest.pagination.total_pages == 3
    assert latest.pagination.total_messages == 5


async def test_invalid_page_arguments(chat_service, users):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    with pytest.raises(ValidationError):
        await chat_service.list_messages(conversation.id, users["alice"], page=0)
    with pytest.raises(ValidationError):
        await chat_service.list_messages(conversation.id, users["alice"], page_size=10_000)


async def test_deleted_message_is_hidden_from_the_deleter_only(chat_service, users):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    kept = await chat_service.send_message(conversation.id, users["alice"], "keep me")
    gone = await chat_service.send_message(conversation.id, users["alice"], "delete me")

    await chat_service.soft_delete_message(gone.id, users["alice"])
    await chat_service.soft_delete_message(gone.id, users["alice"])

    alice_view = await chat_service.list_messages(conversation.id, users["alice"])
    bob_view = await chat_service.list_messages(conversation.id, users["bob"])
    assert [m.id for m in alice_view.messages] == [kept.id]
    assert alice_view.pagination.total_messages == 1
    assert [m.id for m in bob_view.messages] == [kept.id, gone.id]


async def test_only_the_sender_may_delete(chat_service, users):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    message = await chat_service.send_message(conversation.id, users["alice"], "mine")

    with pytest.raises(Forbidden):
        await chat_service.soft_delete_message(message.id, users["bob"])
    with pytest.raises(NotFound):
        await chat_service.soft_delete_message(str(ObjectId()), users["alice"])


async def test_conversations_listed_by_latest_activity(chat_service, users):
    with_bob = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    with_carol = await chat_service.get_or_create_conversation(users["alice"], users["carol"])
    await chat_service.send_message(with_carol.id, users["carol"], "first")
    await asyncio.sleep(0.01)
    await chat_service.send_message(with_bob.id, users["bob"], "second")

    conversations = await chat_service.list_conversations(users["alice"])

    assert [c.id for c in conversations] == [with_bob.id, with_carol.id]
    assert conversations[0].last_message.content == "second"
    assert conversations[0].unread_count == 1
    assert conversations[1].unread_count == 1
    assert await chat_service.list_conversations(users["dave"]) == []


async def test_send_broadcasts_to_conversation_room(chat_service, users, socket_server):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    message = await chat_service.send_message(conversation.id, users["alice"], "hello")

    sent = emitted(socket_server, "message_sent")
    assert len(sent) == 1
    payload, room = sent[0]
    assert room == f"conversation:{conversation.id}"
    assert payload["conversation_id"] == conversation.id
    assert payload["message"]["id"] == message.id
    assert payload["message"]["sender"]["username"] == "alice"


async def test_broadcast_failure_keeps_the_message(chat_service, users, socket_server, db):
    socket_server.emit.side_effect = RuntimeError("socket layer down")
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])

    message = await chat_service.send_message(conversation.id, users["alice"], "still stored")

    assert await db.messages.count_documents({"_id": ObjectId(message.id)}) == 1
    assert await unread(db, conversation.id, users["bob"]) == 1


async def test_mark_read_sends_read_receipt(chat_service, users, socket_server):
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])
    await chat_service.mark_read(conversation.id, users["bob"])

    receipts = emitted(socket_server, "read_receipt")
    assert receipts == [
        ({"conversation_id": conversation.id, "reader_id": users["bob"]}, f"conversation:{conversation.id}")
    ]


async def test_image_attachment(chat_service, users, storage):
    storage.upload_attachment.return_value = AttachmentInDB(
        url="http://storage/chat/1.webp", kind=AttachmentKind.IMAGE, name="photo.png"
    )
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])

    message = await chat_service.send_message(
        conversation.id, users["alice"], None, PendingUpload(b"png", "photo.png", "image/png")
    )

    storage.upload_attachment.assert_awaited_once_with(b"png", "photo.png", "image/png")
    assert message.message_type == MessageType.IMAGE
    assert message.content == ""
    assert message.attachments[0].url == "http://storage/chat/1.webp"


async def test_failed_upload_degrades_to_text(chat_service, users, storage):
    storage.upload_attachment.side_effect = UpstreamFailure("storage offline")
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])

    message = await chat_service.send_message(
        conversation.id, users["alice"], "look at this", PendingUpload(b"png", "photo.png", "image/png")
    )

    assert message.message_type == MessageType.TEXT
    assert message.attachments == []
    assert message.content == "look at this"


async def test_failed_upload_without_text_is_empty(chat_service, users, storage, db):
    storage.upload_attachment.side_effect = UpstreamFailure("storage offline")
    conversation = await chat_service.get_or_create_conversation(users["alice"], users["bob"])

    with pytest.raises(EmptyMessage):
        await chat_service.send_message(
            conversation.id, users["alice"], "", PendingUpload(b"png", "photo.png", "image/png")
        )
    assert await db.messages.count_documents({}) == 0


async def test_search_users(chat_service, users):
    found = await chat_service.search_users(users["alice"], "CAMPUS.edu")
    assert sorted(u.username for u in found) == ["bob", "carol"]

    assert [u.username for u in await chat_service.search_users(users["alice"], "bo")] == ["bob"]
    # unverified and self are never returned
    assert await chat_service.search_users(users["alice"], "dave") == []
    assert await chat_service.search_users(users["alice"], "alice") == []
    # regex metacharacters are literal
    assert await chat_service.search_users(users["alice"], ".*") == []

    with pytest.raises(ValidationError):
        await chat_service.search_users(users["alice"], "  ")


async def test_presence_follows_gateway(chat_service, gateway, users):
    assert chat_service.is_online(users["bob"]) is False
    await gateway.join("sid-1", users["bob"])
    assert chat_service.is_online(users["bob"]) is True
