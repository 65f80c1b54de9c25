import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from flownote.repositories.conversation_repository import ConversationRepository
from flownote.repositories.message_repository import MessageRepository
from flownote.repositories.user_repository import UserRepository
from flownote.services.chat_service import ChatService
from flownote.utils.blob_store import FileUpload
from flownote.utils.exceptions import BlobStoreError, DocumentDecodeError, ForbiddenError, NotFoundError
from flownote.utils.realtime_bus import LocalBus


async def test_get_or_create_uses_sorted_pair_id(chat_service, db):
    conversation_id = await chat_service.get_or_create_conversation(["bob", "alice"])

    assert conversation_id == "alice_bob"
    doc = await db["conversations"].find_one({"_id": "alice_bob"})
    assert doc["participants"] == ["alice", "bob"]
    assert doc["last_message"] is None


async def test_get_or_create_keeps_one_document_per_pair(chat_service, db):
    ids = await asyncio.gather(
        chat_service.get_or_create_conversation(["alice", "bob"]),
        chat_service.get_or_create_conversation(["bob", "alice"]),
    )
    again = await chat_service.get_or_create_conversation(["alice", "bob"])

    assert set(ids) == {again}
    assert await db["conversations"].count_documents({}) == 1


@pytest.mark.parametrize("participants", [["alice"], ["alice", "alice"], ["alice", "bob", "carol"]])
async def test_get_or_create_needs_two_people(chat_service, participants):
    with pytest.raises(ValueError):
        await chat_service.get_or_create_conversation(participants)


async def test_alice_and_bob_scenario(chat_service, alice, bob):
    conversation_id = await chat_service.get_or_create_conversation(["bob", "alice"])
    assert conversation_id == "alice_bob"

    message = await chat_service.send_message(conversation_id, "alice", "Alice", "Hi")
    assert message.read_by == ["alice"]
    assert message.is_read is False

    assert await chat_service.unread_count(conversation_id, "bob") == 1
    assert await chat_service.unread_count(conversation_id, "alice") == 0

    await chat_service.mark_as_read(conversation_id, "bob")

    assert await chat_service.unread_count(conversation_id, "bob") == 0
    assert await chat_service.unread_count(conversation_id, "alice") == 0


async def test_empty_message_is_rejected_before_any_io():
    messages, conversations, users, blobs = AsyncMock(), AsyncMock(), AsyncMock(), MagicMock()
    service = ChatService(messages, conversations, users, blobs, bus=AsyncMock())

    with pytest.raises(ValueError):
        await service.send_message("alice_bob", "alice", "Alice", "", [])
    with pytest.raises(ValueError):
        await service.send_message("alice_bob", "alice", "Alice", "   \n", None)

    conversations.get.assert_not_awaited()
    messages.insert.assert_not_awaited()
    blobs.upload.assert_not_called()


async def test_sender_does_not_count_own_message(chat_service, alice, bob):
    conversation_id = await chat_service.get_or_create_conversation(["alice", "bob"])
    for text in ("one", "two"):
        await chat_service.send_message(conversation_id, "bob", "Bob", text)

    assert await chat_service.unread_count(conversation_id, "bob") == 0
    assert await chat_service.unread_count(conversation_id, "alice") == 2


async def test_unread_count_is_total_minus_read(chat_service, alice, bob):
    conversation_id = await chat_service.get_or_create_conversation(["alice", "bob"])
    for i in range(2):
        await chat_service.send_message(conversation_id, "alice", "Alice", f"early {i}")
    await chat_service.mark_as_read(conversation_id, "bob")
    for i in range(3):
        await chat_service.send_message(conversation_id, "alice", "Alice", f"late {i}")

    assert await chat_service.unread_count(conversation_id, "bob") == 3


async def test_mark_as_read_is_idempotent(chat_service, db, alice, bob):
    conversation_id = await chat_service.get_or_create_conversation(["alice", "bob"])
    await chat_service.send_message(conversation_id, "alice", "Alice", "Hello")
    await chat_service.send_message(conversation_id, "alice", "Alice", "Are you there?")

    assert await chat_service.mark_as_read(conversation_id, "bob") == 2
    first = await db["messages"].find({}, {"read_by": 1, "is_read": 1}).sort("_id", 1).to_list(length=None)

    assert await chat_service.mark_as_read(conversation_id, "bob") == 0
    second = await db["messages"].find({}, {"read_by": 1, "is_read": 1}).sort("_id", 1).to_list(length=None)

    assert first == second
    assert all(doc["read_by"] == ["alice", "bob"] and doc["is_read"] for doc in second)
    assert await chat_service.unread_count(conversation_id, "bob") == 0


async def test_messages_come_back_in_timestamp_order(chat_service, db, alice, bob):
    conversation_id = await chat_service.get_or_create_conversation(["alice", "bob"])
    repo = MessageRepository(db)
    base = datetime(2026, 4, 1, 8, 0, 0)
    # written out of order, as if delivered late
    for mid, offset in (("m3", 3), ("m1", 1), ("m2", 2)):
        at = base + timedelta(seconds=offset)
        await repo.insert({
            "_id": mid,
            "conversation_id": conversation_id,
            "sender_id": "alice",
            "sender_name": "Alice",
            "content": mid,
            "attachments": [],
            "is_read": False,
            "read_by": ["alice"],
            "created_at": at,
            "updated_at": at,
        })

    messages = await chat_service.list_messages(conversation_id, "bob")

    assert [m.id for m in messages] == ["m1", "m2", "m3"]


async def test_send_updates_last_message(chat_service, alice, bob):
    conversation_id = await chat_service.get_or_create_conversation(["alice", "bob"])
    await chat_service.send_message(conversation_id, "alice", "Alice", "first")
    sent = await chat_service.send_message(conversation_id, "bob", "Bob", "  second  ")

    summaries = await chat_service.list_conversations("alice")

    assert summaries[0].last_message.id == sent.id
    assert sent.content == "  second  "
    assert summaries[0].last_message.content == "  second  "
    assert summaries[0].last_message.sender_name == "Bob"


async def test_send_requires_existing_conversation_and_membership(chat_service, alice, bob, insert_user):
    await insert_user("carol", "Carol")
    conversation_id = await chat_service.get_or_create_conversation(["alice", "bob"])

    with pytest.raises(NotFoundError):
        await chat_service.send_message("alice_carol", "alice", "Alice", "hi")
    with pytest.raises(ForbiddenError):
        await chat_service.send_message(conversation_id, "carol", "Carol", "hi")
    with pytest.raises(ForbiddenError):
        await chat_service.list_messages(conversation_id, "carol")


async def test_attachments_are_stored_under_the_message(chat_service, blob_store, alice, bob):
    conversation_id = await chat_service.get_or_create_conversation(["alice", "bob"])
    uploads = [
        FileUpload("notice.pdf", "application/pdf", b"%PDF-1.4 notice"),
        FileUpload("photo.jpg", "image/jpeg", b"\xff\xd8\xff"),
    ]

    message = await chat_service.send_message(conversation_id, "alice", "Alice", "", uploads)

    assert message.content == ""
    assert [a.name for a in message.attachments] == ["notice.pdf", "photo.jpg"]
    assert [a.size for a in message.attachments] == [15, 3]
    assert message.attachments[0].type == "application/pdf"
    assert message.attachments[0].url == blob_store.url_for(message.attachments[0].id)
    assert blob_store.paths() == [
        f"messages/{conversation_id}/{message.id}/notice.pdf",
        f"messages/{conversation_id}/{message.id}/photo.jpg",
    ]


async def test_failed_upload_leaves_no_message_and_no_blobs(chat_service, blob_store, db, alice, bob):
    conversation_id = await chat_service.get_or_create_conversation(["alice", "bob"])
    blob_store.fail_after = 1
    uploads = [FileUpload("a.txt", "text/plain", b"a"), FileUpload("b.txt", "text/plain", b"b")]

    with pytest.raises(BlobStoreError):
        await chat_service.send_message(conversation_id, "alice", "Alice", "with files", uploads)

    assert await db["messages"].count_documents({}) == 0
    assert blob_store.blobs == {}
    conversation = await db["conversations"].find_one({"_id": conversation_id})
    assert conversation["last_message"] is None


async def test_list_conversations_projects_profiles_and_unread(chat_service, alice, bob, insert_user):
    await insert_user("carol", "Carol", role="teacher")
    with_bob = await chat_service.get_or_create_conversation(["alice", "bob"])
    with_carol = await chat_service.get_or_create_conversation(["alice", "carol"])
    await chat_service.send_message(with_bob, "bob", "Bob", "from bob")
    await chat_service.send_message(with_bob, "bob", "Bob", "again")
    await asyncio.sleep(0.01)
    await chat_service.send_message(with_carol, "carol", "Carol", "latest")

    summaries = await chat_service.list_conversations("alice")

    assert [s.id for s in summaries] == [with_carol, with_bob]
    assert [s.unread_count for s in summaries] == [1, 2]
    assert [p.name for p in summaries[1].participant_details] == ["Alice", "Bob"]
    assert summaries[0].participant_details[1].role == "teacher"


async def test_list_conversations_skips_missing_profiles(chat_service, alice):
    await chat_service.get_or_create_conversation(["alice", "ghost"])

    summaries = await chat_service.list_conversations("alice")

    assert [p.id for p in summaries[0].participant_details] == ["alice"]


async def test_malformed_message_document_is_reported(chat_service, db, alice, bob):
    conversation_id = await chat_service.get_or_create_conversation(["alice", "bob"])
    await db["messages"].insert_one({"_id": "broken", "conversation_id": conversation_id, "content": "no sender"})

    with pytest.raises(DocumentDecodeError):
        await chat_service.list_messages(conversation_id, "alice")


class UnreachableBus(LocalBus):

    async def publish(self, channel, message):
        raise RedisConnectionError("Connection refused")


async def test_send_succeeds_when_notifications_cannot_be_published(db, blob_store, alice, bob):
    service = ChatService(MessageRepository(db), ConversationRepository(db), UserRepository(db), blob_store, UnreachableBus())
    conversation_id = await service.get_or_create_conversation(["alice", "bob"])

    sent = await service.send_message(conversation_id, "alice", "Alice", "Hi Bob")

    assert await db["messages"].count_documents({}) == 1
    assert sent.content == "Hi Bob"
    assert await service.mark_as_read(conversation_id, "bob") == 1
