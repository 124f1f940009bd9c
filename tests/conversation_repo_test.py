import asyncio
from unittest.mock import AsyncMock, MagicMock

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from db.mongodb import pair_key
from repos.conversation_repo import ConversationRepository


async def test_concurrent_get_or_create_yields_one_record(db):
    repo = ConversationRepository(db)
    a, b = ObjectId(), ObjectId()

    results = await asyncio.gather(*[
        repo.get_or_create(a, b) if i % 2 else repo.get_or_create(b, a)
        for i in range(6)
    ])

    assert len({r["_id"] for r in results}) == 1
    assert await db.conversations.count_documents({}) == 1
    assert results[0]["participant_key"] == pair_key(a, b) == pair_key(b, a)


async def test_losing_the_insert_race_returns_the_winner():
    winner = {"_id": ObjectId(), "participants": []}
    collection = MagicMock()
    collection.find_one = AsyncMock(side_effect=[None, winner])
    collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("E11000 duplicate key"))
    db = MagicMock()
    db.conversations = collection

    result = await ConversationRepository(db).get_or_create(ObjectId(), ObjectId())

    assert result is winner
    assert collection.find_one.await_args_list[1].args[0] == {"participant_key": collection.insert_one.await_args.args[0]["participant_key"]}


async def test_record_message_uses_atomic_counter_updates():
    collection = MagicMock()
    collection.find_one_and_update = AsyncMock(return_value={})
    db = MagicMock()
    db.conversations = collection
    conversation_id, message_id, sender, recipient = ObjectId(), ObjectId(), ObjectId(), ObjectId()

    await ConversationRepository(db).record_message(conversation_id, message_id, sender, [recipient], "now")

    query, update = collection.find_one_and_update.await_args.args
    assert query == {"_id": conversation_id}
    assert update["$inc"] == {f"unread_counts.{recipient}": 1}
    assert update["$set"][f"unread_counts.{sender}"] == 0
    assert update["$set"]["last_message_id"] == message_id
