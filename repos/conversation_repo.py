from typing import Any, Dict, List, Optional
from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from db.mongodb import pair_key
from logger.logger import logger
from utils.time import get_current_utc_time


class ConversationRepository:
    """
    Repository for pairwise conversations.
    Unread counters are only ever touched with single-key $inc/$set updates
    so both participants can write concurrently without lost updates.
    """

    def __init__(self, db):
        self.db = db
        self.conversations = db.conversations

    async def find_by_id(self, conversation_id: ObjectId) -> Optional[Dict[str, Any]]:
        return await self.conversations.find_one({"_id": conversation_id})

    async def find_by_pair(self, user_a: ObjectId, user_b: ObjectId) -> Optional[Dict[str, Any]]:
        """Find the conversation whose participants include both users"""
        return await self.conversations.find_one({
            "participants": {"$all": [user_a, user_b]}
        })

    async def get_or_create(self, user_a: ObjectId, user_b: ObjectId) -> Dict[str, Any]:
        """
        Return the conversation for an unordered pair, creating it on first use.
        A concurrent creator losing the race on the unique participant_key index
        reads back the winner's record.
        """
        existing = await self.find_by_pair(user_a, user_b)
        if existing:
            return existing

        now = get_current_utc_time()
        participants = sorted([user_a, user_b], key=str)
        conversation = {
            "participants": participants,
            "participant_key": pair_key(user_a, user_b),
            "last_message_id": None,
            "last_message_at": now,
            "unread_counts": {},
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.conversations.insert_one(conversation)
        except DuplicateKeyError:
            logger.info(f"Conversation for {conversation['participant_key']} created concurrently, reusing it")
            existing = await self.conversations.find_one({"participant_key": conversation["participant_key"]})
            if existing is None:
                raise
            return existing

        conversation["_id"] = result.inserted_id
        logger.info(f"Created conversation {result.inserted_id} for {conversation['participant_key']}")
        return conversation

    async def list_for_user(self, user_id: ObjectId) -> List[Dict[str, Any]]:
        """All conversations the user takes part in, most recent activity first"""
        cursor = self.conversations.find({"participants": user_id}).sort([
            ("last_message_at", DESCENDING),
            ("_id", DESCENDING),
        ])
        return await cursor.to_list(length=None)

    async def record_message(
        self,
        conversation_id: ObjectId,
        message_id: ObjectId,
        sender_id: ObjectId,
        recipient_ids: List[ObjectId],
        sent_at,
    ) -> Optional[Dict[str, Any]]:
        """
        Point the conversation at its newest message in one atomic update:
        sender's counter back to 0, every other participant's counter +1.
        """
        update: Dict[str, Any] = {
            "$set": {
                "last_message_id": message_id,
                "last_message_at": sent_at,
                "updated_at": sent_at,
                f"unread_counts.{sender_id}": 0,
            }
        }
        if recipient_ids:
            update["$inc"] = {f"unread_counts.{rid}": 1 for rid in recipient_ids}

        return await self.conversations.find_one_and_update(
            {"_id": conversation_id},
            update,
            return_document=ReturnDocument.AFTER,
        )

    async def reset_unread(self, conversation_id: ObjectId, user_id: ObjectId) -> None:
        await self.conversations.update_one(
            {"_id": conversation_id},
            {"$set": {f"unread_counts.{user_id}": 0}}
        )
