from typing import Any, Dict, List, Optional
from bson import ObjectId
from pymongo import DESCENDING

from db.schemas.messages_schema import AttachmentInDB, message_type_for
from utils.time import get_current_utc_time

class MessageRepository:
    def __init__(self, db):
        self.db = db
        self.messages = db.messages

    async def create_message(
        self,
        conversation_id: ObjectId,
        sender_id: ObjectId,
        content: str,
        attachment: Optional[AttachmentInDB] = None,
    ) -> Dict[str, Any]:
        """Insert a new message; returns the stored document"""
        message = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "content": content,
            "message_type": message_type_for(attachment).value,
            "attachments": [attachment.to_document()] if attachment else [],
            "is_read": False,
            "read_at": None,
            "deleted_by": [],
            "created_at": get_current_utc_time(),
        }
        result = await self.messages.insert_one(message)
        message["_id"] = result.inserted_id
        return message

    async def find_by_id(self, message_id: ObjectId) -> Optional[Dict[str, Any]]:
        return await self.messages.find_one({"_id": message_id})

    async def find_by_ids(self, message_ids: List[ObjectId]) -> Dict[ObjectId, Dict[str, Any]]:
        if not message_ids:
            return {}
        cursor = self.messages.find({"_id": {"$in": message_ids}})
        return {msg["_id"]: msg async for msg in cursor}

    def _visible_to(self, conversation_id: ObjectId, viewer_id: ObjectId) -> Dict[str, Any]:
        return {"conversation_id": conversation_id, "deleted_by": {"$ne": viewer_id}}

    async def get_messages(self, conversation_id: ObjectId, viewer_id: ObjectId, skip: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
        """Messages the viewer hasn't deleted, newest first"""
        cursor = self.messages.find(self._visible_to(conversation_id, viewer_id)).sort([
            ("created_at", DESCENDING),
            ("_id", DESCENDING),
        ]).skip(skip).limit(limit)
        return await cursor.to_list(length=None)

    async def count_messages(self, conversation_id: ObjectId, viewer_id: ObjectId) -> int:
        return await self.messages.count_documents(self._visible_to(conversation_id, viewer_id))

    async def mark_messages_as_read(self, conversation_id: ObjectId, reader_id: ObjectId) -> int:
        """Mark everything the other participant sent as read; returns how many flipped"""
        result = await self.messages.update_many(
            {
                "conversation_id": conversation_id,
                "sender_id": {"$ne": reader_id},
                "is_read": False
            },
            {
                "$set": {
                    "is_read": True,
                    "read_at": get_current_utc_time()
                }
            }
        )
        return result.modified_count

    async def soft_delete(self, message_id: ObjectId, user_id: ObjectId) -> None:
        # $addToSet keeps a repeated delete a no-op
        await self.messages.update_one(
            {"_id": message_id},
            {"$addToSet": {"deleted_by": user_id}}
        )
