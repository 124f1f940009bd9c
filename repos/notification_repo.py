from datetime import datetime
from typing import Dict, Any, List, Optional
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from services.exceptions import UpstreamFailure
from utils.time import get_current_utc_time

class NotificationRepository:
    """
    Repository for notification-related database operations
    Handles all direct interactions with the database for notifications
    """

    def __init__(self, db):
        self.db = db

    def _unexpired(self, recipient_id: ObjectId, now: datetime) -> Dict[str, Any]:
        return {"recipient_id": recipient_id, "expires_at": {"$gt": now}}

    async def create_notification(self, notification_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a new notification
        Returns the stored document
        """
        try:
            result = await self.db.notifications.insert_one(notification_data)
            notification_data["_id"] = result.inserted_id
            return notification_data
        except PyMongoError as e:
            raise UpstreamFailure(f"Error creating notification: {str(e)}") from e

    async def create_many(self, notifications: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Bulk insert for fan-out producers; returns the stored documents"""
        if not notifications:
            return []
        try:
            result = await self.db.notifications.insert_many(notifications)
            for doc, inserted_id in zip(notifications, result.inserted_ids):
                doc["_id"] = inserted_id
            return notifications
        except PyMongoError as e:
            raise UpstreamFailure(f"Error creating notifications: {str(e)}") from e

    async def get_user_notifications(self, user_id: ObjectId, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Newest unexpired notifications for a user
        """
        try:
            cursor = self.db.notifications.find(
                self._unexpired(user_id, get_current_utc_time())
            ).sort([("created_at", -1), ("_id", -1)]).limit(limit)
            return await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise UpstreamFailure(f"Error getting user notifications: {str(e)}") from e

    async def count_unread(self, user_id: ObjectId) -> int:
        try:
            query = self._unexpired(user_id, get_current_utc_time())
            query["read"] = False
            return await self.db.notifications.count_documents(query)
        except PyMongoError as e:
            raise UpstreamFailure(f"Error counting unread notifications: {str(e)}") from e

    async def mark_notification_as_read(self, notification_id: ObjectId, user_id: ObjectId) -> Optional[Dict[str, Any]]:
        """
        Mark a notification as read, only when it belongs to the user
        Returns the updated notification if found, None otherwise
        """
        try:
            return await self.db.notifications.find_one_and_update(
                {"_id": notification_id, "recipient_id": user_id},
                {"$set": {"read": True, "read_at": get_current_utc_time()}},
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            raise UpstreamFailure(f"Error marking notification as read: {str(e)}") from e

    async def mark_all_notifications_as_read(self, user_id: ObjectId) -> int:
        """
        Mark all unread notifications for a user as read
        Returns the number of notifications updated
        """
        try:
            result = await self.db.notifications.update_many(
                {"recipient_id": user_id, "read": False},
                {"$set": {"read": True, "read_at": get_current_utc_time()}}
            )
            return result.modified_count
        except PyMongoError as e:
            raise UpstreamFailure(f"Error marking all notifications as read: {str(e)}") from e

    async def delete_notification(self, notification_id: ObjectId, user_id: ObjectId) -> bool:
        """
        Delete one notification owned by the user
        Returns True if something was removed
        """
        try:
            result = await self.db.notifications.delete_one({"_id": notification_id, "recipient_id": user_id})
            return result.deleted_count > 0
        except PyMongoError as e:
            raise UpstreamFailure(f"Error deleting notification: {str(e)}") from e

    async def delete_all_notifications(self, user_id: ObjectId) -> int:
        try:
            result = await self.db.notifications.delete_many({"recipient_id": user_id})
            return result.deleted_count
        except PyMongoError as e:
            raise UpstreamFailure(f"Error deleting notifications: {str(e)}") from e

    async def delete_expired(self, now: Optional[datetime] = None) -> int:
        """Sweep notifications whose expires_at has passed"""
        try:
            result = await self.db.notifications.delete_many(
                {"expires_at": {"$lte": now or get_current_utc_time()}}
            )
            return result.deleted_count
        except PyMongoError as e:
            raise UpstreamFailure(f"Error purging expired notifications: {str(e)}") from e
