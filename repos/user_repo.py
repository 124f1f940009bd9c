import re
from typing import Dict, List, Optional, Any
from bson import ObjectId

from db.schemas.users_schema import UserInDB

# Only the display identity ever leaves this repository
SUMMARY_PROJECTION = {"username": 1, "email": 1}

class UserRepository:
    """
    Read-only access to the accounts collection.
    Accounts are owned by the user service; chat only looks people up.
    """

    def __init__(self, db):
        self.db = db

    async def get_user_by_id(self, user_id: ObjectId) -> Optional[UserInDB]:
        user = await self.db.users.find_one({"_id": user_id})
        return UserInDB(**user) if user else None

    async def exists(self, user_id: ObjectId) -> bool:
        return await self.db.users.find_one({"_id": user_id}, {"_id": 1}) is not None

    async def get_summaries(self, user_ids: List[ObjectId]) -> Dict[str, Dict[str, Any]]:
        """
        Resolve a batch of ids to {id, username, email}, keyed by string id.
        Unknown ids are simply absent from the result.
        """
        if not user_ids:
            return {}
        cursor = self.db.users.find({"_id": {"$in": list(set(user_ids))}}, SUMMARY_PROJECTION)
        summaries = {}
        async for user in cursor:
            summaries[str(user["_id"])] = {
                "id": str(user["_id"]),
                "username": user.get("username", ""),
                "email": user.get("email", ""),
            }
        return summaries

    async def search_verified(self, search: str, exclude_id: ObjectId, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Case-insensitive substring match on username or email,
        verified accounts only, never the caller
        """
        pattern = re.escape(search)
        cursor = self.db.users.find(
            {
                "$and": [
                    {
                        "$or": [
                            {"username": {"$regex": pattern, "$options": "i"}},
                            {"email": {"$regex": pattern, "$options": "i"}},
                        ]
                    },
                    {"_id": {"$ne": exclude_id}},
                    {"is_verified": True},
                ]
            },
            SUMMARY_PROJECTION,
        ).limit(limit)
        users = await cursor.to_list(length=limit)
        return [
            {"id": str(u["_id"]), "username": u.get("username", ""), "email": u.get("email", "")}
            for u in users
        ]

    async def get_verified_user_ids(self, exclude_id: Optional[ObjectId] = None) -> List[ObjectId]:
        query: Dict[str, Any] = {"is_verified": True}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        cursor = self.db.users.find(query, {"_id": 1})
        return [user["_id"] async for user in cursor]
