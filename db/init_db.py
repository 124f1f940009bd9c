from pymongo import ASCENDING, DESCENDING

from logger.logger import logger


async def init_db_indexes(db):
    """
    Initialize database with required indexes and configurations
    """
    # Conversations: membership lookup, inbox ordering, one record per pair
    await db.conversations.create_index([("participants", ASCENDING)])
    await db.conversations.create_index([("last_message_at", DESCENDING)])
    await db.conversations.create_index([("participant_key", ASCENDING)], unique=True)

    # Messages: paging inside a conversation
    await db.messages.create_index([("conversation_id", ASCENDING), ("created_at", DESCENDING)])
    await db.messages.create_index([("sender_id", ASCENDING)])
    await db.messages.create_index([("is_read", ASCENDING)])

    # Notifications: inbox listing and automatic expiry
    await db.notifications.create_index([
        ("recipient_id", ASCENDING),
        ("read", ASCENDING),
        ("created_at", DESCENDING)
    ])
    await db.notifications.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)

    # Users: chat partner search
    await db.users.create_index([("is_verified", ASCENDING)])

    logger.info("Database indexes ensured")
