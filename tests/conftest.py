import os

# config.py exits the process when these are missing, so set them before any app import
os.environ.setdefault("DATABASE_URL", "mongodb://localhost:27017")
os.environ.setdefault("DATABASE_NAME", "campus_chat_test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("MINIO_USERNAME", "minio")
os.environ.setdefault("MINIO_PASSWORD", "minio-password")
os.environ.setdefault("MINIO_SERVER", "localhost:9000")
os.environ.setdefault("MINIO_BUCKET", "chat-test")

from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from repos.conversation_repo import ConversationRepository
from repos.message_repo import MessageRepository
from repos.notification_repo import NotificationRepository
from repos.user_repo import UserRepository
from services.chat_service import ChatService
from services.delivery_gateway import DeliveryGateway
from services.notification_service import NotificationService
from utils.time import get_current_utc_time


@pytest.fixture
async def db():
    database = AsyncMongoMockClient()["campus_chat_test"]
    await database.conversations.create_index([("participant_key", 1)], unique=True)
    return database


@pytest.fixture
async def users(db):
    """alice, bob and carol are verified; dave never confirmed his email"""
    seeded = {}
    for name, verified in (("alice", True), ("bob", True), ("carol", True), ("dave", False)):
        oid = ObjectId()
        await db.users.insert_one({
            "_id": oid,
            "username": name,
            "email": f"{name}@campus.edu",
            "password_hash": "not-used",
            "is_verified": verified,
            "created_at": get_current_utc_time(),
        })
        seeded[name] = str(oid)
    return seeded


@pytest.fixture
def socket_server():
    server = MagicMock()
    server.emit = AsyncMock()
    server.enter_room = AsyncMock()
    server.leave_room = AsyncMock()
    return server


@pytest.fixture
def gateway(socket_server):
    return DeliveryGateway(socket_server)


@pytest.fixture
def storage():
    return AsyncMock()


@pytest.fixture
def chat_service(db, gateway, storage):
    return ChatService(
        ConversationRepository(db),
        MessageRepository(db),
        UserRepository(db),
        gateway,
        storage,
    )


@pytest.fixture
def notification_service(db, gateway):
    return NotificationService(NotificationRepository(db), UserRepository(db), gateway)


def emitted(socket_server, event_name):
    """(payload, room) for every emit of event_name, in call order"""
    return [
        (call.args[1], call.kwargs.get("room"))
        for call in socket_server.emit.call_args_list
        if call.args[0] == event_name
    ]
