from fastapi import Depends
from typing import Annotated

from dependencies.db import get_db, get_gateway, get_object_storage
from dependencies.user import get_user_repository
from repos.conversation_repo import ConversationRepository
from repos.message_repo import MessageRepository
from services.chat_service import ChatService
from services.storage_service import StorageService

def get_conversation_repository(db=Depends(get_db)):
    """Create and return a ConversationRepository instance"""
    return ConversationRepository(db)

def get_message_repository(db=Depends(get_db)):
    """Create and return a MessageRepository instance"""
    return MessageRepository(db)

def get_storage_service(minio_client=Depends(get_object_storage)):
    return StorageService(minio_client) if minio_client is not None else None

def get_chat_service(
        conversation_repo=Depends(get_conversation_repository),
        message_repo=Depends(get_message_repository),
        user_repo=Depends(get_user_repository),
        gateway=Depends(get_gateway),
        storage=Depends(get_storage_service)
    ):
    """Create and return a ChatService instance"""
    return ChatService(conversation_repo, message_repo, user_repo, gateway, storage)

# Create a type alias for dependency injection
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
