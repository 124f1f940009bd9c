from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from typing import List, Optional

from config import CHAT_MAX_PAGE_SIZE
from dependencies.auth import CurrentUser
from dependencies.chat import ChatServiceDep
from logger.logger import logger
from models.message_model import (
    ConversationResponse, MarkReadResponse, MessagePage, MessageResponse,
    PresenceResponse, StatusResponse, UserSummary
)
from services.exceptions import ChatError
from services.storage_service import PendingUpload

router = APIRouter()

@router.get("/conversations", response_model=List[ConversationResponse])
async def get_conversations(
    current_user: CurrentUser,
    chat_service: ChatServiceDep
):
    """Get all conversations for the current user, most recent first"""
    try:
        return await chat_service.list_conversations(current_user.id)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error loading conversations: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load conversations"
        )

@router.get("/conversations/{other_user_id}", response_model=ConversationResponse)
async def get_or_create_conversation(
    other_user_id: str,
    current_user: CurrentUser,
    chat_service: ChatServiceDep
):
    """Get the conversation with a specific user, starting it if needed"""
    try:
        return await chat_service.get_or_create_conversation(current_user.id, other_user_id)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error opening conversation with {other_user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create conversation"
        )

@router.get("/conversations/{conversation_id}/messages", response_model=MessagePage)
async def get_messages(
    conversation_id: str,
    current_user: CurrentUser,
    chat_service: ChatServiceDep,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=CHAT_MAX_PAGE_SIZE)
):
    """Get one page of messages, oldest first"""
    try:
        return await chat_service.list_messages(conversation_id, current_user.id, page, page_size)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error loading messages for {conversation_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load messages"
        )

@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: str,
    current_user: CurrentUser,
    chat_service: ChatServiceDep,
    content: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None)
):
    """
    Send a message.

    Accepts multipart form data with optional text content and an optional
    image/file attachment; at least one of them is required.
    """
    try:
        upload = None
        if image is not None and image.filename:
            upload = PendingUpload(
                data=await image.read(),
                filename=image.filename,
                content_type=image.content_type or "application/octet-stream",
            )
        return await chat_service.send_message(conversation_id, current_user.id, content, upload)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error sending message to {conversation_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send message"
        )

@router.put("/conversations/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_as_read(
    conversation_id: str,
    current_user: CurrentUser,
    chat_service: ChatServiceDep
):
    """Mark the other participant's messages as read"""
    try:
        marked = await chat_service.mark_read(conversation_id, current_user.id)
        return MarkReadResponse(marked=marked)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error marking {conversation_id} as read: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to mark messages as read"
        )

@router.delete("/messages/{message_id}", response_model=StatusResponse)
async def delete_message(
    message_id: str,
    current_user: CurrentUser,
    chat_service: ChatServiceDep
):
    """Delete a message for yourself"""
    try:
        await chat_service.soft_delete_message(message_id, current_user.id)
        return StatusResponse(message="Message deleted")
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error deleting message {message_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete message"
        )

@router.get("/search-users", response_model=List[UserSummary])
async def search_users(
    current_user: CurrentUser,
    chat_service: ChatServiceDep,
    search: Optional[str] = Query(None)
):
    """Search verified users by username or email"""
    try:
        return await chat_service.search_users(current_user.id, search)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error searching users: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to search users"
        )

@router.get("/presence/{user_id}", response_model=PresenceResponse)
async def get_presence(
    user_id: str,
    current_user: CurrentUser,
    chat_service: ChatServiceDep
):
    """Whether a user currently has a live connection"""
    return PresenceResponse(user_id=user_id, online=chat_service.is_online(user_id))
