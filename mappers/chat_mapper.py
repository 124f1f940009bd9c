from typing import Any, Dict, Optional

from models.message_model import ConversationResponse, LastMessage, MessageResponse, UserSummary


def unknown_user(user_id: str) -> Dict[str, Any]:
    """Placeholder identity for an account that no longer resolves"""
    return {"id": user_id, "username": "Unknown User", "email": ""}


def message_db_to_response(message: Dict[str, Any], sender: Optional[Dict[str, Any]]) -> MessageResponse:
    """Convert a message document plus its resolved sender to the API model"""
    sender_id = str(message["sender_id"])
    return MessageResponse(
        id=str(message["_id"]),
        conversation_id=str(message["conversation_id"]),
        sender=UserSummary(**(sender or unknown_user(sender_id))),
        content=message.get("content", ""),
        message_type=message.get("message_type", "text"),
        attachments=message.get("attachments", []),
        is_read=message.get("is_read", False),
        read_at=message.get("read_at"),
        created_at=message["created_at"],
    )


def last_message_preview(message: Optional[Dict[str, Any]]) -> Optional[LastMessage]:
    if not message:
        return None
    return LastMessage(
        id=str(message["_id"]),
        sender_id=str(message["sender_id"]),
        content=message.get("content", ""),
        message_type=message.get("message_type", "text"),
        created_at=message["created_at"],
    )


def conversation_db_to_response(
    conversation: Dict[str, Any],
    summaries: Dict[str, Dict[str, Any]],
    last_message: Optional[Dict[str, Any]],
    viewer_id: str,
) -> ConversationResponse:
    """Convert a conversation document to the API model as seen by viewer_id"""
    participant_ids = [str(p) for p in conversation.get("participants", [])]
    unread_counts = {k: int(v) for k, v in (conversation.get("unread_counts") or {}).items()}
    return ConversationResponse(
        id=str(conversation["_id"]),
        participants=[UserSummary(**summaries.get(pid, unknown_user(pid))) for pid in participant_ids],
        last_message=last_message_preview(last_message),
        last_message_at=conversation["last_message_at"],
        unread_counts=unread_counts,
        unread_count=unread_counts.get(viewer_id, 0),
    )
