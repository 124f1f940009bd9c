from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import datetime

from db.schemas.messages_schema import AttachmentKind, MessageType

class UserSummary(BaseModel):
    """Display identity of a chat participant"""
    id: str
    username: str
    email: str

class AttachmentResponse(BaseModel):
    url: str
    kind: AttachmentKind
    name: Optional[str] = None

class MessageResponse(BaseModel):
    """Model for returning message information to clients"""
    id: str
    conversation_id: str
    sender: UserSummary
    content: str
    message_type: MessageType = MessageType.TEXT
    attachments: List[AttachmentResponse] = []
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime

class LastMessage(BaseModel):
    """Conversation preview; the sender is left as an id"""
    id: str
    sender_id: str
    content: str
    message_type: MessageType = MessageType.TEXT
    created_at: datetime

class ConversationResponse(BaseModel):
    """Model for a pairwise conversation as seen by one participant"""
    id: str
    participants: List[UserSummary]
    last_message: Optional[LastMessage] = None
    last_message_at: datetime
    unread_counts: Dict[str, int] = {}
    unread_count: int = 0

class PaginationInfo(BaseModel):
    current_page: int
    total_pages: int
    total_messages: int

class MessagePage(BaseModel):
    messages: List[MessageResponse]
    pagination: PaginationInfo

class MarkReadResponse(BaseModel):
    status: str = "success"
    marked: int

class StatusResponse(BaseModel):
    status: str = "success"
    message: str

class PresenceResponse(BaseModel):
    user_id: str
    online: bool
