import math
from typing import Any, Dict, List, Optional
from bson import ObjectId

from config import settings
from db.mongodb import is_valid_object_id, convert_to_object_id
from db.schemas.messages_schema import AttachmentInDB
from helpers.effects import run_best_effort
from logger.logger import logger
from mappers.chat_mapper import conversation_db_to_response, message_db_to_response
from models.events_model import GatewayEvent, MessageSentPayload, ReadReceiptPayload
from models.message_model import (
    ConversationResponse, MessagePage, MessageResponse, PaginationInfo, UserSummary
)
from repos.conversation_repo import ConversationRepository
from repos.message_repo import MessageRepository
from repos.user_repo import UserRepository
from services.delivery_gateway import DeliveryGateway
from services.exceptions import (
    EmptyMessage, Forbidden, InvalidParty, NotFound, UpstreamFailure, ValidationError
)
from services.storage_service import PendingUpload, StorageService


def _parse_id(value: Any, label: str) -> ObjectId:
    if not is_valid_object_id(value):
        raise InvalidParty(f"Invalid {label} ID")
    return convert_to_object_id(value)


class ChatService:
    """
    Service layer for pairwise chat.
    Validates participation, keeps conversation counters in step with messages
    and pushes real-time events after the store has accepted a change.
    """

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        user_repo: UserRepository,
        gateway: DeliveryGateway,
        storage: Optional[StorageService] = None,
    ):
        self.conversation_repo = conversation_repo
        self.message_repo = message_repo
        self.user_repo = user_repo
        self.gateway = gateway
        self.storage = storage

    # Conversations

    async def get_or_create_conversation(self, user_id: str, other_user_id: str) -> ConversationResponse:
        """Get the conversation between two users, creating it on first contact"""
        user_oid = _parse_id(user_id, "user")
        other_oid = _parse_id(other_user_id, "user")
        if user_oid == other_oid:
            raise InvalidParty("Cannot create conversation with yourself")

        if not await self.user_repo.exists(other_oid):
            raise NotFound("User not found")

        conversation = await self.conversation_repo.get_or_create(user_oid, other_oid)
        return (await self._resolve_conversations([conversation], str(user_oid)))[0]

    async def list_conversations(self, user_id: str) -> List[ConversationResponse]:
        """All of a user's conversations, most recent activity first"""
        user_oid = _parse_id(user_id, "user")
        conversations = await self.conversation_repo.list_for_user(user_oid)
        return await self._resolve_conversations(conversations, str(user_oid))

    async def _resolve_conversations(self, conversations: List[Dict[str, Any]], viewer_id: str) -> List[ConversationResponse]:
        participant_ids = [p for c in conversations for p in c.get("participants", [])]
        summaries = await self.user_repo.get_summaries(participant_ids)
        last_ids = [c["last_message_id"] for c in conversations if c.get("last_message_id")]
        last_messages = await self.message_repo.find_by_ids(last_ids)
        return [
            conversation_db_to_response(
                c, summaries, last_messages.get(c.get("last_message_id")), viewer_id
            )
            for c in conversations
        ]

    async def _load_for_participant(self, conversation_id: str, user_id: str) -> Dict[str, Any]:
        conversation_oid = _parse_id(conversation_id, "conversation")
        conversation = await self.conversation_repo.find_by_id(conversation_oid)
        if not conversation:
            raise NotFound("Conversation not found")
        if _parse_id(user_id, "user") not in conversation.get("participants", []):
            raise Forbidden("You are not part of this conversation")
        return conversation

    # Messages

    async def append_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: Optional[str],
        attachment: Optional[AttachmentInDB] = None,
    ) -> MessageResponse:
        """Persist a message and move the conversation's counters forward"""
        conversation = await self._load_for_participant(conversation_id, sender_id)
        return await self._append(conversation, _parse_id(sender_id, "user"), content, attachment)

    async def _append(
        self,
        conversation: Dict[str, Any],
        sender_oid: ObjectId,
        content: Optional[str],
        attachment: Optional[AttachmentInDB],
    ) -> MessageResponse:
        text = (content or "").strip()
        if not text and attachment is None:
            raise EmptyMessage("Message content cannot be empty")

        message = await self.message_repo.create_message(conversation["_id"], sender_oid, text, attachment)
        recipients = [p for p in conversation["participants"] if p != sender_oid]
        await self.conversation_repo.record_message(
            conversation["_id"], message["_id"], sender_oid, recipients, message["created_at"]
        )
        logger.info(f"Message {message['_id']} stored in conversation {conversation['_id']}")

        summaries = await self.user_repo.get_summaries([sender_oid])
        return message_db_to_response(message, summaries.get(str(sender_oid)))

    async def send_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: Optional[str],
        upload: Optional[PendingUpload] = None,
    ) -> MessageResponse:
        """
        Send a message: validate, upload the attachment if any, persist, then
        broadcast to everyone viewing the conversation. The broadcast is
        best-effort and never undoes the stored message.
        """
        if not (content or "").strip() and upload is None:
            raise EmptyMessage("Message content cannot be empty")

        conversation = await self._load_for_participant(conversation_id, sender_id)
        sender_oid = _parse_id(sender_id, "user")

        attachment = None
        if upload is not None:
            attachment = await self._upload(upload)

        message = await self._append(conversation, sender_oid, content, attachment)

        await run_best_effort(
            f"message_sent broadcast for {message.id}",
            self.gateway.broadcast_to_conversation(
                message.conversation_id,
                GatewayEvent.MESSAGE_SENT,
                MessageSentPayload(conversation_id=message.conversation_id, message=message),
            ),
        )
        return message

    async def _upload(self, upload: PendingUpload) -> Optional[AttachmentInDB]:
        """Upload failures degrade to a text-only message"""
        if self.storage is None:
            logger.warning(f"No object storage configured, dropping attachment {upload.filename}")
            return None
        try:
            return await self.storage.upload_attachment(upload.data, upload.filename, upload.content_type)
        except UpstreamFailure as e:
            logger.warning(f"Attachment dropped: {e.detail}")
            return None

    async def list_messages(
        self,
        conversation_id: str,
        requester_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> MessagePage:
        """One page of messages, oldest first, hiding those the requester deleted"""
        page_size = page_size or settings.CHAT_PAGE_SIZE
        if page < 1:
            raise ValidationError("page must be at least 1")
        if not 1 <= page_size <= settings.CHAT_MAX_PAGE_SIZE:
            raise ValidationError(f"page_size must be between 1 and {settings.CHAT_MAX_PAGE_SIZE}")

        conversation = await self._load_for_participant(conversation_id, requester_id)
        requester_oid = _parse_id(requester_id, "user")

        newest_first = await self.message_repo.get_messages(
            conversation["_id"], requester_oid, skip=(page - 1) * page_size, limit=page_size
        )
        total = await self.message_repo.count_messages(conversation["_id"], requester_oid)
        summaries = await self.user_repo.get_summaries([m["sender_id"] for m in newest_first])

        messages = [
            message_db_to_response(m, summaries.get(str(m["sender_id"])))
            for m in reversed(newest_first)
        ]
        return MessagePage(
            messages=messages,
            pagination=PaginationInfo(
                current_page=page,
                total_pages=math.ceil(total / page_size),
                total_messages=total,
            ),
        )

    async def mark_read(self, conversation_id: str, requester_id: str) -> int:
        """Mark the other participant's messages as read and zero the requester's counter"""
        conversation = await self._load_for_participant(conversation_id, requester_id)
        requester_oid = _parse_id(requester_id, "user")

        marked = await self.message_repo.mark_messages_as_read(conversation["_id"], requester_oid)
        await self.conversation_repo.reset_unread(conversation["_id"], requester_oid)

        await run_best_effort(
            f"read_receipt broadcast for {conversation['_id']}",
            self.gateway.broadcast_to_conversation(
                str(conversation["_id"]),
                GatewayEvent.READ_RECEIPT,
                ReadReceiptPayload(conversation_id=str(conversation["_id"]), reader_id=str(requester_oid)),
            ),
        )
        return marked

    async def soft_delete_message(self, message_id: str, requester_id: str) -> None:
        """Hide a message from its sender's view; the other participant still sees it"""
        message_oid = _parse_id(message_id, "message")
        requester_oid = _parse_id(requester_id, "user")

        message = await self.message_repo.find_by_id(message_oid)
        if not message:
            raise NotFound("Message not found")
        if message["sender_id"] != requester_oid:
            raise Forbidden("You can only delete your own messages")

        await self.message_repo.soft_delete(message_oid, requester_oid)

    # Users

    async def search_users(self, requester_id: str, search: Optional[str]) -> List[UserSummary]:
        """Find verified users to start a chat with"""
        if not search or not search.strip():
            raise ValidationError("Search query required")
        users = await self.user_repo.search_verified(
            search.strip(), _parse_id(requester_id, "user"), limit=settings.USER_SEARCH_LIMIT
        )
        return [UserSummary(**u) for u in users]

    def is_online(self, user_id: str) -> bool:
        return self.gateway.is_online(user_id)
