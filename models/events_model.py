"""
Real-time events pushed through the delivery gateway.

Every event kind has exactly one payload model; GatewayEvent.payload_model
is the single place that pairing lives.
"""
from enum import Enum
from typing import Type

from pydantic import BaseModel

from models.message_model import MessageResponse
from models.notifications_model import NotificationResponse


class GatewayEvent(str, Enum):
    PRESENCE_ONLINE = "presence_online"
    PRESENCE_OFFLINE = "presence_offline"
    MESSAGE_SENT = "message_sent"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    READ_RECEIPT = "read_receipt"
    NOTIFICATION = "notification"

    @property
    def payload_model(self) -> Type[BaseModel]:
        return _PAYLOADS[self]


class PresencePayload(BaseModel):
    user_id: str


class MessageSentPayload(BaseModel):
    conversation_id: str
    message: MessageResponse


class TypingPayload(BaseModel):
    conversation_id: str
    user_id: str
    username: str = ""


class ReadReceiptPayload(BaseModel):
    conversation_id: str
    reader_id: str


class NotificationPayload(BaseModel):
    notification: NotificationResponse


_PAYLOADS = {
    GatewayEvent.PRESENCE_ONLINE: PresencePayload,
    GatewayEvent.PRESENCE_OFFLINE: PresencePayload,
    GatewayEvent.MESSAGE_SENT: MessageSentPayload,
    GatewayEvent.TYPING_START: TypingPayload,
    GatewayEvent.TYPING_STOP: TypingPayload,
    GatewayEvent.READ_RECEIPT: ReadReceiptPayload,
    GatewayEvent.NOTIFICATION: NotificationPayload,
}
