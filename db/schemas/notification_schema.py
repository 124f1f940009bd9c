from datetime import datetime
from typing import Optional
from bson import ObjectId
from pydantic import BaseModel, Field, model_validator
from enum import Enum

class NotificationType(str, Enum):
    ITEM_MATCH = "item_match"  # potential match for a lost/found item
    ITEM_CLAIMED = "item_claimed"
    ITEM_RESOLVED = "item_resolved"
    BOOK_INTEREST = "book_interest"
    BOOK_SOLD = "book_sold"
    MESSAGE_RECEIVED = "message_received"
    SYSTEM = "system"

class NotificationData(BaseModel):
    """
    Cross reference carried by a notification.
    At most one of the ids is set.
    """
    item_id: Optional[str] = None
    book_id: Optional[str] = None
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None

    @model_validator(mode='after')
    def single_reference(self):
        populated = [name for name, value in self.model_dump().items() if value is not None]
        if len(populated) > 1:
            raise ValueError(f"Notification data may reference one entity, got {', '.join(populated)}")
        for name in populated:
            if not ObjectId.is_valid(getattr(self, name)):
                raise ValueError(f"Invalid ObjectId for {name}")
        return self

    def to_document(self) -> dict:
        return {
            name: ObjectId(value)
            for name, value in self.model_dump().items()
            if value is not None
        }

class NotificationInDB(BaseModel):
    """
    Database model for notifications
    """
    id: str = Field(..., alias="_id")
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    data: NotificationData = Field(default_factory=NotificationData)
    read: bool = False
    read_at: Optional[datetime] = None
    expires_at: datetime
    created_at: datetime

    model_config = {
        "populate_by_name": True,
    }

    @model_validator(mode='before')
    @classmethod
    def convert_object_ids(cls, values):
        if isinstance(values, dict):
            values = dict(values)
            for key in ("_id", "id", "recipient_id"):
                if isinstance(values.get(key), ObjectId):
                    values[key] = str(values[key])
            data = values.get("data") or {}
            values["data"] = {k: str(v) if isinstance(v, ObjectId) else v for k, v in data.items()}
        return values
