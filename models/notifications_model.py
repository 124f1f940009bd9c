from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from db.schemas.notification_schema import NotificationData, NotificationType

class NotificationCreate(BaseModel):
    recipient_id: str
    type: NotificationType
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    data: NotificationData = Field(default_factory=NotificationData)

class NotificationResponse(BaseModel):
    id: str
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    data: NotificationData
    read: bool
    read_at: Optional[datetime] = None
    expires_at: datetime
    created_at: datetime

class NotificationList(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int

# Payloads the listing and lost-and-found subsystems hand over

class BookListing(BaseModel):
    """A freshly created book listing"""
    book_id: str
    seller_id: str
    title: str
    author: str
    price: float

class ItemClaim(BaseModel):
    """A claim submitted against a lost/found item"""
    item_id: str
    item_title: str
    reporter_id: str
    claimant_id: str
    claimant_name: str

class FanOutResult(BaseModel):
    delivered: int

class BulkResult(BaseModel):
    status: str = "success"
    count: int
