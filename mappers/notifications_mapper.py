from typing import Any, Dict

from db.schemas.notification_schema import NotificationInDB
from models.notifications_model import NotificationResponse


def notification_db_to_response(notification: Dict[str, Any]) -> NotificationResponse:
    """Convert a raw notification document to the API response model"""
    notification_db = NotificationInDB(**notification)
    return NotificationResponse(**notification_db.model_dump(by_alias=False))
