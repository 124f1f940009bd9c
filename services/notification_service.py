from typing import Any, Dict, Optional

from pymongo.errors import PyMongoError

from config import settings
from db.mongodb import is_valid_object_id, convert_to_object_id
from db.schemas.notification_schema import NotificationData, NotificationType
from helpers.effects import run_best_effort
from logger.logger import logger
from mappers.notifications_mapper import notification_db_to_response
from models.events_model import GatewayEvent, NotificationPayload
from models.notifications_model import (
    BookListing, ItemClaim, NotificationCreate, NotificationList, NotificationResponse
)
from repos.notification_repo import NotificationRepository
from repos.user_repo import UserRepository
from services.delivery_gateway import DeliveryGateway
from services.exceptions import ChatError, InvalidParty, NotFound
from utils.time import get_current_utc_time, days_from_now


def _user_oid(user_id: str):
    if not is_valid_object_id(user_id):
        raise InvalidParty("Invalid user ID")
    return convert_to_object_id(user_id)


class NotificationService:
    """
    Service layer for notification-related operations
    Handles business logic between controllers and data access
    """

    def __init__(
        self,
        notification_repository: NotificationRepository,
        user_repository: UserRepository,
        gateway: Optional[DeliveryGateway] = None,
    ):
        self.notification_repo = notification_repository
        self.user_repo = user_repository
        self.gateway = gateway

    def _document(self, notification: NotificationCreate) -> Dict[str, Any]:
        now = get_current_utc_time()
        return {
            "recipient_id": _user_oid(notification.recipient_id),
            "type": notification.type.value,
            "title": notification.title,
            "message": notification.message,
            "data": notification.data.to_document(),
            "read": False,
            "read_at": None,
            "expires_at": days_from_now(settings.NOTIFICATION_TTL_DAYS),
            "created_at": now,
        }

    async def create_notification(self, notification: NotificationCreate) -> NotificationResponse:
        """Store a notification without pushing it"""
        notification_db = await self.notification_repo.create_notification(self._document(notification))
        return notification_db_to_response(notification_db)

    async def notify(self, notification: NotificationCreate) -> NotificationResponse:
        """Store a notification, then push it to the recipient if they are connected"""
        created = await self.create_notification(notification)
        await self._push(created)
        return created

    async def _push(self, notification: NotificationResponse) -> bool:
        if self.gateway is None:
            return False
        return await run_best_effort(
            f"notification push to {notification.recipient_id}",
            self.gateway.broadcast_to_user(
                notification.recipient_id,
                GatewayEvent.NOTIFICATION,
                NotificationPayload(notification=notification),
            ),
        )

    async def list_notifications(self, user_id: str) -> NotificationList:
        """Newest unexpired notifications plus the unread total"""
        user_oid = _user_oid(user_id)
        notifications_db = await self.notification_repo.get_user_notifications(
            user_oid, limit=settings.NOTIFICATION_LIST_LIMIT
        )
        unread_count = await self.notification_repo.count_unread(user_oid)
        return NotificationList(
            notifications=[notification_db_to_response(n) for n in notifications_db],
            unread_count=unread_count,
        )

    async def mark_as_read(self, notification_id: str, user_id: str) -> NotificationResponse:
        """Mark a notification as read and return it"""
        if not is_valid_object_id(notification_id):
            raise InvalidParty("Invalid notification ID")
        notification_db = await self.notification_repo.mark_notification_as_read(
            convert_to_object_id(notification_id), _user_oid(user_id)
        )
        if not notification_db:
            raise NotFound("Notification not found")
        return notification_db_to_response(notification_db)

    async def mark_all_as_read(self, user_id: str) -> int:
        return await self.notification_repo.mark_all_notifications_as_read(_user_oid(user_id))

    async def delete_notification(self, notification_id: str, user_id: str) -> None:
        if not is_valid_object_id(notification_id):
            raise InvalidParty("Invalid notification ID")
        deleted = await self.notification_repo.delete_notification(
            convert_to_object_id(notification_id), _user_oid(user_id)
        )
        if not deleted:
            raise NotFound("Notification not found")

    async def delete_all_notifications(self, user_id: str) -> int:
        return await self.notification_repo.delete_all_notifications(_user_oid(user_id))

    async def purge_expired(self) -> int:
        removed = await self.notification_repo.delete_expired()
        if removed:
            logger.info(f"Purged {removed} expired notification(s)")
        return removed

    # Producers. Failures here never reach the subsystem that triggered them.

    async def notify_new_book_listing(self, book: BookListing) -> int:
        """Tell every verified user except the seller about a new listing"""
        try:
            seller_oid = _user_oid(book.seller_id)
            recipients = await self.user_repo.get_verified_user_ids(exclude_id=seller_oid)
            template = NotificationCreate(
                recipient_id=book.seller_id,
                type=NotificationType.BOOK_INTEREST,
                title="New book listed",
                message=f'"{book.title}" by {book.author} is now available for {book.price:.2f}',
                data=NotificationData(book_id=book.book_id),
            )
            documents = []
            for recipient_oid in recipients:
                document = self._document(template)
                document["recipient_id"] = recipient_oid
                documents.append(document)

            stored = await self.notification_repo.create_many(documents)
        except (ChatError, PyMongoError, ValueError) as e:
            logger.error(f"Book listing notifications for {book.book_id} failed: {e}")
            return 0

        for notification_db in stored:
            await self._push(notification_db_to_response(notification_db))
        logger.info(f"Book listing {book.book_id} notified {len(stored)} user(s)")
        return len(stored)

    async def notify_item_claimed(self, claim: ItemClaim) -> int:
        """Tell the reporter of a lost/found item that someone claimed it"""
        try:
            await self.notify(NotificationCreate(
                recipient_id=claim.reporter_id,
                type=NotificationType.ITEM_CLAIMED,
                title="Item claimed",
                message=f'{claim.claimant_name} has claimed "{claim.item_title}"',
                data=NotificationData(item_id=claim.item_id),
            ))
        except (ChatError, PyMongoError, ValueError) as e:
            logger.error(f"Item claim notification for {claim.item_id} failed: {e}")
            return 0
        return 1
