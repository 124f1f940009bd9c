from fastapi import APIRouter, HTTPException, Response, status
from dependencies.auth import CurrentUser
from dependencies.notifications import NotificationServiceDep
from logger.logger import logger
from models.notifications_model import (
    BookListing, BulkResult, FanOutResult, ItemClaim, NotificationList, NotificationResponse
)
from services.exceptions import ChatError

router = APIRouter(
    # prefix="/notifications",
    # tags=["notifications"]
)

@router.get("/", response_model=NotificationList)
async def get_user_notifications(
    current_user: CurrentUser,
    notification_service: NotificationServiceDep
):
    """Get the newest notifications for the current user with the unread total"""
    try:
        return await notification_service.list_notifications(current_user.id)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error loading notifications: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load notifications"
        )

@router.put("/read-all", response_model=BulkResult)
async def mark_all_notifications_as_read(
    current_user: CurrentUser,
    notification_service: NotificationServiceDep
):
    """Mark all notifications for the current user as read"""
    try:
        count = await notification_service.mark_all_as_read(current_user.id)
        return BulkResult(count=count)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error marking all notifications as read: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to mark notifications as read"
        )

@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_as_read(
    notification_id: str,
    current_user: CurrentUser,
    notification_service: NotificationServiceDep
):
    """Mark a specific notification as read"""
    try:
        return await notification_service.mark_as_read(notification_id, current_user.id)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} as read: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to mark notification as read"
        )

@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    current_user: CurrentUser,
    notification_service: NotificationServiceDep
):
    """Delete a specific notification"""
    try:
        await notification_service.delete_notification(notification_id, current_user.id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error deleting notification {notification_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete notification"
        )

@router.delete("/", response_model=BulkResult)
async def delete_all_notifications(
    current_user: CurrentUser,
    notification_service: NotificationServiceDep
):
    """Delete every notification of the current user"""
    try:
        count = await notification_service.delete_all_notifications(current_user.id)
        return BulkResult(count=count)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Error deleting notifications: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete notifications"
        )

# Internal endpoints for creating notifications (called by the listing and lost-and-found services)
@router.post("/internal/book-listing", response_model=FanOutResult, status_code=status.HTTP_202_ACCEPTED)
async def book_listed(
    book: BookListing,
    notification_service: NotificationServiceDep
):
    """Internal endpoint fanning a new book listing out to verified users"""
    delivered = await notification_service.notify_new_book_listing(book)
    return FanOutResult(delivered=delivered)

@router.post("/internal/item-claimed", response_model=FanOutResult, status_code=status.HTTP_202_ACCEPTED)
async def item_claimed(
    claim: ItemClaim,
    notification_service: NotificationServiceDep
):
    """Internal endpoint notifying an item's reporter about a claim"""
    delivered = await notification_service.notify_item_claimed(claim)
    return FanOutResult(delivered=delivered)
