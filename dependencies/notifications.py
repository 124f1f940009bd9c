from fastapi import Depends
from typing import Annotated

from dependencies.db import get_db, get_gateway
from dependencies.user import get_user_repository
from repos.notification_repo import NotificationRepository
from repos.user_repo import UserRepository
from services.notification_service import NotificationService

def get_notification_repository(db=Depends(get_db)):
    """Create and return a NotificationRepository instance"""
    return NotificationRepository(db)

async def get_notification_service(
    notification_repo: NotificationRepository = Depends(get_notification_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    gateway=Depends(get_gateway)
) -> NotificationService:
    return NotificationService(notification_repo, user_repo, gateway)

# Create a type alias for dependency injection
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
