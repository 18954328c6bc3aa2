from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_notification_read, require_notification_write, require_self
from utils.errors import AppError
from utils.response_helpers import safe_model_validate
from routers.users.schemas import MessageResponse
from .schemas import (
    NotificationCreate,
    NotificationResponse,
    NotificationListResponse,
    NotificationCreateResponse,
    TestNotificationResponse,
)
from .helpers import notification_helpers
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/{user_id}", response_model=NotificationListResponse)
async def get_notifications(
    user_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_notification_read),
    __: bool = Depends(require_self),
    db: AsyncSession = Depends(get_db)
):
    """List a user's notifications, newest first"""
    try:
        result = await notification_helpers.get_user_notifications(db, user_id)
        return NotificationListResponse(notifications={
            "count": result["count"],
            "rows": [safe_model_validate(NotificationResponse, row) for row in result["rows"]],
        })
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting notifications of user {user_id}: {str(e)}")
        raise AppError(str(e) or "Error getting notifications", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/create/{user_id}", response_model=NotificationCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_notification(
    user_id: str,
    notification_data: NotificationCreate,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_notification_write),
    db: AsyncSession = Depends(get_db)
):
    try:
        notification = await notification_helpers.create_notification(
            db, user_id, notification_data.title, notification_data.message
        )
        return NotificationCreateResponse(
            message="Notification created successfully",
            notification=safe_model_validate(NotificationResponse, notification)
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error creating notification for user {user_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Failed to create notification", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/{notification_id}", response_model=MessageResponse)
async def mark_notification_read(
    notification_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_notification_write),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await notification_helpers.mark_as_read(db, notification_id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} as read: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error updating notification", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/{user_id}/test", response_model=TestNotificationResponse)
async def send_test_notification(
    user_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_notification_read),
    db: AsyncSession = Depends(get_db)
):
    """Send a test push to the user's registered device"""
    try:
        return await notification_helpers.send_test_notification(db, user_id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error sending test notification to user {user_id}: {str(e)}")
        raise AppError(str(e) or "Error sending notification", status.HTTP_500_INTERNAL_SERVER_ERROR)
