from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.orm import selectinload
from models import Notification, User
from utils.errors import AppError
from utils.notifications import send_push_notification
from utils.response_helpers import to_uuid
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class NotificationHelpers:
    """In-app notifications and push delivery checks"""

    async def get_user_notifications(self, db: AsyncSession, user_id) -> dict:
        user_uuid = to_uuid(user_id, "user id")
        count_result = await db.execute(
            select(func.count(Notification.id)).where(Notification.user_id == user_uuid)
        )
        result = await db.execute(
            select(Notification)
            .options(selectinload(Notification.user))
            .where(Notification.user_id == user_uuid)
            .order_by(Notification.created_at.desc())
        )
        return {"count": count_result.scalar_one(), "rows": result.scalars().all()}

    async def create_notification(self, db: AsyncSession, user_id, title: Optional[str],
                                  message: Optional[str]) -> Notification:
        if not title or not message:
            raise AppError("Title and message are required", status.HTTP_400_BAD_REQUEST)

        user_uuid = to_uuid(user_id, "user id")
        if not await db.get(User, user_uuid):
            raise AppError("User not found", status.HTTP_404_NOT_FOUND)

        notification = Notification(user_id=user_uuid, title=title, message=message, is_read=False)
        db.add(notification)
        await db.commit()
        await db.refresh(notification)
        return notification

    async def mark_as_read(self, db: AsyncSession, notification_id) -> dict:
        result = await db.execute(
            update(Notification)
            .where(Notification.id == to_uuid(notification_id, "notification id"))
            .values(is_read=True)
        )
        if result.rowcount == 0:
            raise AppError("Notification not found", status.HTTP_404_NOT_FOUND)

        await db.commit()
        return {"message": "Notification marked as read"}

    async def send_test_notification(self, db: AsyncSession, user_id) -> dict:
        user = await db.get(User, to_uuid(user_id, "user id"))
        if not user:
            raise AppError("User not found", status.HTTP_404_NOT_FOUND)

        if not user.expo_push_token:
            raise AppError("User has no push token registered", status.HTTP_400_BAD_REQUEST)

        ticket = await send_push_notification(user.expo_push_token, "Test Notification", "A test notification")
        if ticket.get("status") == "error":
            raise AppError(
                f"Expo notification error: {ticket.get('message') or 'Unknown error'}",
                status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        logger.info(f"Test notification sent to user {user.id}")
        return {"message": "Notification sent successfully", "result": ticket}


notification_helpers = NotificationHelpers()
