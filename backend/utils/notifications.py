"""
Expo push notifications and the in-app notification records that follow them
"""
from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from config import EXPO_PUSH_URL
from models import User, Notification
from utils.errors import AppError
from utils.response_helpers import to_uuid
from typing import Optional
import httpx
import logging

logger = logging.getLogger(__name__)

DEVICE_NOT_REGISTERED = "DeviceNotRegistered"


def _first_ticket(payload: dict) -> dict:
    # Expo answers a single message with an object and a batch with a list
    data = payload.get("data") if isinstance(payload, dict) else None
    if isinstance(data, list):
        return data[0] if data else {}
    return data or {}


class ExpoPushClient:
    """Thin async client for the Expo push API"""

    def __init__(self, url: str = EXPO_PUSH_URL, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.transport = transport

    async def send(self, message: dict) -> dict:
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
                response = await client.post(
                    self.url,
                    json=message,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise AppError(f"Failed to send push notification: {str(e)}", status.HTTP_500_INTERNAL_SERVER_ERROR)

        if response.is_error:
            raise AppError(
                f"Failed to send notification: {response.reason_phrase}",
                response.status_code
            )

        return _first_ticket(response.json())


expo_push_client = ExpoPushClient()


async def send_push_notification(push_token: Optional[str], title: str, text: str) -> Optional[dict]:
    """
    Send one push message. Returns the Expo ticket, or None when the user has no token.
    A DeviceNotRegistered ticket is returned so the caller can drop the stale token.
    """
    if not push_token:
        return None

    ticket = await expo_push_client.send({
        "to": push_token,
        "sound": "default",
        "title": title,
        "body": text,
        "priority": "high",
    })

    if ticket.get("status") == "error":
        error_code = (ticket.get("details") or {}).get("error")
        if error_code == DEVICE_NOT_REGISTERED:
            return ticket
        raise AppError(
            f"Expo notification error: {ticket.get('message') or error_code or 'Unknown error'}",
            status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return ticket


async def handle_push_ticket(db: AsyncSession, ticket: dict, user_id, title: str, message: str):
    """
    Record a delivered push as an unread notification, or clear the token of an unregistered device
    """
    user_id = to_uuid(user_id, "user id")
    ticket_status = ticket.get("status")

    if ticket_status == "ok":
        db.add(Notification(
            user_id=user_id,
            title=title,
            message=message,
            is_read=False
        ))
        await db.flush()
        return

    error_code = (ticket.get("details") or {}).get("error")
    if ticket_status == "error" and error_code == DEVICE_NOT_REGISTERED:
        result = await db.execute(
            update(User).where(User.id == user_id).values(expo_push_token=None)
        )
        if result.rowcount == 0:
            raise AppError(f"User not found with ID: {user_id}", status.HTTP_404_NOT_FOUND)
        logger.info(f"Cleared unregistered push token for user {user_id}")
        return

    raise AppError(
        f"Expo notification error: {error_code or 'Unknown error'}",
        status.HTTP_500_INTERNAL_SERVER_ERROR
    )


async def notify_user(db: AsyncSession, user_id, title: str, message: str) -> bool:
    """
    Push a message to a user and record it. Never raises: callers have already
    committed their own work and a failed notification must not undo it.
    """
    try:
        user_id = to_uuid(user_id, "user id")
        result = await db.execute(select(User.expo_push_token).where(User.id == user_id))
        push_token = result.scalar_one_or_none()
        if not push_token:
            logger.info(f"User {user_id} has no push token, skipping notification '{title}'")
            return False

        ticket = await send_push_notification(push_token, title, message)
        if ticket is None:
            return False

        await handle_push_ticket(db, ticket, user_id, title, message)
        await db.commit()
        return True

    except Exception as e:
        logger.error(f"Failed to notify user {user_id} ('{title}'): {str(e)}")
        await db.rollback()
        return False
