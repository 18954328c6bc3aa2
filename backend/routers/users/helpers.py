from fastapi import status, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models import User
from routers.auth.helpers import auth_helpers, MIN_PASSWORD_LENGTH
from utils.errors import AppError
from utils.response_helpers import to_uuid
from utils.storage import image_storage
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ["first_name", "last_name", "address", "country", "phone_num"]


class UserHelpers:
    """Helper functions for user operations"""

    async def get_user(self, db: AsyncSession, user_id, not_found_status: int = status.HTTP_404_NOT_FOUND,
                       not_found_message: str = "User not found") -> User:
        user = await db.get(User, to_uuid(user_id, "user id"))
        if not user:
            raise AppError(not_found_message, not_found_status)
        return user

    async def get_all_users(self, db: AsyncSession) -> List[User]:
        result = await db.execute(select(User).order_by(User.created_at))
        users = result.scalars().all()
        if not users:
            raise AppError("No users found", status.HTTP_400_BAD_REQUEST)
        return users

    async def update_user(
        self,
        db: AsyncSession,
        user_id,
        updates: dict,
        address_id: Optional[str] = None,
        profile_image: Optional[UploadFile] = None
    ) -> User:
        user = await self.get_user(db, user_id)

        for field in PROFILE_FIELDS:
            value = updates.get(field)
            if value is not None:
                setattr(user, field, value)

        address = updates.get("address")
        if address and address_id:
            ship_address = [dict(entry) for entry in (user.ship_address or [])]
            for entry in ship_address:
                if entry.get("id") == address_id:
                    entry["address"] = address
            user.ship_address = ship_address

        if profile_image is not None and profile_image.filename:
            old_image = user.image_url
            user.image_url = await image_storage.upload_image("profiles", str(user.id), profile_image)
            if old_image:
                await image_storage.delete_image(old_image)

        await db.commit()
        await db.refresh(user)
        return user

    async def delete_user(self, db: AsyncSession, user_id) -> dict:
        user = await self.get_user(db, user_id, not_found_message="No such user found")
        await db.delete(user)
        await db.commit()
        logger.info(f"Deleted user {user_id}")
        return {"message": "User deleted successfully"}

    async def update_password(self, db: AsyncSession, user_id, password: Optional[str],
                              old_password: Optional[str] = None) -> dict:
        if not password:
            raise AppError("Empty input fields", status.HTTP_400_BAD_REQUEST)

        if len(password) < MIN_PASSWORD_LENGTH:
            raise AppError("Password must be at least 8 characters", status.HTTP_400_BAD_REQUEST)

        user = await self.get_user(db, user_id)

        if old_password and not auth_helpers.verify_password(old_password, user.password):
            raise AppError(
                "Current Password is incorrect. Please enter the correct current password",
                status.HTTP_403_FORBIDDEN
            )

        user.password = auth_helpers.hash_password(password)
        await db.commit()
        return {"message": "Password successfully updated"}

    async def update_ship_address(self, db: AsyncSession, user_id, ship_address: List[dict]) -> User:
        user = await self.get_user(db, user_id)
        user.ship_address = ship_address
        await db.commit()
        await db.refresh(user)
        return user

    async def add_expo_push_token(self, db: AsyncSession, user_id, expo_push_token: str) -> dict:
        user = await self.get_user(db, user_id)
        user.expo_push_token = expo_push_token
        await db.commit()
        return {"message": "Push token saved successfully"}


user_helpers = UserHelpers()
