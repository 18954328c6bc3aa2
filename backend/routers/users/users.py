from fastapi import APIRouter, Depends, status, UploadFile, File, Form
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_self, NOT_OWNER_MESSAGE
from utils.errors import AppError
from utils.response_helpers import safe_model_validate, safe_model_validate_list
from .schemas import (
    UserResponse,
    UserUpdateResponse,
    UpdatePasswordRequest,
    ShipAddressUpdateRequest,
    ShipAddressUpdateResponse,
    ExpoPushTokenRequest,
    MessageResponse,
)
from .helpers import user_helpers
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.put("/updatePassword", response_model=MessageResponse)
async def update_password(
    password_data: UpdatePasswordRequest,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Change a password. When oldPassword is sent it must match the stored one."""
    try:
        user_id = password_data.user_id or current_user["user_id"]
        if str(user_id) != str(current_user["user_id"]):
            raise AppError(NOT_OWNER_MESSAGE, status.HTTP_403_FORBIDDEN)

        return await user_helpers.update_password(
            db, user_id, password_data.password, password_data.old_password
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating password: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Failed to update password", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("", response_model=List[UserResponse])
async def get_all_users(
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        users = await user_helpers.get_all_users(db)
        return safe_model_validate_list(UserResponse, users)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error listing users: {str(e)}")
        raise AppError(str(e) or "Failed to retrieve users", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        user = await user_helpers.get_user(
            db, user_id,
            not_found_status=status.HTTP_401_UNAUTHORIZED,
            not_found_message="No such user found"
        )
        return safe_model_validate(UserResponse, user)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting user {user_id}: {str(e)}")
        raise AppError(str(e) or "Failed to retrieve user", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/{user_id}", response_model=UserUpdateResponse)
async def update_user(
    user_id: str,
    first_name: Optional[str] = Form(None, alias="firstName"),
    last_name: Optional[str] = Form(None, alias="lastName"),
    address: Optional[str] = Form(None),
    address_id: Optional[str] = Form(None, alias="addressID"),
    country: Optional[str] = Form(None),
    phone_num: Optional[str] = Form(None, alias="phoneNum"),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage", description="Profile image (JPEG, PNG, GIF, or WebP, max 5MB)"),
    current_user = Depends(get_current_user),
    _: bool = Depends(require_self),
    db: AsyncSession = Depends(get_db)
):
    """Update profile details. Sending address with addressID rewrites that shipping address."""
    try:
        user = await user_helpers.update_user(
            db,
            user_id,
            {
                "first_name": first_name,
                "last_name": last_name,
                "address": address,
                "country": country,
                "phone_num": phone_num,
            },
            address_id=address_id,
            profile_image=profile_image
        )
        return UserUpdateResponse(
            message="Profile updated successfully",
            user_data=safe_model_validate(UserResponse, user)
        )
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error updating user {user_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Failed to update profile", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/{user_id}/shipAddress", response_model=ShipAddressUpdateResponse)
async def update_ship_address(
    user_id: str,
    ship_address_data: ShipAddressUpdateRequest,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_self),
    db: AsyncSession = Depends(get_db)
):
    try:
        ship_address = [entry.model_dump() for entry in ship_address_data.ship_address]
        user = await user_helpers.update_ship_address(db, user_id, ship_address)
        return ShipAddressUpdateResponse(
            message="Shipping address updated successfully",
            data=safe_model_validate(UserResponse, user)
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating shipping address for {user_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Failed to update shipping address", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/{user_id}/expoPushToken", response_model=MessageResponse)
async def add_expo_push_token(
    user_id: str,
    token_data: ExpoPushTokenRequest,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_self),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await user_helpers.add_expo_push_token(db, user_id, token_data.expo_push_token)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error saving push token for {user_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Failed to save push token", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_self),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await user_helpers.delete_user(db, user_id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting user {user_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Failed to delete user", status.HTTP_500_INTERNAL_SERVER_ERROR)
