from fastapi import APIRouter, Depends, Request, Header, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from config import get_db
from models import User, Role
from utils.errors import AppError
from utils.response_helpers import to_uuid
from .schemas import (
    SignupRequest,
    CompleteRegistrationRequest,
    LoginRequest,
    LoginResponse,
    TokenResponse,
)
from .helpers import auth_helpers, SESSION_EXPIRED_MESSAGE
from typing import Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
):
    """Get current user from JWT token"""
    if credentials is None or not credentials.credentials:
        raise AppError(SESSION_EXPIRED_MESSAGE, status.HTTP_401_UNAUTHORIZED)

    payload = auth_helpers.verify_token(credentials.credentials)

    current_user = {
        "user_id": payload["sub"],
        "email": payload.get("email"),
        "role": payload.get("role")
    }

    if not current_user["role"]:
        # Tokens issued before a role was assigned: read it from the database
        result = await db.execute(
            select(Role.role_name)
            .join(User, User.role_id == Role.id)
            .where(User.id == to_uuid(current_user["user_id"], "user id"))
        )
        current_user["role"] = result.scalar_one_or_none()
        logger.info(f"User {current_user['user_id']} role from database: {current_user['role']}")

    request.state.current_user = current_user
    return current_user


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    signup_data: SignupRequest,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await auth_helpers.signup(db, signup_data)
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Registration failed: {str(e)}")
        raise AppError(str(e) or "Registration failed", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/signup/{user_id}")
async def complete_registration(
    user_id: str,
    registration_data: CompleteRegistrationRequest,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await auth_helpers.complete_registration(db, user_id, registration_data)
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Profile completion failed for {user_id}: {str(e)}")
        raise AppError(str(e) or "Registration failed", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await auth_helpers.login(db, login_data)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Login failed: {str(e)}")
        raise AppError(str(e) or "Login failed", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/refreshToken", response_model=TokenResponse)
async def refresh_token(
    authorization: Optional[str] = Header(None)
):
    """Exchange a refresh token (sent as a bearer token) for a new access token"""
    return auth_helpers.refresh_access_token(authorization)
