from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from passlib.context import CryptContext
from email_validator import validate_email, EmailNotValidError
from config import (
    JWT_SECRET_KEY,
    JWT_REFRESH_SECRET_KEY,
    JWT_ALGORITHM,
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
    JWT_REFRESH_TOKEN_EXPIRE_DAYS,
)
from models import User, Role
from utils.errors import AppError
from utils.response_helpers import to_uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
import uuid
import logging

logger = logging.getLogger(__name__)

VALID_ROLES = ["buyer", "farmer"]
MIN_PASSWORD_LENGTH = 8
SESSION_EXPIRED_MESSAGE = "You are either not logged in or your session has expired"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthHelpers:
    """Password hashing, token handling and account creation"""

    def hash_password(self, password: str) -> str:
        return pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        if not hashed_password:
            # OAuth-only accounts have no password
            return False
        return pwd_context.verify(plain_password, hashed_password)

    def _encode(self, claims: dict, secret: str, expires_delta: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {**claims, "iat": now, "exp": now + expires_delta}
        return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)

    def create_access_token(self, user_id, email: str, role: Optional[str]) -> str:
        return self._encode(
            {"sub": str(user_id), "email": email, "role": role, "type": "access"},
            JWT_SECRET_KEY,
            timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    def create_refresh_token(self, user_id, email: str, role: Optional[str]) -> str:
        return self._encode(
            {"sub": str(user_id), "email": email, "role": role, "type": "refresh"},
            JWT_REFRESH_SECRET_KEY,
            timedelta(days=JWT_REFRESH_TOKEN_EXPIRE_DAYS),
        )

    def verify_token(self, token: str, refresh: bool = False) -> dict:
        """
        Verify a locally issued JWT and return its claims
        """
        secret = JWT_REFRESH_SECRET_KEY if refresh else JWT_SECRET_KEY
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                options={"verify_exp": True, "verify_signature": True}
            )
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token expired")
            raise AppError("Your session has expired", status.HTTP_401_UNAUTHORIZED)
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {str(e)}")
            raise AppError("Invalid token", status.HTTP_401_UNAUTHORIZED)

        if not payload.get("sub"):
            raise AppError("Invalid token: missing user ID", status.HTTP_401_UNAUTHORIZED)
        return payload

    async def get_or_create_role(self, db: AsyncSession, role_name: str) -> Role:
        result = await db.execute(select(Role).where(Role.role_name == role_name))
        role = result.scalar_one_or_none()
        if role is None:
            role = Role(role_name=role_name)
            db.add(role)
            await db.flush()
            logger.info(f"Created role {role_name}")
        return role

    async def signup(self, db: AsyncSession, data) -> dict:
        if not data.email or not data.password:
            raise AppError("Empty input fields", status.HTTP_400_BAD_REQUEST)

        if len(data.password) < MIN_PASSWORD_LENGTH:
            raise AppError("Password must be at least 8 characters", status.HTTP_400_BAD_REQUEST)

        try:
            email = validate_email(data.email, check_deliverability=False).normalized
        except EmailNotValidError:
            raise AppError("Invalid email entered", status.HTTP_400_BAD_REQUEST)

        if data.user_role not in VALID_ROLES:
            raise AppError(
                f"Invalid role: {data.user_role}. Valid roles are: {', '.join(VALID_ROLES)}",
                status.HTTP_400_BAD_REQUEST
            )

        existing = await db.execute(select(User.id).where(User.email == email))
        if existing.scalar_one_or_none():
            raise AppError("This email is already registered.", status.HTTP_409_CONFLICT)

        role = await self.get_or_create_role(db, data.user_role)

        user = User(
            role_id=role.id,
            email=email,
            password=self.hash_password(data.password.strip()),
            country=data.country,
            phone_num=(data.phone_num or "").strip(),
            first_name="",
            last_name="",
            address="",
            ship_address=[],
            verified_user=True,
            vip=False,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"Registered {data.user_role} {user.id}")

        return {
            "message": "Registration successful. Complete your profile or log in with your email and password.",
            "email": user.email,
            "userID": str(user.id),
        }

    async def complete_registration(self, db: AsyncSession, user_id, data) -> dict:
        user = await db.get(User, to_uuid(user_id, "user id"))
        if not user:
            raise AppError("User not found", status.HTTP_404_NOT_FOUND)

        user.first_name = (data.first_name or "").strip()
        user.last_name = (data.last_name or "").strip()
        user.address = data.address or ""
        user.image_url = data.image_url or ""
        user.ship_address = [{
            "id": str(uuid.uuid4()),
            "title": "Home",
            "address": data.address or "",
            "default": True,
        }]
        if data.expo_push_token:
            user.expo_push_token = data.expo_push_token

        await db.commit()
        return {"message": "User successfully registered"}

    async def login(self, db: AsyncSession, data) -> dict:
        result = await db.execute(
            select(User).options(selectinload(User.role)).where(User.email == data.email)
        )
        user = result.scalar_one_or_none()
        if not user:
            raise AppError("No user exists for this email address", status.HTTP_403_FORBIDDEN)

        if not self.verify_password(data.password, user.password):
            raise AppError("Incorrect Password", status.HTTP_403_FORBIDDEN)

        role_name = user.role.role_name if user.role else None
        return {
            "message": "Authentication Successful",
            "token": self.create_access_token(user.id, user.email, role_name),
            "refreshToken": self.create_refresh_token(user.id, user.email, role_name),
            "userData": {
                "id": str(user.id),
                "email": user.email,
                "firstName": user.first_name,
                "lastName": user.last_name,
                "verifiedUser": user.verified_user,
                "role": role_name,
            },
        }

    def refresh_access_token(self, authorization: Optional[str]) -> dict:
        if not authorization or not authorization.startswith("Bearer "):
            raise AppError(SESSION_EXPIRED_MESSAGE, status.HTTP_401_UNAUTHORIZED)

        payload = self.verify_token(authorization.split(" ", 1)[1], refresh=True)
        return {
            "message": "Token refreshed successfully",
            "token": self.create_access_token(payload["sub"], payload.get("email"), payload.get("role")),
        }


auth_helpers = AuthHelpers()
