from utils.response_helpers import CamelModel
from typing import Optional, List
from datetime import datetime


class ShipAddress(CamelModel):
    id: str
    title: str
    address: str
    default: bool = False


class UserResponse(CamelModel):
    """Public user data; the password hash is never part of it"""
    id: str
    role_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    phone_num: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    image_url: Optional[str] = None
    ship_address: List[ShipAddress] = []
    expo_push_token: Optional[str] = None
    vip: bool = False
    verified_user: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserSummary(CamelModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    country: Optional[str] = None
    image_url: Optional[str] = None
    verified_user: bool = False


class UserUpdateResponse(CamelModel):
    message: str
    user_data: UserResponse


class UpdatePasswordRequest(CamelModel):
    password: Optional[str] = None
    old_password: Optional[str] = None
    user_id: Optional[str] = None


class ShipAddressUpdateRequest(CamelModel):
    ship_address: List[ShipAddress]


class ShipAddressUpdateResponse(CamelModel):
    message: str
    data: UserResponse


class ExpoPushTokenRequest(CamelModel):
    expo_push_token: str


class MessageResponse(CamelModel):
    message: str
