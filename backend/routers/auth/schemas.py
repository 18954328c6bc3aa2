from utils.response_helpers import CamelModel
from typing import Optional


# Request schemas
class SignupRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    user_role: Optional[str] = None
    country: Optional[str] = None
    phone_num: Optional[str] = None


class CompleteRegistrationRequest(CamelModel):
    first_name: str
    last_name: str
    address: str
    expo_push_token: Optional[str] = None
    image_url: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


# Response schemas
class LoginUserData(CamelModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    verified_user: bool = False
    role: Optional[str] = None


class LoginResponse(CamelModel):
    message: str
    token: str
    refresh_token: str
    user_data: LoginUserData


class TokenResponse(CamelModel):
    message: str
    token: str
