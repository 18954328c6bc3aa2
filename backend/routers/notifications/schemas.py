from utils.response_helpers import CamelModel
from routers.users.schemas import UserSummary
from typing import Optional, List, Any, Dict
from datetime import datetime


class NotificationCreate(CamelModel):
    title: Optional[str] = None
    message: Optional[str] = None


class NotificationResponse(CamelModel):
    id: str
    user_id: str
    title: str
    message: str
    is_read: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[UserSummary] = None


class NotificationPage(CamelModel):
    count: int
    rows: List[NotificationResponse]


class NotificationListResponse(CamelModel):
    status: str = "success"
    notifications: NotificationPage


class NotificationCreateResponse(CamelModel):
    message: str
    notification: NotificationResponse


class TestNotificationResponse(CamelModel):
    message: str
    result: Dict[str, Any]
