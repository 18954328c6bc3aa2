"""
RBAC dependencies for FastAPI routes
Role-based access control implemented as dependencies that run after authentication
"""
from fastapi import Request, status
from utils.errors import AppError
import logging

logger = logging.getLogger(__name__)

RESOURCES_FOR_ROLES = {
    'farmer': {
        'users': ['read', 'write', 'delete'],
        'products': ['read', 'write', 'delete'],
        'orders': ['read', 'write'],
        'orders/dispatch': ['write'],
        'reviews': ['read'],
        'transactions': ['read'],
        'notifications': ['read', 'write'],
    },
    'buyer': {
        'users': ['read', 'write', 'delete'],
        'products': ['read'],
        'orders': ['read', 'write'],
        'orders/dispatch': [],
        'reviews': ['read', 'write', 'delete'],
        'transactions': ['read', 'write', 'delete'],
        'notifications': ['read', 'write'],
    },
}

NOT_OWNER_MESSAGE = "You are not authorized for this, please log in using your account"


def has_permission(user_role: str, resource_name: str, required_permission: str) -> bool:
    """Check if user role has permission for the resource and action"""
    if user_role not in RESOURCES_FOR_ROLES:
        return False
    return required_permission in RESOURCES_FOR_ROLES[user_role].get(resource_name, [])


def _current_user(request: Request) -> dict:
    current_user = getattr(request.state, 'current_user', None)
    if not current_user:
        raise AppError("Authentication required", status.HTTP_401_UNAUTHORIZED)
    return current_user


def require_permission(resource: str, permission: str):
    """
    Create an RBAC dependency that checks permissions

    Args:
        resource: Resource name, a key of RESOURCES_FOR_ROLES
        permission: Action on it: read, write or delete
    """
    def check_rbac(request: Request):
        current_user = _current_user(request)
        user_role = current_user.get('role') or 'buyer'

        logger.debug(f"RBAC Check - User: {user_role}, Resource: {resource}, Permission: {permission}")

        if not has_permission(user_role, resource, permission):
            logger.warning(f"Access denied - User: {user_role}, Resource: {resource}, Permission: {permission}")
            raise AppError(
                f"Access denied. {user_role.title()} role does not have {permission} permission for {resource}",
                status.HTTP_403_FORBIDDEN
            )
        return True

    return check_rbac


def require_self(request: Request):
    """Only the owner may act on /{user_id} scoped routes"""
    current_user = _current_user(request)
    path_user_id = request.path_params.get('user_id')
    if path_user_id and str(path_user_id) != str(current_user['user_id']):
        logger.warning(f"User {current_user['user_id']} tried to act on {path_user_id}")
        raise AppError(NOT_OWNER_MESSAGE, status.HTTP_403_FORBIDDEN)
    return True


# Product permissions
require_product_write = require_permission("products", "write")  # Farmers only
require_product_delete = require_permission("products", "delete")  # Farmers only

# Order permissions
require_order_read = require_permission("orders", "read")
require_order_write = require_permission("orders", "write")
require_dispatch = require_permission("orders/dispatch", "write")  # Farmers only

# Review permissions
require_review_read = require_permission("reviews", "read")
require_review_write = require_permission("reviews", "write")  # Buyers only
require_review_delete = require_permission("reviews", "delete")

# Payment permissions
require_payment_write = require_permission("transactions", "write")  # Buyers only
require_payment_read = require_permission("transactions", "read")
require_payment_delete = require_permission("transactions", "delete")  # Buyers only

# Notification permissions
require_notification_read = require_permission("notifications", "read")
require_notification_write = require_permission("notifications", "write")
