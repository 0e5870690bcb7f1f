from .auth import (
    create_access_token,
    get_token_from_request,
    get_current_user,
    get_current_active_user,
    get_user_role,
    has_permission,
    check_permission,
    ROLE_PERMISSIONS,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    SECRET_KEY,
    ALGORITHM,
)

__all__ = [
    "create_access_token",
    "get_token_from_request",
    "get_current_user",
    "get_current_active_user",
    "get_user_role",
    "has_permission",
    "check_permission",
    "ROLE_PERMISSIONS",
    "ACCESS_TOKEN_EXPIRE_MINUTES",
    "SECRET_KEY",
    "ALGORITHM",
]
