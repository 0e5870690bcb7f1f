from .schemas import LoginResponse, Permission, UserRole
from .user import User, UserCreate

__all__ = [
    "User",
    "UserCreate",
    "LoginResponse",
    "UserRole",
    "Permission",
]
