from enum import Enum
from pydantic import BaseModel
from app.models.user import UserRole  # Import UserRole from the model definition


class Permission(str, Enum):
    VIEW_MEETING = "view_meeting"
    CREATE_MEETING = "create_meeting"
    UPDATE_MEETING = "update_meeting"
    RECORD_MINUTES = "record_minutes"
    PUBLISH_MINUTES = "publish_minutes"
    ARCHIVE_MEETING = "archive_meeting"
    DELETE_MEETING = "delete_meeting"
    VIEW_MEMBERS = "view_members"
    MANAGE_ARCHIVES = "manage_archives"


class LoginResponse(BaseModel):
    login_successful: bool
    access_token: str
    token_type: str = "bearer"
    role: UserRole
    is_controller: bool = False
