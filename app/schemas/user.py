from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional
from app.models.user import UserRole  # Import UserRole for type hinting

LOGIN_PATTERN = r"^[A-Za-z0-9._@+-]+$"


class UserBase(BaseModel):
    login: Optional[str] = Field(
        None,
        min_length=3,
        max_length=50,
        pattern=LOGIN_PATTERN,
        json_schema_extra={"example": "secretary"},
    )
    email: Optional[str] = Field(
        None, json_schema_extra={"example": "secretary@council.example.edu"}
    )
    first_name: Optional[str] = Field(None, json_schema_extra={"example": "Asha"})
    last_name: Optional[str] = Field(None, json_schema_extra={"example": "Patil"})
    department: Optional[str] = Field(
        None, json_schema_extra={"example": "Computer Engineering"}
    )
    position: Optional[str] = Field(
        None, json_schema_extra={"example": "General Secretary"}
    )

    model_config = ConfigDict(from_attributes=True)

    @field_validator("email", mode="before")
    @classmethod
    def empty_email_to_none(cls, value: Optional[str]):
        if value is None:
            return value
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("login", mode="before")
    @classmethod
    def normalize_login(cls, value: Optional[str]):
        if value is None:
            return value
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class UserCreate(UserBase):
    login: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=LOGIN_PATTERN,
        json_schema_extra={"example": "secretary"},
    )
    password: str = Field(
        ..., min_length=8, json_schema_extra={"example": "SecurePassword123!"}
    )
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    # Honoured only when a controller registers someone; self-registration is MEMBER.
    role: Optional[UserRole] = None
    email_notifications: bool = True


class User(UserBase):
    """Detached view of a user, safe to use after the DB session closes."""

    user_id: str = Field(..., json_schema_extra={"example": "USR-PATILXA-001"})
    login: str
    role: UserRole = UserRole.MEMBER
    is_controller: bool = False
    is_active: bool = True
    email_notifications: bool = True
    meetings_attended: int = 0
    tasks_completed: int = 0

    @property
    def is_privileged(self) -> bool:
        return self.is_controller or self.role == UserRole.CONTROLLER
