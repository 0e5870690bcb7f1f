from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from app.database import Base
from enum import Enum


class UserRole(str, Enum):
    PRESIDENT = "president"
    VICE_PRESIDENT = "vice_president"
    SECRETARY = "secretary"
    TREASURER = "treasurer"
    PRO = "pro"
    COORDINATOR = "coordinator"
    MEMBER = "member"
    CONTROLLER = "controller"


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(20), primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    login = Column(
        String, unique=True, index=True, nullable=False
    )  # Login is required and unique
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    role = Column(String, default=UserRole.MEMBER.value, nullable=False)
    # Controllers may exist outside the controller role (e.g. a president with oversight duties).
    is_controller = Column(Boolean, default=False, nullable=False)
    department = Column(String, nullable=True)
    position = Column(String, nullable=True)
    email_notifications = Column(Boolean, default=True, nullable=False)

    # Performance counters, maintained by the performance tracker.
    meetings_attended = Column(Integer, default=0, nullable=False)
    tasks_completed = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_privileged(self) -> bool:
        return bool(self.is_controller) or self.role == UserRole.CONTROLLER.value

    @property
    def display_name(self) -> str:
        full_name = " ".join(
            part for part in (self.first_name, self.last_name) if part
        ).strip()
        return full_name or self.login
