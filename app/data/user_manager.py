import logging
from sqlalchemy.orm import Session
from fastapi import Depends
from ..database import get_db
from sqlalchemy import func
from typing import Iterable, List, Optional
import uuid

from ..models.user import User, UserRole
from ..utils.security import verify_password
from ..utils.identifiers import generate_user_id

logger = logging.getLogger("auth_module")


class UserManager:
    """Manages council member accounts using SQLAlchemy."""

    def __init__(self):
        self.db = None

    def set_db(self, db: Session):
        """Set the database session."""
        self.db = db

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user data by email (case-insensitive)."""
        req_id = uuid.uuid4()
        logger.debug(f"[{req_id}] Attempting to get user with email: {email}")
        if not email:
            logger.warning(f"[{req_id}] No email provided.")
            return None
        clean_email = email.strip().lower()
        user = self.db.query(User).filter(func.lower(User.email) == clean_email).first()
        if not user:
            logger.debug(f"[{req_id}] User not found with email: {email}")
        return user

    def get_user_by_login(self, login: str) -> Optional[User]:
        """Get user data by login/username (case-insensitive)."""
        req_id = uuid.uuid4()
        logger.debug(f"[{req_id}] Attempting to get user with login: {login}")
        if not login:
            logger.warning(f"[{req_id}] No login provided.")
            return None
        clean_login = login.strip().lower()
        user = self.db.query(User).filter(func.lower(User.login) == clean_login).first()
        if not user:
            logger.debug(f"[{req_id}] User not found with login: {login}")
        return user

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user data by primary key user_id."""
        return self.db.query(User).filter(User.user_id == user_id).first()

    def get_users_by_ids(self, user_ids: Iterable[str]) -> List[User]:
        ids = {user_id for user_id in user_ids if user_id}
        if not ids:
            return []
        return self.db.query(User).filter(User.user_id.in_(ids)).all()

    def verify_user_credentials(self, identifier: str, password: str) -> Optional[User]:
        """
        Verify user credentials using login or email (case-insensitive).
        Returns the User object if credentials are valid, otherwise None.
        """
        req_id = uuid.uuid4()
        if not identifier or not password:
            logger.warning(f"[{req_id}] Identifier or password not provided.")
            return None

        clean_identifier = identifier.strip()
        user = self.get_user_by_login(clean_identifier)
        if not user:
            user = self.get_user_by_email(clean_identifier)

        if user and user.is_active and verify_password(password, user.hashed_password):
            return user

        logger.warning(f"[{req_id}] Failed login attempt for identifier: {identifier}")
        return None

    def user_exists(self, email: str) -> bool:
        """Check if a user exists by email (case-insensitive)."""
        if not email:
            return False
        return self.get_user_by_email(email) is not None

    def login_exists(self, login: str) -> bool:
        """Check if a user exists by login (case-insensitive)."""
        return self.get_user_by_login(login) is not None

    def add_user(
        self,
        first_name: str,
        last_name: str,
        email: Optional[str],
        hashed_password: str,
        role: str = UserRole.MEMBER.value,
        login: Optional[str] = None,
        is_controller: bool = False,
        department: Optional[str] = None,
        position: Optional[str] = None,
        email_notifications: bool = True,
    ) -> User:
        """Add a new user to the database. Returns the created User model. Raises ValueError if user exists."""
        req_id = uuid.uuid4()
        logger.debug(f"[{req_id}] Adding user with email: {email}")
        raw_email = email.strip() if email else None
        clean_email = raw_email.lower() if raw_email else None
        proposed_login = (
            login or (clean_email.split("@")[0] if clean_email else "")
        ).strip()

        if not proposed_login:
            raise ValueError("A login/username is required to create a user.")

        clean_login = proposed_login.lower()
        if clean_email and self.user_exists(clean_email):
            logger.warning(
                f"[{req_id}] Attempt to add existing user with email: {clean_email}"
            )
            raise ValueError(f"User with email {clean_email} already exists.")
        if self.login_exists(clean_login):
            logger.warning(
                f"[{req_id}] Attempt to add existing user with login: {clean_login}"
            )
            raise ValueError(f"User with login {clean_login} already exists.")

        db_user = User(
            user_id=generate_user_id(self.db, first_name, last_name),
            email=clean_email,
            first_name=first_name,
            last_name=last_name,
            login=clean_login,
            hashed_password=hashed_password,
            role=role,
            is_controller=is_controller or role == UserRole.CONTROLLER.value,
            department=department,
            position=position,
            email_notifications=email_notifications,
        )

        try:
            self.db.add(db_user)
            self.db.commit()
            self.db.refresh(db_user)
            logger.info(
                f"[{req_id}] Successfully added user {db_user.login} with user_id {db_user.user_id}"
            )
            return db_user
        except Exception as e:
            self.db.rollback()
            logger.error(f"[{req_id}] Error adding user {clean_login}: {str(e)}")
            raise

    def get_user_count(self) -> int:
        return self.db.query(func.count(User.user_id)).scalar() or 0

    def has_controller_user(self) -> bool:
        """Check if any privileged account exists."""
        return (
            self.db.query(User)
            .filter(
                (User.is_controller.is_(True))
                | (User.role == UserRole.CONTROLLER.value)
            )
            .first()
            is not None
        )


def get_user_manager(db: Session = Depends(get_db)) -> UserManager:
    """Dependency provider for UserManager."""
    manager = UserManager()
    manager.set_db(db)
    return manager
