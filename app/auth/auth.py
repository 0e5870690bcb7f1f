from typing import Dict, Optional, Set
from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from app.schemas.schemas import UserRole, Permission
from app.schemas.user import User as UserSchema
from app.data.user_manager import UserManager
from app.database import get_db
import os
import logging
from app.config.loader import load_config

# Set up a dedicated logger for authentication events
logger = logging.getLogger("auth_module")
logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())


# --- Configuration ---
def generate_dev_key() -> str:
    """Generate a secure default key for development environments ONLY."""
    import secrets

    key = secrets.token_urlsafe(48)
    logger.warning(
        "\n"
        + "*" * 80
        + "\n"
        + "DEVELOPMENT MODE: Using generated secret key.\n"
        + "This is NOT secure for production use!\n"
        + "Set COUNCIL_JWT_SECRET_KEY in your environment variables for production.\n"
        + "*" * 80
    )
    return key


def validate_secret_key(key: str) -> bool:
    """Validate that a JWT secret key meets minimum security requirements."""
    if not key:
        return False
    if len(key) < 32:
        logger.error("JWT secret key must be at least 32 characters long for security.")
        return False
    return True


def _is_production_mode() -> bool:
    env = os.getenv("COUNCIL_ENV", "development").strip().lower()
    return env in {"production", "prod"}


def _get_access_token_expire_minutes(default: int = 30) -> int:
    """
    Source the access token expiration time from config.yaml, falling back to
    environment variable COUNCIL_ACCESS_TOKEN_EXPIRE_MINUTES, then a hard default.
    """

    def _coerce_positive_int(value, fallback=None):
        try:
            minutes = int(value)
            return minutes if minutes > 0 else fallback
        except Exception:  # noqa: BLE001
            return fallback

    config = load_config()
    auth_section = config.get("auth") or {}
    config_value = _coerce_positive_int(
        auth_section.get("access_token_expire_minutes"), None
    )
    if config_value:
        logger.info(
            "Token expiration loaded from config.yaml: %s minutes", config_value
        )
        return config_value

    env_value = _coerce_positive_int(
        os.getenv("COUNCIL_ACCESS_TOKEN_EXPIRE_MINUTES"), None
    )
    if env_value:
        logger.info("Token expiration loaded from environment: %s minutes", env_value)
        return env_value

    logger.info("Token expiration using default: %s minutes", default)
    return default


SECRET_KEY = os.getenv("COUNCIL_JWT_SECRET_KEY")
ALGORITHM = "HS256"
JWT_ISSUER = os.getenv("COUNCIL_JWT_ISSUER", "council-portal")
ACCESS_TOKEN_EXPIRE_MINUTES = _get_access_token_expire_minutes()

if not SECRET_KEY:
    if _is_production_mode():
        raise RuntimeError(
            "Missing COUNCIL_JWT_SECRET_KEY while COUNCIL_ENV is set to production. "
            + "Configure a strong static secret before startup."
        )
    SECRET_KEY = generate_dev_key()
elif not validate_secret_key(SECRET_KEY):
    raise RuntimeError(
        "Invalid JWT secret key configuration. "
        + "The key must be at least 32 characters long. "
        + "Update COUNCIL_JWT_SECRET_KEY in your environment variables."
    )
else:
    logger.info("JWT secret key validated and loaded from environment.")

if ACCESS_TOKEN_EXPIRE_MINUTES > 60:
    logger.warning(
        f"Long token expiration time configured: {ACCESS_TOKEN_EXPIRE_MINUTES} minutes. "
        + "Consider reducing this value for better security."
    )

# --- Token Utilities ---


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a new JWT access token.
    The 'sub' (subject) of the token is the user's login.
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": now, "iss": JWT_ISSUER})

    try:
        encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
        logger.info(f"Successfully created access token for subject: {data.get('sub')}")
        return encoded_jwt
    except Exception as e:
        logger.error(
            f"Error creating access token for subject {data.get('sub')}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create access token due to an internal error.",
        )


async def get_token_from_request(request: Request) -> Optional[str]:
    """
    Extracts the JWT from the 'access_token' HTTPOnly cookie, falling back to
    an ``Authorization: Bearer`` header for API clients.
    """
    token_with_prefix = request.cookies.get("access_token")
    if not token_with_prefix:
        token_with_prefix = request.headers.get("Authorization")
    if not token_with_prefix:
        logger.debug("No access token found in cookie or Authorization header.")
        return None

    if token_with_prefix.startswith("Bearer "):
        return token_with_prefix.split(" ", 1)[1]
    return token_with_prefix


# --- User Retrieval Dependencies ---


async def get_current_user(
    token: Optional[str] = Depends(get_token_from_request),
) -> str:
    """
    FastAPI dependency returning the login (token subject) of the caller.
    Raises HTTPException if the token is missing or invalid.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials. Invalid or expired token.",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        logger.warning("Authentication required: No token found.")
        raise credentials_exception

    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            issuer=JWT_ISSUER,
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"JWTError during token decoding: {str(e)}")
        raise credentials_exception

    login: Optional[str] = payload.get("sub")
    if login is None:
        logger.error("Token decoding error: 'sub' claim (login) missing in token payload.")
        raise credentials_exception

    logger.debug(f"Token successfully decoded. User identified by login: {login}")
    return login


async def get_current_active_user(
    request: Request,
    current_user_login: str = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserSchema:
    """
    FastAPI dependency to get the full, active user from the database
    based on the login from a validated token. Returns a detached Pydantic
    model so downstream logic can safely access attributes after the DB
    session closes.
    """
    cached_user = getattr(request.state, "user", None)
    if cached_user and getattr(cached_user, "login", None) == current_user_login:
        logger.debug("get_current_active_user: Returning cached user from request state.")
        return cached_user

    user_crud = UserManager()
    user_crud.set_db(db)
    user = user_crud.get_user_by_login(current_user_login)

    if not user:
        logger.error(
            f"get_current_active_user: User with login '{current_user_login}' not found in DB, though token was valid."
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User associated with token not found.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        logger.warning(f"get_current_active_user: Inactive user '{current_user_login}'.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated.",
        )

    safe_user = UserSchema.model_validate(user)
    request.state.user = safe_user
    logger.debug(
        f"get_current_active_user: Successfully retrieved active user: {safe_user.login}"
    )
    return safe_user


# --- Role and Permission Dependencies ---


async def get_user_role(
    current_user: UserSchema = Depends(get_current_active_user),
) -> UserRole:
    """
    FastAPI dependency that gets the role of the current active user.
    """
    if not current_user or not current_user.role:
        safe_id = getattr(current_user, "user_id", None) if current_user else None
        logger.error(
            "get_user_role: Could not determine role for user ID %s.",
            safe_id or "Unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User role could not be determined.",
        )
    # Controllers hold every permission whatever their council role.
    if current_user.is_privileged:
        return UserRole.CONTROLLER
    return UserRole(current_user.role)


# Council roles:
# - Every member can view meetings.
# - Office bearers (president, secretary) plan meetings and publish minutes.
# - The secretary also records minutes and archives.
# - Controllers can do everything, including deletion.
MEMBER_PERMISSIONS: Set[Permission] = {Permission.VIEW_MEETING, Permission.VIEW_MEMBERS}
PRESIDENT_PERMISSIONS: Set[Permission] = MEMBER_PERMISSIONS | {
    Permission.CREATE_MEETING,
    Permission.UPDATE_MEETING,
    Permission.PUBLISH_MINUTES,
}
SECRETARY_PERMISSIONS: Set[Permission] = PRESIDENT_PERMISSIONS | {
    Permission.RECORD_MINUTES,
    Permission.ARCHIVE_MEETING,
}
CONTROLLER_PERMISSIONS: Set[Permission] = set(Permission)

ROLE_PERMISSIONS: Dict[UserRole, Set[Permission]] = {
    UserRole.CONTROLLER: CONTROLLER_PERMISSIONS,
    UserRole.PRESIDENT: PRESIDENT_PERMISSIONS,
    UserRole.SECRETARY: SECRETARY_PERMISSIONS,
    UserRole.VICE_PRESIDENT: MEMBER_PERMISSIONS,
    UserRole.TREASURER: MEMBER_PERMISSIONS,
    UserRole.PRO: MEMBER_PERMISSIONS,
    UserRole.COORDINATOR: MEMBER_PERMISSIONS,
    UserRole.MEMBER: MEMBER_PERMISSIONS,
}


def has_permission(user_role: UserRole, required_permission: Permission) -> bool:
    """Checks if a user role has a specific permission."""
    has_perm = required_permission in ROLE_PERMISSIONS.get(user_role, set())
    logger.debug(
        f"Permission check: Role '{user_role.value}' requires '{required_permission.value}'. Has permission: {has_perm}."
    )
    return has_perm


def check_permission(required_permission: Permission):
    """
    FastAPI dependency factory to check if the current user has a required permission.
    """

    async def _check_permission_dependency(
        user_role: UserRole = Depends(get_user_role),
    ):
        if not has_permission(user_role, required_permission):
            logger.warning(
                f"Access denied: Role '{user_role.value}' lacks required permission '{required_permission.value}'."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You do not have permission to '{required_permission.value}'. Your role '{user_role.value}' is insufficient.",
            )
        return True

    return _check_permission_dependency


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
    "JWT_ISSUER",
]
