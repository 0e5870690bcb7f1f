from fastapi import APIRouter, Depends, HTTPException, status, Response
from datetime import timedelta
import logging
from pydantic import BaseModel

from app.auth.auth import (
    create_access_token,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    get_current_active_user,
)
from app.utils.security import get_password_hash
from app.data.user_manager import UserManager, get_user_manager
from app.models.user import UserRole
from app.schemas.schemas import LoginResponse
from app.schemas.user import User as UserSchema, UserCreate
from app.config.loader import get_secure_cookies_enabled

logger = logging.getLogger("auth_module")

router = APIRouter(prefix="/api/auth", tags=["authentication"])


class TokenRequest(BaseModel):
    username: str
    password: str


@router.post("/token", response_model=LoginResponse)
async def login_for_access_token(
    response: Response,
    token_request: TokenRequest,
    user_manager: UserManager = Depends(get_user_manager),
) -> LoginResponse:
    """
    Token login using JSON body for credentials.
    Sets an HTTPOnly cookie with the access token and returns it for API clients.
    """
    user = user_manager.verify_user_credentials(
        token_request.username, token_request.password
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(
        data={"sub": user.login, "role": user.role},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        secure=get_secure_cookies_enabled(),
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        expires=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax",
        path="/",
    )

    return LoginResponse(
        login_successful=True,
        access_token=access_token,
        role=user.role,
        is_controller=bool(user.is_controller),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_user(
    user: UserCreate,
    user_manager: UserManager = Depends(get_user_manager),
):
    # The first account bootstraps the portal as its controller.
    is_initial_setup = not user_manager.has_controller_user()
    if is_initial_setup:
        role = UserRole.CONTROLLER.value
    else:
        role = UserRole.MEMBER.value

    try:
        created = user_manager.add_user(
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            hashed_password=get_password_hash(user.password),
            role=role,
            login=user.login,
            is_controller=is_initial_setup,
            department=user.department,
            position=user.position,
            email_notifications=user.email_notifications,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info("Registered user %s with role %s", created.login, role)
    return {
        "message": "User registered successfully. Please log in.",
        "user_id": created.user_id,
    }


@router.get("/me", response_model=UserSchema)
async def read_current_user(
    current_user: UserSchema = Depends(get_current_active_user),
) -> UserSchema:
    return current_user


@router.post("/logout")
async def logout(response: Response):
    """Logs the user out by clearing the access token cookie."""
    response.delete_cookie(
        key="access_token",
        path="/",
        httponly=True,
        secure=get_secure_cookies_enabled(),
        samesite="lax",
    )
    return {"message": "Logout successful"}
