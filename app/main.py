from contextlib import asynccontextmanager
from typing import Optional
import logging
import traceback
import json

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from sqlalchemy import text

from app.database import engine, Base, SessionLocal
import app.models  # noqa: F401  # Ensure all SQLAlchemy models are registered
from app.exceptions import PortalError
from app.routers import archives as archives_router
from app.routers import auth as auth_router
from app.routers import meetings as meetings_router
from app.routers import members as members_router
from app.utils.logging_config import setup_logging

AUDITED_ROLES = {"controller", "president", "secretary"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logging.getLogger("app").info(
        "Database initialized. First user to register will become the controller."
    )
    yield
    logging.getLogger("app").info("Application shutdown.")


app = FastAPI(
    title="Student Council Portal",
    description="Meeting records for the student council",
    lifespan=lifespan,
)


def _summarize_payload(body: bytes) -> Optional[str]:
    if not body:
        return None
    parsed = json.loads(body.decode("utf-8"))
    if not isinstance(parsed, dict):
        return type(parsed).__name__
    redacted = {}
    for key, value in parsed.items():
        lower_key = str(key).lower()
        if "password" in lower_key or "token" in lower_key:
            redacted[key] = "***"
        elif isinstance(value, (str, int, float, bool, type(None))):
            redacted[key] = value
        else:
            redacted[key] = type(value).__name__
    return json.dumps(redacted, ensure_ascii=True)


async def audit_action_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    method = request.method.upper()
    path = request.url.path
    if method not in {"POST", "PUT", "PATCH", "DELETE"} or not path.startswith("/api/"):
        return await call_next(request)

    payload_summary: Optional[str] = None
    if request.headers.get("content-type", "").lower().startswith("application/json"):
        try:
            body = await request.body()
            request._body = body  # Preserve for downstream access
            payload_summary = _summarize_payload(body)
        except (ValueError, UnicodeDecodeError):
            payload_summary = "unavailable"

    response = await call_next(request)

    # The user is resolved by the route dependencies during call_next.
    user = getattr(request.state, "user", None)
    if user is None:
        return response
    role = getattr(user, "role", None)
    role_value = getattr(role, "value", role)
    if not getattr(user, "is_privileged", False) and role_value not in AUDITED_ROLES:
        return response

    details = {
        "method": method,
        "path": path,
        "status": response.status_code,
        "user": getattr(user, "login", None) or "unknown",
        "role": str(role_value),
    }
    if payload_summary:
        details["payload"] = payload_summary
    logging.getLogger("audit").info("Audit action: %s", details)
    return response


app.add_middleware(BaseHTTPMiddleware, dispatch=audit_action_middleware)

app.include_router(auth_router.router)
app.include_router(meetings_router.router)
app.include_router(members_router.router)
app.include_router(archives_router.router)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    logger = logging.getLogger("app")
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger = logging.getLogger("app")
    logger.error(f"Global exception: {str(exc)}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error. Please check logs."},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger = logging.getLogger("app")
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code} error: {exc.detail}\n{traceback.format_exc()}"
        )
    else:
        logger.info(f"HTTP {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger = logging.getLogger("app")
    # Messages only, so the response is always serializable.
    error_messages = [err["msg"] for err in exc.errors()]
    logger.warning(f"Validation error: {error_messages}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": error_messages},
    )


@app.get("/health", tags=["healthcheck"])
async def health_check():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logging.getLogger("app").error(f"Health check database connection error: {e}")
        raise HTTPException(
            status_code=503, detail=f"Database connection failed: {str(e)}"
        )
    finally:
        db.close()
    return {"status": "healthy", "database": "connected"}
