"""HTTP API and static frontend for the user directory."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, load_settings
from .database import Database, EmailAlreadyExistsError, UserStoreError
from .models import User

logger = logging.getLogger("userdirectory.service")

STATIC_DIR = Path(__file__).resolve().parent / "static"

API_ENDPOINTS: Tuple[Tuple[str, str, str], ...] = (
    ("GET", "/users", "Get all users"),
    ("GET", "/users/:id", "Get user by ID"),
    ("POST", "/users", "Create new user (body: {name, email})"),
    ("PUT", "/users/:id", "Update user (body: {name, email})"),
    ("DELETE", "/users/:id", "Delete user"),
)

_USER_ID_PATTERN = re.compile(r"[0-9]+")
_MAX_ROW_ID = 2**63 - 1


class UserPayload(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime


class MessageResponse(BaseModel):
    message: str


class ConfigResponse(BaseModel):
    apiUrl: str


class APIError(Exception):
    """An error that maps directly onto a JSON error response."""

    def __init__(self, status_code: int, error: str, message: Optional[str] = None) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.message = message

    def to_payload(self) -> Dict[str, str]:
        payload = {"error": self.error}
        if self.message is not None:
            payload["message"] = self.message
        return payload


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        created_at=user.created_at,
    )


def parse_user_id(raw: str) -> Optional[int]:
    """Return the numeric id in ``raw`` or ``None`` when it cannot name a row."""

    if not _USER_ID_PATTERN.fullmatch(raw):
        return None
    value = int(raw)
    if value > _MAX_ROW_ID:
        return None
    return value


def _user_not_found() -> APIError:
    return APIError(status.HTTP_404_NOT_FOUND, "User not found")


def _email_conflict() -> APIError:
    return APIError(status.HTTP_409_CONFLICT, "Email already exists")


def register_user_routes(app: FastAPI, database: Database) -> None:
    """Expose the ``/users`` JSON endpoints on the provided FastAPI application."""

    def get_db() -> Database:
        return database

    @app.get("/users", response_model=List[UserResponse])
    async def list_users(db: Database = Depends(get_db)) -> List[UserResponse]:
        return [user_to_response(user) for user in db.list_users()]

    @app.post(
        "/users",
        status_code=status.HTTP_201_CREATED,
        response_model=UserResponse,
    )
    async def create_user(payload: UserPayload, db: Database = Depends(get_db)) -> UserResponse:
        try:
            user = db.create_user(payload.name, payload.email)
        except EmailAlreadyExistsError as exc:
            logger.warning("Rejected new user: %s", exc)
            raise _email_conflict() from exc
        except UserStoreError as exc:
            logger.exception("Failed to create user")
            raise APIError(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to create user",
                message=str(exc),
            ) from exc

        logger.info("Created user %s <%s>", user.id, user.email)
        return user_to_response(user)

    @app.get("/users/{user_id}", response_model=UserResponse)
    async def get_user(user_id: str, db: Database = Depends(get_db)) -> UserResponse:
        parsed = parse_user_id(user_id)
        user = db.get_user(parsed) if parsed is not None else None
        if user is None:
            raise _user_not_found()
        return user_to_response(user)

    @app.put("/users/{user_id}", response_model=UserResponse)
    async def update_user(
        user_id: str,
        payload: UserPayload,
        db: Database = Depends(get_db),
    ) -> UserResponse:
        parsed = parse_user_id(user_id)
        if parsed is None:
            raise _user_not_found()

        try:
            user = db.update_user(parsed, payload.name, payload.email)
        except EmailAlreadyExistsError as exc:
            logger.warning("Rejected update for user %s: %s", parsed, exc)
            raise _email_conflict() from exc
        except UserStoreError as exc:
            logger.exception("Failed to update user %s", parsed)
            raise APIError(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to update user",
                message=str(exc),
            ) from exc

        if user is None:
            raise _user_not_found()

        logger.info("Updated user %s <%s>", user.id, user.email)
        return user_to_response(user)

    @app.delete("/users/{user_id}", response_model=MessageResponse)
    async def delete_user(user_id: str, db: Database = Depends(get_db)) -> MessageResponse:
        parsed = parse_user_id(user_id)
        if parsed is not None:
            db.delete_user(parsed)
            logger.info("Deleted user %s", parsed)
        return MessageResponse(message="User deleted successfully")


def register_frontend_routes(app: FastAPI, settings: Settings) -> None:
    """Serve the single-page frontend and the configuration it bootstraps from."""

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(STATIC_DIR / "index.html", media_type="text/html")

    @app.get("/app.js", include_in_schema=False)
    async def client_script() -> FileResponse:
        return FileResponse(STATIC_DIR / "app.js", media_type="application/javascript")

    @app.get("/config", response_model=ConfigResponse)
    async def frontend_config() -> ConfigResponse:
        return ConfigResponse(apiUrl=settings.api_url)


def register_error_handlers(app: FastAPI) -> None:
    """Render every failure as a JSON ``{"error": ...}`` body."""

    @app.exception_handler(APIError)
    async def handle_api_error(_: Request, exc: APIError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        logger.debug("Rejected request body: %s", exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Name and email are required"},
        )

    @app.exception_handler(UserStoreError)
    async def handle_store_error(_: Request, exc: UserStoreError) -> JSONResponse:
        logger.exception("Database operation failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Database error", "message": str(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "Route not found"},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while processing request")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "message": str(exc)},
        )


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the user directory."""

    app_settings = settings or load_settings()
    db = database or Database(app_settings.database_path)
    db.initialize()

    app = FastAPI(
        title="User Directory API",
        version="0.1.0",
        description="CRUD service for directory users with a static web frontend.",
        redirect_slashes=False,
    )
    app.state.database = db
    app.state.settings = app_settings

    register_error_handlers(app)
    register_frontend_routes(app, app_settings)
    register_user_routes(app, db)

    return app


__all__ = [
    "API_ENDPOINTS",
    "APIError",
    "UserPayload",
    "UserResponse",
    "create_app",
    "parse_user_id",
    "user_to_response",
]
