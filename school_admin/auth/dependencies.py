import logging
from collections.abc import Callable

import jwt
from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from school_admin.auth import jwt_handler
from school_admin.auth.permissions import can
from school_admin.core.exceptions import AuthenticationError, AuthorizationError
from school_admin.database import ConnectionManager
from school_admin.store.record_store import RecordStore
from school_admin.store.user_store import UserStore

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Identity attached to an authenticated request. Never carries the password hash."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    email: str
    full_name: str | None = Field(default=None, alias="fullName")
    role: str


def get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.db


def get_user_store(db: ConnectionManager = Depends(get_connection_manager)) -> UserStore:
    return UserStore(db)


def get_record_store(db: ConnectionManager = Depends(get_connection_manager)) -> RecordStore:
    return RecordStore(db)


def resolve_identity(token: str, users: UserStore) -> CurrentUser:
    """Turn a bearer token into an active identity or raise ``AuthenticationError``."""
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError(
            "Your session has expired. Please login again",
            error="Token expired",
            reason="expired",
        ) from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(
            "The provided token is invalid",
            error="Invalid token",
            reason="invalid",
        ) from exc

    user = users.find_by_id(payload["sub"])
    if user is None:
        raise AuthenticationError("User not found", error="Invalid token", reason="invalid")
    if not user["is_active"]:
        raise AuthenticationError(
            "Your account has been disabled",
            error="Account disabled",
            reason="disabled",
        )

    return CurrentUser(
        id=user["id"],
        username=user["username"],
        email=user["email"],
        full_name=user.get("full_name"),
        role=user["role"],
    )


def get_current_user(
    background_tasks: BackgroundTasks,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    users: UserStore = Depends(get_user_store),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(
            "No authentication token provided",
            error="Access denied",
            reason="missing",
        )

    current_user = resolve_identity(credentials.credentials, users)
    background_tasks.add_task(users.touch_last_login, current_user.id)
    return current_user


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    users: UserStore = Depends(get_user_store),
) -> CurrentUser | None:
    """Like ``get_current_user`` but yields ``None`` instead of rejecting.

    Only authentication failures are absorbed; a database outage still
    propagates so it is reported instead of silently serving anonymous output.
    """
    if credentials is None or not credentials.credentials:
        return None
    try:
        return resolve_identity(credentials.credentials, users)
    except AuthenticationError as exc:
        logger.debug("Continuing without user context: %s", exc.reason)
        return None


def require_permission(resource: str, action: str) -> Callable[..., CurrentUser]:
    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not can(current_user.role, resource, action):
            logger.info("Denied %s %s to user %s", action, resource, current_user.id)
            raise AuthorizationError("You do not have permission to perform this action")
        return current_user

    return dependency


def require_roles(*allowed_roles: str) -> Callable[..., CurrentUser]:
    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise AuthorizationError("You do not have permission to perform this action")
        return current_user

    return dependency
