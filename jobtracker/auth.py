from __future__ import annotations

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection

from . import crud, models, security
from .database import get_db
from .errors import Forbidden
from .models import UserRole
from .token import decode_access_token

# Only used for the OpenAPI "Authorize" button; tokens are read by get_token_from_connection
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/login", auto_error=False)


def authenticate_user(db: Session, email: str, password: str) -> models.User | None:
    """
    Authenticates a user by email and password.

    In FastAPI, the `OAuth2PasswordRequestForm` uses the field name `username`,
    but we are using it to hold the user's email address.

    Returns the user object if authentication is successful, otherwise None.
    Deactivated accounts never authenticate.
    """
    user = crud.get_user_by_email(db, email)
    if not user or not security.verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


def get_token_from_connection(conn: HTTPConnection) -> str | None:
    """Extract token from the Authorization header, access_token cookie or ?token= query param"""
    # First try authorization header
    authorization = conn.headers.get("Authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]  # Remove "Bearer " prefix

    # Then try cookie
    cookie_token = conn.cookies.get("access_token")
    if cookie_token and cookie_token.startswith("Bearer "):
        return cookie_token[7:]

    # Browsers cannot set headers on websocket handshakes
    return conn.query_params.get("token") or None


def resolve_user(db: Session, token: str) -> models.User | None:
    email = decode_access_token(token)
    if email is None:
        return None
    user = crud.get_user_by_email(db, email=email)
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    _: str | None = Depends(oauth2_scheme),
) -> models.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = get_token_from_connection(request)
    if not token:
        raise credentials_exception
    user = resolve_user(db, token)
    if user is None:
        raise credentials_exception
    return user


def require_roles(*roles: UserRole):
    """Dependency factory: the current user must hold one of ``roles``."""

    def dependency(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in roles:
            raise Forbidden("You don't have permission to perform this action.")
        return current_user

    return dependency


require_reviewer = require_roles(UserRole.RECRUITER, UserRole.ADMIN)
require_admin = require_roles(UserRole.ADMIN)
