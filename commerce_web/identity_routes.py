"""
Identity (user-management) service routes.

Prefixes: /api/auth and /api/users

This service issues the tokens, so it verifies them locally and never calls
out to another identity service.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field

from commerce.app import CommerceApp
from commerce.auth.context import AuthContext
from commerce.auth.tokens import issue_token
from commerce.models.user import User
from commerce.utils.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from commerce.utils.logger import get_logger

from .auth_middleware import get_commerce, require_local_auth

logger = get_logger(__name__)

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])
users_router = APIRouter(prefix="/api/users", tags=["users"])


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def _token_for(commerce: CommerceApp, user: User) -> str:
    auth = commerce.settings.auth
    return issue_token(
        user.id,
        user.role,
        auth.jwt_secret,
        expires_in=timedelta(minutes=auth.token_expiry_minutes),
        algorithm=auth.jwt_algorithm,
        email=user.email,
    )


def _current_user(commerce: CommerceApp, ctx: AuthContext) -> User:
    user = commerce.users.get_by_id(ctx.subject_id)
    if user is None:
        raise AuthenticationError("User no longer exists", code="TOKEN_REJECTED", status_code=401)
    return user


@auth_router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    user = commerce.users.create_user(username=body.username, email=body.email, password=body.password)
    logger.info("User registered", user_id=user.id)
    return {"token": _token_for(commerce, user), "user": user.to_public()}


@auth_router.post("/login")
def login(body: LoginRequest, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    user = commerce.users.authenticate(body.email, body.password)
    if user is None:
        logger.info("Login failed")
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    logger.info("User logged in", user_id=user.id)
    return {"token": _token_for(commerce, user), "user": user.to_public()}


@auth_router.post("/verify-token")
def verify_token(
    ctx: AuthContext = Depends(require_local_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    user = _current_user(commerce, ctx)
    return {"valid": True, "user": user.to_public()}


@auth_router.get("/profile")
def profile(
    ctx: AuthContext = Depends(require_local_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    return _current_user(commerce, ctx).to_public()


@users_router.get("")
def list_users(
    ctx: AuthContext = Depends(require_local_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> List[Dict[str, Any]]:
    if ctx.role != commerce.settings.auth.admin_role:
        raise AuthorizationError("Admin access required", code="ADMIN_REQUIRED")
    return [u.to_public() for u in commerce.users.get_all()]


@users_router.get("/{user_id}")
def get_user(
    user_id: str,
    ctx: AuthContext = Depends(require_local_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    if ctx.subject_id != user_id and ctx.role != commerce.settings.auth.admin_role:
        raise AuthorizationError("Access denied: you can only view your own profile", code="NOT_RESOURCE_OWNER")
    user = commerce.users.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return user.to_public()
