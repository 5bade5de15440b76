"""
FastAPI dependencies that run the authentication chain.

Dependencies are plain functions so FastAPI runs them on the worker
thread pool; the identity client uses a blocking requests session.
"""

from typing import Optional

from fastapi import Depends, Request

from commerce.app import CommerceApp
from commerce.auth.context import AuthContext, AuthorizationDecision
from commerce.auth.tokens import extract_bearer_token


def get_commerce(request: Request) -> CommerceApp:
    return request.app.state.commerce


def _token(request: Request) -> Optional[str]:
    return extract_bearer_token(request.headers.get("Authorization"))


def require_auth(request: Request, commerce: CommerceApp = Depends(get_commerce)) -> AuthContext:
    """Authenticated caller, verified against the identity service when it is reachable"""
    ctx = commerce.authenticator.authenticate(_token(request))
    request.state.auth = ctx
    return ctx


def require_local_auth(request: Request, commerce: CommerceApp = Depends(get_commerce)) -> AuthContext:
    """Authenticated caller for the identity service's own routes (local verification only)"""
    ctx = commerce.local_authenticator.authenticate(_token(request))
    request.state.auth = ctx
    return ctx


def require_admin(
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> AuthContext:
    commerce.guards.is_admin(ctx)
    return ctx


def check_owner(commerce: CommerceApp, ctx: AuthContext, resource_user_id: Optional[str]) -> AuthorizationDecision:
    """Owner-or-admin check for a resource whose owner is only known inside the handler"""
    return commerce.guards.is_resource_owner(ctx, resource_user_id)


def require_path_owner(
    user_id: str,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> AuthContext:
    """For routes addressed by /{user_id}"""
    commerce.guards.is_resource_owner(ctx, user_id)
    return ctx
