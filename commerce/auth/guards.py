"""
Authorization guards: userExists, isAdmin, isResourceOwner.

Fallbacks when the identity service is unreachable are deliberately
asymmetric:
    - user_exists and is_resource_owner trust the caller's own token id
      (self-access only).
    - is_admin never grants elevated privilege on a best-effort basis; only a
      token that already claims admin passes.

Every grant returns an AuthorizationDecision tagged with its source; every
denial raises.
"""

from __future__ import annotations

from typing import Optional

from ..identity.client import RemoteIdentityClient
from ..utils.exceptions import (
    AuthenticationError,
    AuthenticationRejectedError,
    AuthorizationError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
    ValidationError,
)
from ..utils.logger import get_logger
from .context import AuthContext, AuthorizationDecision, AuthorizationSource

logger = get_logger(__name__)


def _require_context(ctx: Optional[AuthContext]) -> AuthContext:
    if ctx is None or not ctx.token:
        raise AuthenticationError("Authentication required", code="AUTH_REQUIRED", status_code=401)
    return ctx


def _require_user_id(user_id: Optional[str]) -> str:
    if not user_id or not str(user_id).strip():
        raise ValidationError("User ID is required", code="USER_ID_REQUIRED")
    return str(user_id)


class AuthorizationGuards:
    """Ownership and role checks backed by the identity service"""

    def __init__(self, identity_client: Optional[RemoteIdentityClient] = None, admin_role: str = "admin"):
        self.identity_client = identity_client
        self.admin_role = admin_role

    def _grant(
        self, check: str, ctx: AuthContext, source: AuthorizationSource, **log_fields
    ) -> AuthorizationDecision:
        log = logger.warning if source == AuthorizationSource.LOCAL_FALLBACK else logger.debug
        log(
            "Authorization granted",
            check=check,
            subject_id=ctx.subject_id,
            authorization_source=source.value,
            **log_fields,
        )
        return AuthorizationDecision(check=check, source=source, subject_id=ctx.subject_id)

    def _deny(self, check: str, ctx: AuthContext, message: str, code: str, **log_fields) -> AuthorizationError:
        logger.info("Authorization denied", check=check, subject_id=ctx.subject_id, code=code, **log_fields)
        return AuthorizationError(message, code=code)

    def user_exists(self, ctx: Optional[AuthContext], target_user_id: Optional[str]) -> AuthorizationDecision:
        """
        Confirm the target user exists in the identity service.

        Raises:
            ValidationError: No target id (USER_ID_REQUIRED)
            AuthenticationError: No authenticated caller (AUTH_REQUIRED)
            NotFoundError: The identity service does not know the user (USER_NOT_FOUND)
            ServiceUnavailableError: The service is unreachable and the target is
                not the caller (IDENTITY_SERVICE_UNAVAILABLE)
        """
        target_user_id = _require_user_id(target_user_id)
        ctx = _require_context(ctx)

        if self.identity_client is not None:
            try:
                exists = self.identity_client.validate_user(target_user_id, ctx.token)
            except ServiceUnavailableError as e:
                logger.warning(
                    "Identity service unavailable during user check",
                    target_user_id=target_user_id,
                    error_code=e.code,
                )
            else:
                if exists:
                    return self._grant("user_exists", ctx, AuthorizationSource.REMOTE, target_user_id=target_user_id)
                logger.info("User not found", target_user_id=target_user_id)
                raise NotFoundError("User not found", code="USER_NOT_FOUND")

        if ctx.subject_id == target_user_id:
            return self._grant(
                "user_exists", ctx, AuthorizationSource.LOCAL_FALLBACK, target_user_id=target_user_id
            )
        logger.warning("Cannot verify third-party user without identity service", target_user_id=target_user_id)
        raise ServiceUnavailableError(
            "User service unavailable, cannot verify user", code="IDENTITY_SERVICE_UNAVAILABLE"
        )

    def is_admin(self, ctx: Optional[AuthContext]) -> AuthorizationDecision:
        """
        Raises:
            AuthenticationError: No authenticated caller (AUTH_REQUIRED)
            AuthorizationError: Not an admin, or admin status could not be
                confirmed (ADMIN_REQUIRED)
        """
        ctx = _require_context(ctx)
        if ctx.role == self.admin_role:
            return self._grant("is_admin", ctx, AuthorizationSource.TOKEN)

        if self.identity_client is None:
            raise self._deny("is_admin", ctx, "Admin access required", "ADMIN_REQUIRED")

        try:
            admin = self.identity_client.is_admin(ctx.subject_id, ctx.token)
        except (AuthenticationRejectedError, NotFoundError, UpstreamError) as e:
            raise self._deny("is_admin", ctx, "Admin access required", "ADMIN_REQUIRED", error_code=e.code)
        except ServiceUnavailableError as e:
            raise self._deny(
                "is_admin",
                ctx,
                "Admin access required",
                "ADMIN_REQUIRED",
                error_code=e.code,
                fallback="strict",
            )

        if admin:
            return self._grant("is_admin", ctx, AuthorizationSource.REMOTE)
        raise self._deny("is_admin", ctx, "Admin access required", "ADMIN_REQUIRED")

    def is_resource_owner(
        self, ctx: Optional[AuthContext], resource_user_id: Optional[str]
    ) -> AuthorizationDecision:
        """
        Grant when the caller is an admin or owns the resource.

        Raises:
            ValidationError: No resource owner id (USER_ID_REQUIRED)
            AuthenticationError: No authenticated caller (AUTH_REQUIRED)
            AuthorizationError: Neither admin nor owner (NOT_RESOURCE_OWNER)
        """
        resource_user_id = _require_user_id(resource_user_id)
        ctx = _require_context(ctx)
        is_owner = ctx.subject_id == resource_user_id

        if ctx.role == self.admin_role:
            return self._grant("is_resource_owner", ctx, AuthorizationSource.TOKEN, resource_user_id=resource_user_id)

        owner_source = AuthorizationSource.TOKEN
        if self.identity_client is not None:
            try:
                if self.identity_client.is_admin(ctx.subject_id, ctx.token):
                    return self._grant(
                        "is_resource_owner", ctx, AuthorizationSource.REMOTE, resource_user_id=resource_user_id
                    )
            except (AuthenticationRejectedError, NotFoundError, UpstreamError) as e:
                logger.info("Remote admin check rejected", subject_id=ctx.subject_id, error_code=e.code)
            except ServiceUnavailableError as e:
                logger.warning(
                    "Identity service unavailable during ownership check",
                    subject_id=ctx.subject_id,
                    error_code=e.code,
                )
                owner_source = AuthorizationSource.LOCAL_FALLBACK

        if is_owner:
            return self._grant("is_resource_owner", ctx, owner_source, resource_user_id=resource_user_id)
        raise self._deny(
            "is_resource_owner",
            ctx,
            "Access denied: you do not own this resource",
            "NOT_RESOURCE_OWNER",
            resource_user_id=resource_user_id,
        )
