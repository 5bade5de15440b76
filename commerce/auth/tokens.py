"""
Bearer token authentication.

Invariants:
    - A token must pass the local signature/expiry check before anything else.
    - An explicit rejection from the identity service is final; local claims
      are only trusted when the service cannot be reached.
    - The identity returned by the identity service wins over local claims.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence

import jwt

from ..identity.client import RemoteIdentityClient
from ..utils.exceptions import (
    AuthenticationError,
    AuthenticationRejectedError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
)
from ..utils.logger import get_logger
from .context import AuthContext, Identity, VerifiedBy

logger = get_logger(__name__)


def extract_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Token from an `Authorization: Bearer <token>` header value"""
    if not auth_header:
        return None
    scheme, _, token = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def issue_token(
    subject_id: str,
    role: str,
    secret: str,
    expires_in: timedelta = timedelta(days=1),
    algorithm: str = "HS256",
    **extra_claims: Any,
) -> str:
    """Sign a token carrying `id` and `role` claims"""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        **extra_claims,
        "id": subject_id,
        "role": role,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


class TokenAuthenticator:
    """
    Resolves a bearer token into an AuthContext.

    NoToken -> LocalVerify -> RemoteReconcile -> Authenticated
    """

    def __init__(
        self,
        secret: str,
        identity_client: Optional[RemoteIdentityClient] = None,
        algorithms: Sequence[str] = ("HS256",),
        leeway_seconds: int = 0,
    ):
        self.secret = secret
        self.identity_client = identity_client
        self.algorithms = list(algorithms)
        self.leeway_seconds = leeway_seconds

    def decode_local(self, token: str) -> Identity:
        """
        Check signature and time claims, and require a subject id.

        Raises:
            AuthenticationError: TOKEN_EXPIRED, TOKEN_NOT_ACTIVE, TOKEN_INVALID_SIGNATURE,
                TOKEN_MALFORMED or TOKEN_INVALID_CLAIMS
        """
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=self.algorithms,
                leeway=self.leeway_seconds,
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired", code="TOKEN_EXPIRED", status_code=401)
        except jwt.ImmatureSignatureError:
            raise AuthenticationError("Token is not yet valid", code="TOKEN_NOT_ACTIVE", status_code=403)
        except jwt.InvalidSignatureError:
            raise AuthenticationError(
                "Token signature is invalid", code="TOKEN_INVALID_SIGNATURE", status_code=401
            )
        except jwt.InvalidTokenError:
            raise AuthenticationError("Token is malformed", code="TOKEN_MALFORMED", status_code=401)

        subject_id = claims.get("id") or claims.get("sub")
        if not subject_id or not isinstance(subject_id, str):
            raise AuthenticationError(
                "Token is missing the subject id", code="TOKEN_INVALID_CLAIMS", status_code=403
            )

        return Identity(
            subject_id=subject_id,
            role=str(claims.get("role") or "user"),
            issued_at=_timestamp(claims.get("iat")),
            expires_at=_timestamp(claims.get("exp")),
            email=claims.get("email"),
            claims=claims,
        )

    def authenticate(self, token: Optional[str]) -> AuthContext:
        """
        Run the whole chain for one request.

        Raises:
            AuthenticationError: Missing token, local verification failure, or
                rejection by the identity service (401/403, 404 or another 4xx answer)
        """
        if not token:
            raise AuthenticationError(
                "Authentication token required", code="AUTH_TOKEN_MISSING", status_code=401
            )

        local_identity = self.decode_local(token)

        if self.identity_client is None:
            return AuthContext(identity=local_identity, token=token, verified_by=VerifiedBy.LOCAL)

        try:
            verification = self.identity_client.verify_token(token)
        except (AuthenticationRejectedError, NotFoundError, UpstreamError) as e:
            logger.warning(
                "Token rejected by identity service",
                subject_id=local_identity.subject_id,
                error_code=e.code,
            )
            raise AuthenticationError(
                "Token was rejected by the identity service", code="TOKEN_REJECTED", status_code=401
            )
        except ServiceUnavailableError as e:
            logger.warning(
                "Identity service unavailable, trusting local token claims",
                subject_id=local_identity.subject_id,
                verified_by=VerifiedBy.LOCAL_FALLBACK.value,
                error_code=e.code,
            )
            return AuthContext(
                identity=local_identity, token=token, verified_by=VerifiedBy.LOCAL_FALLBACK
            )

        identity = self._merge_remote(local_identity, verification.user)
        logger.debug(
            "Token verified by identity service",
            subject_id=identity.subject_id,
            verified_by=VerifiedBy.REMOTE.value,
        )
        return AuthContext(identity=identity, token=token, verified_by=VerifiedBy.REMOTE)

    @staticmethod
    def _merge_remote(local: Identity, remote_user: Optional[Dict[str, Any]]) -> Identity:
        """Prefer the identity service's view of the user; keep local time claims"""
        if not remote_user or not remote_user.get("id"):
            return local
        return Identity(
            subject_id=str(remote_user["id"]),
            role=str(remote_user.get("role") or local.role),
            issued_at=local.issued_at,
            expires_at=local.expires_at,
            email=remote_user.get("email") or local.email,
            claims=local.claims,
        )
