"""User-management (identity) service client"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..utils.exceptions import (
    AuthenticationRejectedError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RemoteTimeoutError,
    ServiceUnavailableError,
    UpstreamError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TokenVerification:
    """Result of POST /auth/verify-token"""
    valid: bool
    user: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class RemoteIdentityClient:
    """Client for the identity service with timeouts, retries and typed errors"""

    def __init__(
        self,
        base_url: str = "http://localhost:3000/api",
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.users_endpoint = f"{self.base_url}/users"
        self.auth_endpoint = f"{self.base_url}/auth"
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self.retry_delay_seconds = retry_delay_seconds
        self.session = session or requests.Session()

    def _retrying(self) -> Retrying:
        # 429, 5xx and network-class failures are retried; other 4xx are not
        return Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_fixed(self.retry_delay_seconds),
            retry=retry_if_exception_type(ServiceUnavailableError),
            reraise=True,
        )

    def _make_request(self, method: str, url: str, token: str) -> Dict[str, Any]:
        """
        Make one HTTP request to the identity service.

        Raises:
            AuthenticationRejectedError: 401/403
            NotFoundError: 404
            RateLimitError: 429
            ServiceUnavailableError: 5xx
            RemoteTimeoutError / NetworkError: no response
            UpstreamError: other 4xx or a non-JSON body
        """
        try:
            response = self.session.request(
                method=method,
                url=url,
                headers={"Authorization": f"Bearer {token}"},
                json={} if method == "POST" else None,
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as e:
            raise RemoteTimeoutError(f"Connection to identity service timed out: {e}")
        except requests.ConnectionError as e:
            raise NetworkError(f"Identity service is unavailable: {e}")

        status_code = response.status_code
        logger.debug("Identity service response", method=method, url=url, status_code=status_code)

        if status_code in (401, 403):
            raise AuthenticationRejectedError("Invalid or expired token")
        if status_code == 404:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")
        if status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Identity service rate limit exceeded",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status_code >= 500:
            raise ServiceUnavailableError(f"Identity service error: {status_code}")
        if status_code >= 400:
            raise UpstreamError(f"Identity service request failed: {status_code}")

        try:
            body = response.json()
        except ValueError:
            raise UpstreamError("Identity service returned a non-JSON body")
        if not isinstance(body, dict):
            raise UpstreamError("Identity service returned an unexpected body")
        return body

    def _request(self, method: str, url: str, token: str) -> Dict[str, Any]:
        try:
            return self._retrying()(self._make_request, method, url, token)
        except ServiceUnavailableError as e:
            logger.warning(
                "Identity service unreachable",
                method=method,
                url=url,
                error_code=e.code,
                attempts=self.max_retries,
            )
            raise

    def get_user_by_id(self, user_id: str, token: str) -> Dict[str, Any]:
        """GET /users/{id}"""
        return self._request("GET", f"{self.users_endpoint}/{user_id}", token)

    def validate_user(self, user_id: str, token: str) -> bool:
        """
        True if the user exists. Semantic rejections (401/403/404) return False;
        unavailability still raises ServiceUnavailableError.
        """
        try:
            self.get_user_by_id(user_id, token)
            return True
        except (AuthenticationRejectedError, NotFoundError) as e:
            logger.info("User validation rejected", user_id=user_id, error_code=e.code)
            return False

    def is_admin(self, user_id: str, token: str) -> bool:
        user = self.get_user_by_id(user_id, token)
        return user.get("role") == "admin"

    def verify_token(self, token: str) -> TokenVerification:
        """
        POST /auth/verify-token.

        A 2xx answer without `valid: true` counts as a rejection.
        """
        body = self._request("POST", f"{self.auth_endpoint}/verify-token", token)
        if not body.get("valid"):
            raise AuthenticationRejectedError("Identity service did not accept the token")
        user = body.get("user")
        return TokenVerification(valid=True, user=user if isinstance(user, dict) else None, raw=body)

    def get_user_profile(self, token: str) -> Dict[str, Any]:
        """GET /auth/profile"""
        return self._request("GET", f"{self.auth_endpoint}/profile", token)
