"""Custom exceptions for the commerce services"""

from typing import Any, Dict, Optional


class CommerceError(Exception):
    """Base exception for the commerce services"""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.message = message
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        """JSON body returned to clients"""
        return {"error": self.message, "code": self.code}


class ValidationError(CommerceError):
    """Bad input. Never retried."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(CommerceError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(CommerceError):
    status_code = 409
    code = "CONFLICT"


class AuthenticationError(CommerceError):
    """Missing, invalid or rejected credentials"""
    status_code = 401
    code = "AUTHENTICATION_FAILED"


class AuthenticationRejectedError(AuthenticationError):
    """The identity service explicitly refused the token (401/403 upstream)"""
    code = "TOKEN_REJECTED"


class AuthorizationError(CommerceError):
    status_code = 403
    code = "ACCESS_DENIED"


class ServiceUnavailableError(CommerceError):
    """Upstream service could not be reached. Retry-eligible."""
    status_code = 503
    code = "SERVICE_UNAVAILABLE"


class NetworkError(ServiceUnavailableError):
    """Connection refused/reset"""
    code = "NETWORK_ERROR"


class RemoteTimeoutError(ServiceUnavailableError):
    code = "UPSTREAM_TIMEOUT"


class RateLimitError(ServiceUnavailableError):
    """Upstream answered 429"""

    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(message)


class UpstreamError(CommerceError):
    """Upstream answered with an unexpected client error or an unreadable body"""
    status_code = 502
    code = "UPSTREAM_ERROR"


class StorageError(CommerceError):
    status_code = 500
    code = "STORAGE_ERROR"


class StorageReadError(StorageError):
    """Collection file exists but could not be read"""
    code = "STORAGE_READ_ERROR"


class StorageCorruptionError(StorageError):
    """Collection file is unparsable or structurally wrong. Healed by FileStore, never surfaced."""
    code = "STORAGE_CORRUPTED"


class InvalidStructureError(StorageError):
    code = "INVALID_STRUCTURE"


class LockTimeoutError(StorageError):
    status_code = 503
    code = "STORE_BUSY"


class ConfigError(CommerceError):
    """Configuration error"""
    code = "CONFIG_ERROR"
