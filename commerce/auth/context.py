"""
Per-request authentication context.

Built by TokenAuthenticator for one request and handed to the guards.
Never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class VerifiedBy(str, Enum):
    REMOTE = "remote"
    LOCAL_FALLBACK = "local-fallback"
    # Identity service authenticating its own tokens
    LOCAL = "local"


class AuthorizationSource(str, Enum):
    TOKEN = "token"
    REMOTE = "remote"
    LOCAL_FALLBACK = "local-fallback"


@dataclass(frozen=True)
class Identity:
    subject_id: str
    role: str = "user"
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    email: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller for one request"""
    identity: Identity
    token: str = field(repr=False)  # never logged
    verified_by: VerifiedBy

    @property
    def subject_id(self) -> str:
        return self.identity.subject_id

    @property
    def role(self) -> str:
        return self.identity.role


@dataclass(frozen=True)
class AuthorizationDecision:
    """A granted check; denials are raised as errors instead"""
    check: str
    source: AuthorizationSource
    subject_id: str
