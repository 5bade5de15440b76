"""Bearer token authentication and authorization guards"""

from .context import AuthContext, AuthorizationDecision, AuthorizationSource, Identity, VerifiedBy
from .guards import AuthorizationGuards
from .tokens import TokenAuthenticator, extract_bearer_token, issue_token

__all__ = [
    "AuthContext",
    "AuthorizationDecision",
    "AuthorizationSource",
    "Identity",
    "VerifiedBy",
    "AuthorizationGuards",
    "TokenAuthenticator",
    "extract_bearer_token",
    "issue_token",
]
