"""Remote identity (user-management) service integration"""

from .client import RemoteIdentityClient, TokenVerification

__all__ = ["RemoteIdentityClient", "TokenVerification"]
