"""User data models for authentication"""

from typing import Any, Dict, Optional

from pydantic import Field

from .base import Document

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(Document):
    """User model for authentication and authorization"""
    username: str
    email: str  # stored lowercase
    password_hash: str
    role: str = Field(default=ROLE_USER, pattern="^(admin|user)$")
    is_verified: bool = False
    last_login: Optional[str] = None

    def to_public(self) -> Dict[str, Any]:
        """Wire representation without the password hash"""
        record = self.to_record()
        record.pop("passwordHash", None)
        return record
