"""
User storage for the identity service.

- Email is unique (case-insensitive) and stored lowercase.
- Passwords are stored only as bcrypt hashes.
- The first admin is seeded when the collection is empty.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import bcrypt

from ..models.base import build_model, utc_now_iso
from ..models.user import ROLE_ADMIN, ROLE_USER, User
from ..utils.exceptions import ConflictError, ValidationError
from ..utils.logger import get_logger
from .collection_store import CollectionStore

logger = get_logger(__name__)

ROLES = (ROLE_USER, ROLE_ADMIN)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


class UserStore(CollectionStore[User]):
    model = User
    entity_name = "User"

    def get_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        email = email.strip().lower()
        return next((u for u in self.get_all() if u.email.lower() == email), None)

    def create_user(
        self,
        username: str,
        email: str,
        password: Optional[str] = None,
        role: str = ROLE_USER,
        password_hash: Optional[str] = None,
    ) -> User:
        """
        Create a user from a plaintext password (hashed here) or a ready hash.

        Raises:
            ValidationError: Missing fields or unknown role
            ConflictError: Email already registered (EMAIL_TAKEN)
        """
        if not username or not email:
            raise ValidationError("Username and email are required")
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}")
        if password_hash is None:
            if not password:
                raise ValidationError("Password is required")
            password_hash = hash_password(password)

        user = build_model(
            User,
            {
                "username": username.strip(),
                "email": email.strip().lower(),
                "passwordHash": password_hash,
                "role": role,
            },
        )
        with self.store.transaction() as documents:
            if any(
                isinstance(d, dict) and str(d.get("email", "")).lower() == user.email
                for d in documents
            ):
                raise ConflictError("Email is already registered", code="EMAIL_TAKEN")
            documents.append(user.to_record())
        logger.info("User created", user_id=user.id, role=user.role)
        return user

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user if credentials are valid and record the login, else None."""
        user = self.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return self._patch(user.id, {"lastLogin": utc_now_iso()})

    def update_user(self, user_id: str, updates: Dict[str, Any]) -> User:
        """
        Update profile fields. A `password` entry is re-hashed; `id`,
        `createdAt` and `passwordHash` cannot be set directly.
        """
        changes = {k: v for k, v in updates.items() if k not in ("id", "createdAt", "passwordHash", "password_hash")}
        if "password" in changes:
            changes["passwordHash"] = hash_password(changes.pop("password"))
        if "role" in changes and changes["role"] not in ROLES:
            raise ValidationError(f"Invalid role: {changes['role']}")
        if "email" in changes:
            email = str(changes["email"]).strip().lower()
            existing = self.get_by_email(email)
            if existing is not None and existing.id != user_id:
                raise ConflictError("Email is already registered", code="EMAIL_TAKEN")
            changes["email"] = email
        return self._patch(user_id, changes)

    def find_by_role(self, role: str) -> List[User]:
        return self.find(lambda u: u.role == role)

    def search(self, query: str) -> List[User]:
        """Username or email substring match, case-insensitive"""
        q = (query or "").strip().lower()
        if not q:
            return self.get_all()
        return self.find(lambda u: q in u.username.lower() or q in u.email.lower())

    def ensure_seed_admin(self, email: str, password: str) -> Optional[User]:
        """Create the first admin when no users exist. Idempotent."""
        if self.count() > 0:
            return None
        admin = self.create_user(username="admin", email=email, password=password, role=ROLE_ADMIN)
        logger.info("Seeded admin user", user_id=admin.id)
        return admin
