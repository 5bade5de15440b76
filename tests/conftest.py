from pathlib import Path
from unittest.mock import MagicMock

import bcrypt
import pytest
from fastapi.testclient import TestClient

from commerce.app import CommerceApp
from commerce.auth.tokens import issue_token
from commerce.core.config import Settings
from commerce.identity.client import TokenVerification
from commerce_web.app import create_app

JWT_SECRET = "test-secret"


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cheaper bcrypt rounds so tests stay quick."""
    real_gensalt = bcrypt.gensalt
    monkeypatch.setattr(bcrypt, "gensalt", lambda rounds=12: real_gensalt(rounds=4))


def make_settings(tmp_path: Path, **sections) -> Settings:
    data = {
        "storage": {"data_dir": str(tmp_path / "data")},
        "auth": {"jwt_secret": JWT_SECRET},
        "users": {"seed_admin": False},
        "logging": {"level": "WARNING", "format": "console"},
    }
    for name, values in sections.items():
        data.setdefault(name, {}).update(values)
    return Settings(**data)


def token_for(user_id: str, role: str = "user") -> str:
    return issue_token(user_id, role, JWT_SECRET)


def auth_header(user_id: str, role: str = "user") -> dict:
    return {"Authorization": f"Bearer {token_for(user_id, role)}"}


@pytest.fixture
def identity_client():
    """Identity service that accepts every token and knows every user"""
    client = MagicMock()
    client.verify_token.return_value = TokenVerification(valid=True, user=None)
    client.validate_user.return_value = True
    client.is_admin.return_value = False
    return client


@pytest.fixture
def commerce_client(tmp_path, identity_client):
    settings = make_settings(tmp_path)
    commerce = CommerceApp(settings, identity_client=identity_client)
    return TestClient(create_app(commerce=commerce))
