"""Tests for local token verification, remote reconcile and fallback"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import jwt
import pytest

from commerce.auth.context import VerifiedBy
from commerce.auth.tokens import TokenAuthenticator, extract_bearer_token, issue_token
from commerce.identity.client import RemoteIdentityClient, TokenVerification
from commerce.utils.exceptions import (
    AuthenticationError,
    AuthenticationRejectedError,
    NetworkError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
)

SECRET = "test-secret"


def _token(**claims):
    now = datetime.now(timezone.utc)
    payload = {"id": "u1", "role": "user", "iat": now, "exp": now + timedelta(hours=1)}
    payload.update(claims)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, SECRET, algorithm="HS256")


def _auth(identity_client=None):
    return TokenAuthenticator(SECRET, identity_client=identity_client)


def _code(exc_info):
    return exc_info.value.code, exc_info.value.status_code


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc", "abc"),
        ("bearer  abc ", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


def test_missing_token_rejected():
    with pytest.raises(AuthenticationError) as exc_info:
        _auth().authenticate(None)
    assert _code(exc_info) == ("AUTH_TOKEN_MISSING", 401)


def test_expired_token_rejected():
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    with pytest.raises(AuthenticationError) as exc_info:
        _auth().authenticate(_token(iat=past, exp=past + timedelta(minutes=1)))
    assert _code(exc_info) == ("TOKEN_EXPIRED", 401)


def test_not_yet_valid_token_rejected():
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    with pytest.raises(AuthenticationError) as exc_info:
        _auth().authenticate(_token(nbf=future))
    assert _code(exc_info) == ("TOKEN_NOT_ACTIVE", 403)


def test_malformed_token_rejected():
    with pytest.raises(AuthenticationError) as exc_info:
        _auth().authenticate("not.a.jwt")
    assert _code(exc_info) == ("TOKEN_MALFORMED", 401)


def test_wrong_signature_rejected():
    token = jwt.encode({"id": "u1"}, "other-secret", algorithm="HS256")
    with pytest.raises(AuthenticationError) as exc_info:
        _auth().authenticate(token)
    assert _code(exc_info) == ("TOKEN_INVALID_SIGNATURE", 401)


def test_missing_subject_claim_rejected():
    with pytest.raises(AuthenticationError) as exc_info:
        _auth().authenticate(_token(id=None))
    assert _code(exc_info) == ("TOKEN_INVALID_CLAIMS", 403)


def test_sub_claim_accepted_as_subject():
    ctx = _auth().authenticate(_token(id=None, sub="u9"))
    assert ctx.subject_id == "u9"


def test_local_only_without_identity_client():
    ctx = _auth().authenticate(_token())
    assert ctx.subject_id == "u1"
    assert ctx.role == "user"
    assert ctx.verified_by == VerifiedBy.LOCAL
    assert ctx.identity.expires_at is not None


def test_remote_identity_is_preferred():
    client = MagicMock()
    client.verify_token.return_value = TokenVerification(
        valid=True, user={"id": "u1", "role": "admin", "email": "a@example.com"}
    )
    ctx = _auth(client).authenticate(_token())
    assert ctx.verified_by == VerifiedBy.REMOTE
    assert ctx.role == "admin"
    assert ctx.identity.email == "a@example.com"


def test_remote_without_user_keeps_local_claims():
    client = MagicMock()
    client.verify_token.return_value = TokenVerification(valid=True, user=None)
    ctx = _auth(client).authenticate(_token(role="user"))
    assert ctx.verified_by == VerifiedBy.REMOTE
    assert ctx.subject_id == "u1"


@pytest.mark.parametrize("error", [ServiceUnavailableError("down"), NetworkError("refused")])
def test_unavailable_identity_service_falls_back_to_local(error):
    client = MagicMock()
    client.verify_token.side_effect = error
    ctx = _auth(client).authenticate(_token())
    assert ctx.verified_by == VerifiedBy.LOCAL_FALLBACK
    assert ctx.subject_id == "u1"


@pytest.mark.parametrize(
    "error",
    [
        AuthenticationRejectedError("revoked"),
        NotFoundError("User not found", code="USER_NOT_FOUND"),
        UpstreamError("Identity service answered 400"),
    ],
)
def test_explicit_rejection_is_not_overridden_by_local_claims(error):
    client = MagicMock()
    client.verify_token.side_effect = error
    with pytest.raises(AuthenticationError) as exc_info:
        _auth(client).authenticate(_token())
    assert _code(exc_info) == ("TOKEN_REJECTED", 401)


@pytest.mark.parametrize("status_code", [400, 404, 422])
def test_identity_service_error_answers_reject_the_token(status_code):
    response = MagicMock(status_code=status_code, headers={})
    response.json.return_value = {"error": "nope"}
    session = MagicMock()
    session.request.return_value = response
    client = RemoteIdentityClient(base_url="http://identity.test/api", retry_delay_seconds=0, session=session)

    with pytest.raises(AuthenticationError) as exc_info:
        _auth(client).authenticate(_token())
    assert _code(exc_info) == ("TOKEN_REJECTED", 401)
    assert session.request.call_count == 1


def test_local_failure_skips_remote_call():
    client = MagicMock()
    with pytest.raises(AuthenticationError):
        _auth(client).authenticate("garbage")
    client.verify_token.assert_not_called()


def test_issue_token_round_trip():
    token = issue_token("u5", "admin", SECRET, expires_in=timedelta(minutes=5), email="x@example.com")
    identity = _auth().decode_local(token)
    assert identity.subject_id == "u5"
    assert identity.role == "admin"
    assert identity.email == "x@example.com"
