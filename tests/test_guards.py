"""Fallback matrix for the authorization guards"""

from unittest.mock import MagicMock

import pytest

from commerce.auth.context import AuthContext, AuthorizationSource, Identity, VerifiedBy
from commerce.auth.guards import AuthorizationGuards
from commerce.utils.exceptions import (
    AuthenticationError,
    AuthenticationRejectedError,
    AuthorizationError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
    ValidationError,
)


def _ctx(subject_id="u1", role="user"):
    return AuthContext(
        identity=Identity(subject_id=subject_id, role=role),
        token="tok",
        verified_by=VerifiedBy.REMOTE,
    )


def _unavailable_client():
    client = MagicMock()
    client.validate_user.side_effect = ServiceUnavailableError("down")
    client.is_admin.side_effect = ServiceUnavailableError("down")
    return client


# -- user_exists ---------------------------------------------------------------


def test_user_exists_requires_target_id():
    with pytest.raises(ValidationError) as exc_info:
        AuthorizationGuards(MagicMock()).user_exists(_ctx(), "")
    assert exc_info.value.code == "USER_ID_REQUIRED"
    assert exc_info.value.status_code == 400


def test_user_exists_requires_authentication():
    with pytest.raises(AuthenticationError) as exc_info:
        AuthorizationGuards(MagicMock()).user_exists(None, "u1")
    assert exc_info.value.code == "AUTH_REQUIRED"


def test_user_exists_confirmed_remotely():
    client = MagicMock()
    client.validate_user.return_value = True
    decision = AuthorizationGuards(client).user_exists(_ctx(), "u2")
    assert decision.source == AuthorizationSource.REMOTE
    client.validate_user.assert_called_once_with("u2", "tok")


def test_user_exists_unknown_user():
    client = MagicMock()
    client.validate_user.return_value = False
    with pytest.raises(NotFoundError) as exc_info:
        AuthorizationGuards(client).user_exists(_ctx(), "ghost")
    assert exc_info.value.code == "USER_NOT_FOUND"


def test_user_exists_self_allowed_when_unavailable():
    decision = AuthorizationGuards(_unavailable_client()).user_exists(_ctx("u1"), "u1")
    assert decision.source == AuthorizationSource.LOCAL_FALLBACK


def test_user_exists_third_party_rejected_when_unavailable():
    with pytest.raises(ServiceUnavailableError) as exc_info:
        AuthorizationGuards(_unavailable_client()).user_exists(_ctx("u1"), "u2")
    assert exc_info.value.code == "IDENTITY_SERVICE_UNAVAILABLE"
    assert exc_info.value.status_code == 503


# -- is_admin ------------------------------------------------------------------


def test_admin_role_in_token_granted_without_remote_call():
    client = MagicMock()
    decision = AuthorizationGuards(client).is_admin(_ctx(role="admin"))
    assert decision.source == AuthorizationSource.TOKEN
    client.is_admin.assert_not_called()


def test_admin_confirmed_remotely():
    client = MagicMock()
    client.is_admin.return_value = True
    decision = AuthorizationGuards(client).is_admin(_ctx())
    assert decision.source == AuthorizationSource.REMOTE


@pytest.mark.parametrize(
    "outcome",
    [False, AuthenticationRejectedError("no"), NotFoundError("gone"), UpstreamError("bad request")],
)
def test_admin_denied_by_identity_service(outcome):
    client = MagicMock()
    if isinstance(outcome, Exception):
        client.is_admin.side_effect = outcome
    else:
        client.is_admin.return_value = outcome
    with pytest.raises(AuthorizationError) as exc_info:
        AuthorizationGuards(client).is_admin(_ctx())
    assert exc_info.value.code == "ADMIN_REQUIRED"
    assert exc_info.value.status_code == 403


def test_admin_denied_when_unavailable_even_for_owner_style_access():
    guards = AuthorizationGuards(_unavailable_client())
    with pytest.raises(AuthorizationError):
        guards.is_admin(_ctx("u1", role="user"))
    # The ownership fallback would let the same caller reach their own resource
    assert guards.is_resource_owner(_ctx("u1", role="user"), "u1").source == AuthorizationSource.LOCAL_FALLBACK


# -- is_resource_owner ---------------------------------------------------------


def test_owner_requires_resource_user_id():
    with pytest.raises(ValidationError):
        AuthorizationGuards(MagicMock()).is_resource_owner(_ctx(), None)


def test_owner_requires_authentication():
    with pytest.raises(AuthenticationError):
        AuthorizationGuards(MagicMock()).is_resource_owner(None, "u1")


def test_token_admin_may_access_any_resource():
    decision = AuthorizationGuards(MagicMock()).is_resource_owner(_ctx("a1", role="admin"), "u7")
    assert decision.source == AuthorizationSource.TOKEN


def test_remote_admin_may_access_any_resource():
    client = MagicMock()
    client.is_admin.return_value = True
    decision = AuthorizationGuards(client).is_resource_owner(_ctx("u1"), "u7")
    assert decision.source == AuthorizationSource.REMOTE


def test_owner_granted_when_remote_says_not_admin():
    client = MagicMock()
    client.is_admin.return_value = False
    decision = AuthorizationGuards(client).is_resource_owner(_ctx("u1"), "u1")
    assert decision.source == AuthorizationSource.TOKEN


def test_non_owner_denied():
    client = MagicMock()
    client.is_admin.return_value = False
    with pytest.raises(AuthorizationError) as exc_info:
        AuthorizationGuards(client).is_resource_owner(_ctx("u1"), "u2")
    assert exc_info.value.code == "NOT_RESOURCE_OWNER"


@pytest.mark.parametrize("error", [AuthenticationRejectedError("no"), UpstreamError("bad request")])
def test_owner_check_treats_remote_error_answer_as_not_admin(error):
    client = MagicMock()
    client.is_admin.side_effect = error
    guards = AuthorizationGuards(client)
    assert guards.is_resource_owner(_ctx("u1"), "u1").source == AuthorizationSource.TOKEN
    with pytest.raises(AuthorizationError) as exc_info:
        guards.is_resource_owner(_ctx("u1"), "u2")
    assert exc_info.value.code == "NOT_RESOURCE_OWNER"


def test_owner_allowed_by_local_fallback_when_unavailable():
    decision = AuthorizationGuards(_unavailable_client()).is_resource_owner(_ctx("u1"), "u1")
    assert decision.source == AuthorizationSource.LOCAL_FALLBACK
    assert decision.subject_id == "u1"


def test_non_owner_denied_when_unavailable():
    with pytest.raises(AuthorizationError):
        AuthorizationGuards(_unavailable_client()).is_resource_owner(_ctx("u1"), "u2")


def test_guards_without_identity_client_use_token_only():
    guards = AuthorizationGuards(None)
    assert guards.user_exists(_ctx("u1"), "u1").source == AuthorizationSource.LOCAL_FALLBACK
    assert guards.is_resource_owner(_ctx("u1"), "u1").source == AuthorizationSource.TOKEN
    with pytest.raises(AuthorizationError):
        guards.is_admin(_ctx("u1"))
