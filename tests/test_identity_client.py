"""Tests for the identity service client: status mapping and retries"""

from unittest.mock import MagicMock

import pytest
import requests

from commerce.identity.client import RemoteIdentityClient
from commerce.utils.exceptions import (
    AuthenticationRejectedError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RemoteTimeoutError,
    ServiceUnavailableError,
    UpstreamError,
)


def _response(status_code, body=None, headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body if body is not None else {}
    return response


def _client(*responses, max_retries=3):
    session = MagicMock()
    session.request.side_effect = list(responses)
    client = RemoteIdentityClient(
        base_url="http://identity.test/api/",
        timeout_seconds=2,
        max_retries=max_retries,
        retry_delay_seconds=0,
        session=session,
    )
    return client, session


def test_get_user_sends_bearer_token_and_timeout():
    client, session = _client(_response(200, {"id": "u1", "role": "user"}))
    assert client.get_user_by_id("u1", "tok") == {"id": "u1", "role": "user"}
    kwargs = session.request.call_args.kwargs
    assert kwargs["method"] == "GET"
    assert kwargs["url"] == "http://identity.test/api/users/u1"
    assert kwargs["headers"] == {"Authorization": "Bearer tok"}
    assert kwargs["timeout"] == 2


@pytest.mark.parametrize(
    "status_code, error",
    [
        (401, AuthenticationRejectedError),
        (403, AuthenticationRejectedError),
        (404, NotFoundError),
        (400, UpstreamError),
        (422, UpstreamError),
    ],
)
def test_client_errors_are_not_retried(status_code, error):
    client, session = _client(_response(status_code), _response(200, {"id": "u1"}))
    with pytest.raises(error):
        client.get_user_by_id("u1", "tok")
    assert session.request.call_count == 1


def test_server_errors_are_retried_then_succeed():
    client, session = _client(_response(503), _response(500), _response(200, {"id": "u1"}))
    assert client.get_user_by_id("u1", "tok")["id"] == "u1"
    assert session.request.call_count == 3


def test_retries_exhausted_raises_service_unavailable():
    client, session = _client(_response(502), _response(502), _response(502))
    with pytest.raises(ServiceUnavailableError):
        client.get_user_by_id("u1", "tok")
    assert session.request.call_count == 3


def test_rate_limit_is_retry_eligible_and_keeps_retry_after():
    client, session = _client(
        _response(429, headers={"Retry-After": "7"}),
        _response(429, headers={"Retry-After": "7"}),
        max_retries=2,
    )
    with pytest.raises(RateLimitError) as exc_info:
        client.get_user_by_id("u1", "tok")
    assert exc_info.value.retry_after == 7
    assert session.request.call_count == 2


@pytest.mark.parametrize(
    "exc, error",
    [
        (requests.ConnectionError("refused"), NetworkError),
        (requests.Timeout("slow"), RemoteTimeoutError),
    ],
)
def test_network_failures_map_to_unavailable(exc, error):
    client, session = _client(exc, exc, exc)
    with pytest.raises(error):
        client.get_user_by_id("u1", "tok")
    assert session.request.call_count == 3


def test_non_json_body_is_upstream_error():
    client, _ = _client(_response(200, ValueError("no json")))
    with pytest.raises(UpstreamError):
        client.get_user_by_id("u1", "tok")


def test_validate_user_returns_false_for_semantic_rejection():
    client, _ = _client(_response(404))
    assert client.validate_user("ghost", "tok") is False
    client, _ = _client(_response(401))
    assert client.validate_user("u1", "tok") is False


def test_validate_user_propagates_unavailability():
    client, _ = _client(_response(503), max_retries=1)
    with pytest.raises(ServiceUnavailableError):
        client.validate_user("u1", "tok")


def test_is_admin_reads_role():
    client, _ = _client(_response(200, {"id": "u1", "role": "admin"}), _response(200, {"id": "u2", "role": "user"}))
    assert client.is_admin("u1", "tok") is True
    assert client.is_admin("u2", "tok") is False


def test_verify_token_posts_and_returns_user():
    client, session = _client(_response(200, {"valid": True, "user": {"id": "u1", "role": "user"}}))
    result = client.verify_token("tok")
    assert result.valid is True
    assert result.user == {"id": "u1", "role": "user"}
    kwargs = session.request.call_args.kwargs
    assert kwargs["method"] == "POST"
    assert kwargs["url"] == "http://identity.test/api/auth/verify-token"


def test_verify_token_without_valid_flag_is_rejection():
    client, _ = _client(_response(200, {"valid": False}))
    with pytest.raises(AuthenticationRejectedError):
        client.verify_token("tok")


def test_get_user_profile():
    client, session = _client(_response(200, {"id": "u1"}))
    assert client.get_user_profile("tok") == {"id": "u1"}
    assert session.request.call_args.kwargs["url"] == "http://identity.test/api/auth/profile"
