"""Unit tests for RobinhoodClient.

These tests verify the REST transport including:
- Header and authentication handling
- Response decoding and transport errors
- Pagination
- Cancellation before requests
"""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from robinstock.client import RobinhoodClient, raise_for_status
from robinstock.errors import (
    AuthenticationError,
    NotAuthenticatedError,
    OperationCancelledError,
    RobinstockError,
    TransportError,
)
from robinstock.models import Credential, Response, Session
from robinstock.polling import CancelToken

BASE_URL = "https://api.robinhood.com"


def mock_http_response(data=None, status_code=200, raw=None):
    """Build a stand-in for requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    if raw is not None:
        response.content = raw
    elif data is not None:
        response.content = json.dumps(data).encode()
    else:
        response.content = b""
    response.json.side_effect = lambda: json.loads(response.content)
    return response


def authenticated_session() -> Session:
    return Session(
        username="alice",
        credential=Credential(
            access_token="access-abc",
            token_type="Bearer",
            expires_in=86400,
            issued_at=datetime.now(timezone.utc),
        ),
    )


@pytest.fixture
def client():
    return RobinhoodClient(base_url=BASE_URL, timeout=10)


class TestClientInitialization:
    """Tests for RobinhoodClient initialization."""

    def test_init_strips_trailing_slash(self):
        client = RobinhoodClient(base_url="https://api.example.com/")
        assert client.base_url == "https://api.example.com"

    def test_default_headers(self, client):
        headers = client.session.headers
        assert headers["Accept"] == "*/*"
        assert headers["X-Robinhood-API-Version"] == "1.431.4"
        assert headers["User-Agent"].startswith("robinstock/")
        assert "Authorization" not in headers

    def test_custom_user_agent(self):
        client = RobinhoodClient(base_url=BASE_URL, user_agent="my-bot/2.0")
        assert client.session.headers["User-Agent"] == "my-bot/2.0"

    def test_context_manager_closes(self):
        client = RobinhoodClient(base_url=BASE_URL)
        with patch.object(client.session, "close") as mock_close:
            with client:
                pass
        mock_close.assert_called_once()


class TestRequests:
    """Tests for get/post."""

    def test_get_decodes_json(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response({"id": "abc"})

            response = client.get(f"{BASE_URL}/accounts/")

            assert response.status_code == 200
            assert response.data == {"id": "abc"}
            args, kwargs = mock_request.call_args
            assert args == ("GET", f"{BASE_URL}/accounts/")
            assert kwargs["timeout"] == 10
            assert "Authorization" not in kwargs["headers"]

    def test_post_sends_json(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response({"ok": True})

            client.post(f"{BASE_URL}/oauth2/token/", {"grant_type": "password"})

            kwargs = mock_request.call_args[1]
            assert kwargs["json"] == {"grant_type": "password"}

    def test_error_status_is_returned(self, client):
        """4xx bodies are returned for the caller to inspect."""
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response(
                {"verification_workflow": {"id": "wf-1"}}, status_code=403
            )

            response = client.post(f"{BASE_URL}/oauth2/token/", {})

            assert response.status_code == 403
            assert response.ok is False
            assert response.data["verification_workflow"]["id"] == "wf-1"

    def test_empty_body(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response(status_code=204)

            response = client.get(f"{BASE_URL}/push/c/get_prompts_status/")

            assert response.is_empty
            assert response.data == {}

    def test_results_extracted(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response(
                {"results": [{"symbol": "AAPL"}, None, {"symbol": "MSFT"}], "next": None}
            )

            response = client.get(f"{BASE_URL}/quotes/")

            assert response.results == [{"symbol": "AAPL"}, {"symbol": "MSFT"}]

    def test_network_error_wrapped(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.side_effect = requests.ConnectionError("connection refused")

            with pytest.raises(TransportError, match="connection refused") as exc_info:
                client.get(f"{BASE_URL}/accounts/")

            assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    def test_invalid_json_wrapped(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response(raw=b"<html>oops</html>", status_code=502)

            with pytest.raises(TransportError) as exc_info:
                client.get(f"{BASE_URL}/accounts/")

            assert exc_info.value.status_code == 502

    def test_non_object_body(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response([1, 2, 3])

            with pytest.raises(TransportError, match="non-object"):
                client.get(f"{BASE_URL}/accounts/")


class TestAuthentication:
    """Tests for authenticated calls."""

    def test_authenticated_adds_header(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response({})

            client.get(f"{BASE_URL}/user/", session=authenticated_session(), authenticated=True)

            headers = mock_request.call_args[1]["headers"]
            assert headers["Authorization"] == "Bearer access-abc"

    def test_authenticated_without_session(self, client):
        with patch.object(client.session, "request") as mock_request:
            with pytest.raises(NotAuthenticatedError):
                client.get(f"{BASE_URL}/user/", authenticated=True)
            mock_request.assert_not_called()

    def test_authenticated_with_empty_session(self, client):
        with pytest.raises(NotAuthenticatedError):
            client.get(f"{BASE_URL}/user/", session=Session(), authenticated=True)

    def test_sessions_do_not_leak(self, client):
        """The client keeps no credential between calls."""
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response({})

            client.get(f"{BASE_URL}/user/", session=authenticated_session(), authenticated=True)
            client.get(f"{BASE_URL}/markets/")

            second_headers = mock_request.call_args_list[1][1]["headers"]
            assert "Authorization" not in second_headers
            assert "Authorization" not in client.session.headers


class TestCancellation:
    """Tests for cancel tokens on requests."""

    def test_cancelled_token_blocks_request(self, client):
        token = CancelToken()
        token.cancel()

        with patch.object(client.session, "request") as mock_request:
            with pytest.raises(OperationCancelledError):
                client.get(f"{BASE_URL}/accounts/", cancel=token)
            mock_request.assert_not_called()

    def test_deadline_caps_timeout(self, client):
        token = CancelToken(timeout=2)

        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response({})

            client.get(f"{BASE_URL}/accounts/", cancel=token)

            assert mock_request.call_args[1]["timeout"] <= 2


class TestPagination:
    """Tests for fetch_all_pages()."""

    def test_follows_next_links(self, client):
        page_two = f"{BASE_URL}/positions/?cursor=2"
        with patch.object(client.session, "request") as mock_request:
            mock_request.side_effect = [
                mock_http_response({"results": [{"id": 1}], "next": page_two}),
                mock_http_response({"results": [{"id": 2}], "next": None}),
            ]

            results = client.fetch_all_pages(
                f"{BASE_URL}/positions/", {"nonzero": "true"},
                session=authenticated_session(), authenticated=True,
            )

            assert results == [{"id": 1}, {"id": 2}]
            first, second = mock_request.call_args_list
            assert first[1]["params"] == {"nonzero": "true"}
            assert second[0][1] == page_two
            assert second[1]["params"] is None

    def test_error_page_raises(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response({"detail": "Not found."}, status_code=404)

            with pytest.raises(RobinstockError, match="Not found"):
                client.fetch_all_pages(f"{BASE_URL}/positions/")


class TestResourceLookups:
    """Tests for the account and market helpers."""

    def test_load_positions(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response(
                {"results": [{"quantity": "3.0"}], "next": None}
            )

            positions = client.load_positions(authenticated_session())

            assert positions == [{"quantity": "3.0"}]
            args, kwargs = mock_request.call_args
            assert args[1] == f"{BASE_URL}/positions/"
            assert kwargs["params"] == {"nonzero": "true"}

    def test_get_quotes_normalizes_symbols(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response({"results": [{"symbol": "AAPL"}]})

            quotes = client.get_quotes(authenticated_session(), [" aapl", "msft ", ""])

            assert quotes == [{"symbol": "AAPL"}]
            assert mock_request.call_args[1]["params"] == {"symbols": "AAPL,MSFT"}

    def test_get_quotes_empty(self, client):
        with patch.object(client.session, "request") as mock_request:
            assert client.get_quotes(authenticated_session(), []) == []
            mock_request.assert_not_called()

    def test_load_user_profile(self, client):
        with patch.object(client.session, "request") as mock_request:
            mock_request.return_value = mock_http_response({"username": "alice"})

            assert client.load_user_profile(authenticated_session()) == {"username": "alice"}

    def test_lookup_requires_login(self, client):
        with pytest.raises(NotAuthenticatedError):
            client.load_accounts(Session())


class TestRaiseForStatus:
    """Tests for raise_for_status()."""

    def test_ok_passes(self):
        raise_for_status(Response(status_code=200))

    def test_unauthorized(self):
        with pytest.raises(AuthenticationError) as exc_info:
            raise_for_status(Response(status_code=401, data={"detail": "Invalid token."}))
        assert exc_info.value.status_code == 401

    def test_other_error(self):
        with pytest.raises(RobinstockError, match="500"):
            raise_for_status(Response(status_code=500))
