"""Tests for the Graph HTTP client (token handling, errors, paging)."""
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import jwt
import pytest

from jml_batch.core.directory import DirectoryAPIError, GraphClient
from jml_batch.core.directory.client import REQUEST_TIMEOUT

TOKEN_KEY = "unit-test-key-that-is-long-enough-for-hs256"


def make_token(roles):
    return jwt.encode({"roles": roles, "appid": "app-1"}, TOKEN_KEY, algorithm="HS256")


def make_response(status_code=200, payload=None, text="", url="https://graph.example/v1.0/x"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.url = url
    resp.text = text
    if payload is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def client():
    """Client with a token already in place."""
    c = GraphClient("https://graph.example/v1.0/", "https://login.example")
    c._token = make_token(["User.ReadWrite.All"])
    c._token_expires_at = datetime.now() + timedelta(hours=1)
    return c


class TestAuthentication:
    @patch("jml_batch.core.directory.client.requests.post")
    def test_client_credentials_request(self, mock_post):
        mock_post.return_value = make_response(payload={"access_token": "tok", "expires_in": 3599})

        c = GraphClient(authority_url="https://login.example")
        assert c.authenticate_service_account("tenant-1", "app-1", "s3cret") == "tok"

        url = mock_post.call_args.args[0]
        data = mock_post.call_args.kwargs["data"]
        assert url == "https://login.example/tenant-1/oauth2/v2.0/token"
        assert data["grant_type"] == "client_credentials"
        assert data["scope"] == "https://graph.microsoft.com/.default"
        assert mock_post.call_args.kwargs["timeout"] == REQUEST_TIMEOUT

    @patch("jml_batch.core.directory.client.requests.post")
    def test_token_failure_raises(self, mock_post):
        mock_post.return_value = make_response(401, text="invalid_client")
        with pytest.raises(DirectoryAPIError) as excinfo:
            GraphClient().authenticate_service_account("t", "c", "bad")
        assert excinfo.value.status_code == 401

    def test_request_without_token_is_rejected(self):
        with pytest.raises(DirectoryAPIError, match="Not authenticated"):
            GraphClient().get("/users")

    @patch("jml_batch.core.directory.client.requests.get")
    @patch("jml_batch.core.directory.client.requests.post")
    def test_token_refreshed_before_expiry(self, mock_post, mock_get):
        mock_post.return_value = make_response(payload={"access_token": "fresh", "expires_in": 3600})
        mock_get.return_value = make_response(payload={"value": []})

        c = GraphClient()
        c._auth_params = {"tenant_id": "t", "client_id": "c", "client_secret": "s"}
        c._token = "stale"
        c._token_expires_at = datetime.now() + timedelta(seconds=30)

        c.get("/users")
        assert mock_post.call_count == 1
        assert mock_get.call_args.kwargs["headers"]["Authorization"] == "Bearer fresh"


class TestRequests:
    @patch("jml_batch.core.directory.client.requests.get")
    def test_relative_path_joined_to_base_url(self, mock_get, client):
        mock_get.return_value = make_response(payload={})
        client.get("/users/alice@x.com", params={"$select": "id"})

        assert mock_get.call_args.args[0] == "https://graph.example/v1.0/users/alice@x.com"
        assert mock_get.call_args.kwargs["params"] == {"$select": "id"}
        assert mock_get.call_args.kwargs["headers"]["Authorization"].startswith("Bearer ")

    @patch("jml_batch.core.directory.client.requests.patch")
    def test_graph_error_message_extracted(self, mock_patch, client):
        mock_patch.return_value = make_response(
            403, payload={"error": {"code": "Authorization_RequestDenied", "message": "Insufficient privileges"}}
        )
        with pytest.raises(DirectoryAPIError) as excinfo:
            client.patch("/users/1", json={"accountEnabled": False})
        assert excinfo.value.status_code == 403
        assert excinfo.value.message == "Insufficient privileges"

    @patch("jml_batch.core.directory.client.requests.delete")
    def test_non_json_error_body(self, mock_delete, client):
        mock_delete.return_value = make_response(502, text="Bad Gateway")
        with pytest.raises(DirectoryAPIError, match="Bad Gateway"):
            client.delete("/groups/g/members/u/$ref")

    @patch("jml_batch.core.directory.client.requests.get")
    def test_get_paged_follows_next_link(self, mock_get, client):
        next_link = "https://graph.example/v1.0/users/u/memberOf?$skiptoken=abc"
        mock_get.side_effect = [
            make_response(payload={"value": [{"id": "1"}], "@odata.nextLink": next_link}),
            make_response(payload={"value": [{"id": "2"}]}),
        ]

        items = client.get_paged("/users/u/memberOf", params={"$select": "id"})

        assert [item["id"] for item in items] == ["1", "2"]
        second_call = mock_get.call_args_list[1]
        assert second_call.args[0] == next_link
        assert second_call.kwargs["params"] is None


def test_granted_permissions_reads_roles_claim(client):
    client._token = make_token(["User.ReadWrite.All", "GroupMember.ReadWrite.All"])
    assert client.granted_permissions() == {"User.ReadWrite.All", "GroupMember.ReadWrite.All"}


def test_granted_permissions_without_roles(client):
    client._token = jwt.encode({"sub": "app"}, TOKEN_KEY, algorithm="HS256")
    assert client.granted_permissions() == set()


@patch("jml_batch.core.directory.client.requests.get")
def test_html_error_body_collapsed_to_one_line(mock_get, client):
    mock_get.return_value = make_response(502, text="<html>\n  <body>502 Bad Gateway</body>\n</html>\n")
    with pytest.raises(DirectoryAPIError) as excinfo:
        client.get("/users/alice@x.com")
    assert excinfo.value.message == "<html> <body>502 Bad Gateway</body> </html>"
