"""Low-level HTTP client for the Microsoft Graph API.

Handles authentication, token management, and HTTP operations.
"""
from __future__ import annotations
from typing import Optional, Dict, Any, List
from datetime import datetime, timedelta

import jwt
import requests

from .exceptions import DirectoryAPIError

REQUEST_TIMEOUT = 10
DEFAULT_GRAPH_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_AUTHORITY_URL = "https://login.microsoftonline.com"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class GraphClient:
    """HTTP client for Graph with automatic token management.

    Features:
    - Client credentials flow with refresh ahead of expiry
    - Centralized error handling
    - Transparent paging over @odata.nextLink

    Usage:
        client = GraphClient()
        client.authenticate_service_account(tenant_id, client_id, secret)
        response = client.get("/users/alice@contoso.com")
    """

    def __init__(self, base_url: Optional[str] = None, authority_url: Optional[str] = None):
        """Initialize Graph client.

        Args:
            base_url: Graph API root (defaults to the public v1.0 endpoint)
            authority_url: Token authority root
        """
        self.base_url = (base_url or DEFAULT_GRAPH_URL).rstrip("/")
        self.authority_url = (authority_url or DEFAULT_AUTHORITY_URL).rstrip("/")
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_params: Dict[str, Any] = {}

    def authenticate_service_account(self, tenant_id: str, client_id: str, client_secret: str) -> str:
        """Authenticate as an app registration and store credentials for auto-refresh.

        Args:
            tenant_id: Directory (tenant) ID
            client_id: Application (client) ID
            client_secret: Client secret value

        Returns:
            Access token
        """
        self._auth_params = {
            "tenant_id": tenant_id,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        self._refresh_token()
        return self._token

    def _refresh_token(self) -> None:
        token, expires_in = self._get_service_account_token(
            self._auth_params["tenant_id"],
            self._auth_params["client_id"],
            self._auth_params["client_secret"],
        )
        self._token = token
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)

    def _ensure_authenticated(self) -> None:
        """Ensure we have a valid token, refreshing if necessary."""
        if not self._token or not self._token_expires_at:
            raise DirectoryAPIError(401, "Not authenticated - call authenticate_service_account first", "")

        # Refresh if token expired or expiring within a minute
        if datetime.now() >= self._token_expires_at - timedelta(seconds=60) and self._auth_params:
            self._refresh_token()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        self._ensure_authenticated()
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self._token}"

        resp = getattr(requests, method)(url, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request with automatic authentication.

        Raises:
            DirectoryAPIError: On HTTP error
        """
        return self._request("get", path, params=params, **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute POST request with automatic authentication.

        Raises:
            DirectoryAPIError: On HTTP error
        """
        return self._request("post", path, json=json, **kwargs)

    def patch(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute PATCH request with automatic authentication.

        Raises:
            DirectoryAPIError: On HTTP error
        """
        return self._request("patch", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        """Execute DELETE request with automatic authentication.

        Raises:
            DirectoryAPIError: On HTTP error
        """
        return self._request("delete", path, **kwargs)

    def get_paged(self, path: str, params: Optional[Dict] = None) -> List[Dict[str, Any]]:
        """Collect every item of a collection, following @odata.nextLink.

        Args:
            path: Collection path (e.g., "/users/{id}/memberOf")
            params: Query parameters for the first page only

        Returns:
            All items across pages
        """
        items: List[Dict[str, Any]] = []
        next_url: Optional[str] = path
        while next_url:
            resp = self.get(next_url, params=params)
            data = resp.json() or {}
            items.extend(data.get("value", []))
            next_url = data.get("@odata.nextLink")
            # nextLink already embeds the query
            params = None
        return items

    def granted_permissions(self) -> set[str]:
        """Return the application permissions carried by the current token.

        The token comes straight from the authority, so only its claims are
        read; signature verification is left to Graph.
        """
        self._ensure_authenticated()
        claims = jwt.decode(self._token, options={"verify_signature": False})
        return set(claims.get("roles") or [])

    def _get_service_account_token(self, tenant_id: str, client_id: str, client_secret: str) -> tuple[str, int]:
        """Fetch an app-only token using client credentials flow."""
        url = f"{self.authority_url}/{tenant_id}/oauth2/v2.0/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
            "scope": GRAPH_SCOPE,
        }
        resp = requests.post(url, data=data, timeout=REQUEST_TIMEOUT)
        if resp.status_code != 200:
            raise DirectoryAPIError(resp.status_code, resp.text, url)
        payload = resp.json()
        return payload["access_token"], int(payload.get("expires_in", 3600))

    def _handle_error(self, resp: requests.Response) -> None:
        """Centralized error handling for HTTP responses.

        Raises:
            DirectoryAPIError: If response status indicates error
        """
        if resp.status_code >= 400:
            raise DirectoryAPIError(resp.status_code, _error_message(resp), resp.url)


def _error_message(resp: requests.Response) -> str:
    """Extract the Graph error message, falling back to the raw body on one line."""
    try:
        body = resp.json()
    except ValueError:
        return " ".join(resp.text.split())
    if isinstance(body, dict):
        error = body.get("error") or {}
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
    return " ".join(resp.text.split())
