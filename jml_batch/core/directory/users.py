"""Graph user management operations."""
from __future__ import annotations
import logging
import secrets
import string
from typing import Any, Dict, Optional
from urllib.parse import quote

from jml_batch.core.models import DirectoryUser

from .client import GraphClient
from .exceptions import DirectoryAPIError, UserCreationError

logger = logging.getLogger(__name__)

USER_SELECT = "id,userPrincipalName,displayName,accountEnabled"


def generate_initial_password(length: int = 16) -> str:
    """
    Generate a random initial password.

    The user never sees it: first sign-in goes through the Temporary
    Access Pass, and the profile forces a change at next sign-in.

    Args:
        length: Password length (default: 16)

    Returns:
        Random password containing uppercase, lowercase, digits, and special chars
    """
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    while True:
        password = "".join(secrets.choice(alphabet) for _ in range(length))
        if (any(c.islower() for c in password)
                and any(c.isupper() for c in password)
                and any(c.isdigit() for c in password)):
            return password


def _to_user(payload: Dict[str, Any]) -> DirectoryUser:
    return DirectoryUser(
        id=payload["id"],
        user_principal_name=payload.get("userPrincipalName", ""),
        display_name=payload.get("displayName") or "",
        enabled=payload.get("accountEnabled", True),
    )


class UserService:
    """Service for managing directory users."""

    def __init__(self, client: GraphClient):
        """Initialize user service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def get_user(self, key: str) -> Optional[DirectoryUser]:
        """Return the user whose id or user principal name matches ``key``.

        Args:
            key: Object ID or user principal name

        Returns:
            DirectoryUser or None if not found
        """
        try:
            resp = self.client.get(f"/users/{quote(key, safe='@')}", params={"$select": USER_SELECT})
        except DirectoryAPIError as e:
            if e.status_code == 404:
                return None
            raise
        return _to_user(resp.json())

    def create_user(self, attributes: Dict[str, Any]) -> DirectoryUser:
        """Create an enabled user with a random initial password.

        Args:
            attributes: Graph user attributes (userPrincipalName, displayName, ...)

        Returns:
            The created user

        Raises:
            UserCreationError: If Graph rejects the payload
        """
        payload = dict(attributes)
        payload.setdefault("accountEnabled", True)
        payload["passwordProfile"] = {
            "forceChangePasswordNextSignIn": True,
            "password": generate_initial_password(),
        }
        try:
            resp = self.client.post("/users", json=payload)
        except DirectoryAPIError as e:
            raise UserCreationError(
                f"Could not create '{attributes.get('userPrincipalName')}': {e.message}"
            ) from e
        user = _to_user(resp.json())
        logger.info("[onboard] User '%s' created (id=%s)", user.user_principal_name, user.id)
        return user

    def disable_user(self, user_id: str) -> None:
        """Block sign-in for the account.

        Args:
            user_id: User object ID
        """
        self.client.patch(f"/users/{user_id}", json={"accountEnabled": False})
        logger.info("[offboard] User %s disabled", user_id)
