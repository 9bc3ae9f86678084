"""Temporary Access Pass issuance."""
from __future__ import annotations

from .client import GraphClient
from .exceptions import CredentialIssuanceError, DirectoryAPIError

MIN_TAP_LIFETIME_MINUTES = 10
MAX_TAP_LIFETIME_MINUTES = 43200


class CredentialService:
    """Service for issuing first-use credentials."""

    def __init__(self, client: GraphClient):
        """Initialize credential service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def issue_temporary_access_pass(self, user_id: str, lifetime_minutes: int = 60, usable_once: bool = False) -> str:
        """Create a Temporary Access Pass and return its value.

        The value is only available in this response. Callers must not log
        or persist it.

        Args:
            user_id: User object ID
            lifetime_minutes: Validity window (10 to 43200 minutes)
            usable_once: Whether the pass is consumed by the first sign-in

        Returns:
            The pass value

        Raises:
            CredentialIssuanceError: If Graph refuses or omits the pass
        """
        if not MIN_TAP_LIFETIME_MINUTES <= lifetime_minutes <= MAX_TAP_LIFETIME_MINUTES:
            raise CredentialIssuanceError(
                f"TAP lifetime must be between {MIN_TAP_LIFETIME_MINUTES} and "
                f"{MAX_TAP_LIFETIME_MINUTES} minutes (got {lifetime_minutes})"
            )
        try:
            resp = self.client.post(
                f"/users/{user_id}/authentication/temporaryAccessPassMethods",
                json={"lifetimeInMinutes": lifetime_minutes, "isUsableOnce": usable_once},
            )
        except DirectoryAPIError as e:
            raise CredentialIssuanceError(f"Temporary Access Pass refused: {e.message}") from e
        value = (resp.json() or {}).get("temporaryAccessPass")
        if not value:
            raise CredentialIssuanceError("Temporary Access Pass missing from response")
        return value
