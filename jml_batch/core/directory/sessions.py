"""Graph session management operations."""
from __future__ import annotations
import logging

from .client import GraphClient

logger = logging.getLogger(__name__)


class SessionService:
    """Service for revoking user sign-in sessions."""

    def __init__(self, client: GraphClient):
        """Initialize session service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def revoke_sessions(self, user_id: str) -> None:
        """Invalidate refresh tokens and session cookies for a user.

        Args:
            user_id: User object ID
        """
        self.client.post(f"/users/{user_id}/revokeSignInSessions")
        logger.info("[sessions] Revoked sign-in sessions for %s", user_id)
