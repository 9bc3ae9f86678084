"""Graph directory role lookups."""
from __future__ import annotations

from .client import GraphClient


class RoleService:
    """Service for reading directory role assignments."""

    def __init__(self, client: GraphClient):
        """Initialize role service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def list_directory_roles(self, user_id: str) -> set[str]:
        """Return display names of the directory roles the user holds.

        Every activated directory role is administrative, so any entry
        marks the account as privileged.

        Args:
            user_id: User object ID

        Returns:
            Set of role display names (empty for regular users)
        """
        items = self.client.get_paged(
            f"/users/{user_id}/memberOf/microsoft.graph.directoryRole",
            params={"$select": "id,displayName,roleTemplateId"},
        )
        return {item.get("displayName") or item.get("roleTemplateId") or item["id"] for item in items}
