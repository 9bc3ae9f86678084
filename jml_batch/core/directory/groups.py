"""Graph group management operations."""
from __future__ import annotations
import logging
from typing import List

from jml_batch.core.models import GroupRef

from .client import GraphClient
from .exceptions import DirectoryAPIError, MembershipError

logger = logging.getLogger(__name__)


def _odata_literal(value: str) -> str:
    """Quote a string for an OData $filter expression."""
    return "'" + value.replace("'", "''") + "'"


class GroupService:
    """Service for managing directory groups and memberships."""

    def __init__(self, client: GraphClient):
        """Initialize group service.

        Args:
            client: Authenticated Graph client
        """
        self.client = client

    def resolve_group(self, display_name: str) -> GroupRef:
        """Look up a group by exact display name.

        Args:
            display_name: Group display name

        Returns:
            GroupRef; ``found`` is False when no group matches
        """
        resp = self.client.get(
            "/groups",
            params={
                "$filter": f"displayName eq {_odata_literal(display_name)}",
                "$select": "id,displayName",
            },
        )
        groups = (resp.json() or {}).get("value", [])
        if not groups:
            return GroupRef.missing(display_name)
        if len(groups) > 1:
            logger.warning("Multiple groups named '%s'; using id=%s", display_name, groups[0]["id"])
        return GroupRef(display_name=groups[0].get("displayName", display_name), id=groups[0]["id"], found=True)

    def is_member(self, group_id: str, user_id: str) -> bool:
        """Return True when the user is a direct member of the group."""
        try:
            self.client.get(f"/groups/{group_id}/members/{user_id}/$ref")
        except DirectoryAPIError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    def list_memberships(self, user_id: str) -> List[GroupRef]:
        """Retrieve every group the user is a direct member of.

        Args:
            user_id: User object ID

        Returns:
            GroupRefs for the user's groups (directory roles excluded)
        """
        items = self.client.get_paged(
            f"/users/{user_id}/memberOf/microsoft.graph.group",
            params={"$select": "id,displayName,groupTypes"},
        )
        memberships = []
        for group in items:
            if "DynamicMembership" in (group.get("groupTypes") or []):
                # Membership is rule-driven; removal would be undone
                logger.info("Skipping dynamic group '%s'", group.get("displayName"))
                continue
            memberships.append(GroupRef(display_name=group.get("displayName", ""), id=group["id"], found=True))
        return memberships

    def add_member(self, group_id: str, user_id: str) -> None:
        """Add a user to a group.

        Raises:
            MembershipError: If Graph rejects the addition
        """
        body = {"@odata.id": f"{self.client.base_url}/directoryObjects/{user_id}"}
        try:
            self.client.post(f"/groups/{group_id}/members/$ref", json=body)
        except DirectoryAPIError as e:
            if e.status_code == 400 and "already exist" in e.message:
                return
            raise MembershipError(f"Could not add {user_id} to group {group_id}: {e.message}") from e

    def remove_member(self, group_id: str, user_id: str) -> bool:
        """Remove a user from a group (idempotent).

        Returns:
            True if removed, False if not a member
        """
        try:
            self.client.delete(f"/groups/{group_id}/members/{user_id}/$ref")
        except DirectoryAPIError as e:
            if e.status_code == 404:
                return False
            raise
        return True
