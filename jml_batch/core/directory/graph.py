"""Graph-backed implementation of the ``DirectoryClient`` capabilities."""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from jml_batch.core.models import DirectoryUser, GroupRef

from .client import GraphClient
from .credentials import CredentialService
from .groups import GroupService
from .roles import RoleService
from .sessions import SessionService
from .users import UserService


class GraphDirectory:
    """Bundle the Graph services behind the processor-facing contract.

    Usage:
        client = GraphClient()
        client.authenticate_service_account(tenant_id, client_id, secret)
        directory = GraphDirectory(client)
        directory.resolve_user("alice@contoso.com")
    """

    def __init__(self, client: GraphClient):
        self.client = client
        self.users = UserService(client)
        self.groups = GroupService(client)
        self.sessions = SessionService(client)
        self.roles = RoleService(client)
        self.credentials = CredentialService(client)

    def resolve_user(self, key: str) -> Optional[DirectoryUser]:
        return self.users.get_user(key)

    def create_user(self, attributes: Dict[str, Any]) -> DirectoryUser:
        return self.users.create_user(attributes)

    def resolve_group(self, display_name: str) -> GroupRef:
        return self.groups.resolve_group(display_name)

    def is_group_member(self, group_id: str, user_id: str) -> bool:
        return self.groups.is_member(group_id, user_id)

    def list_group_memberships(self, user_id: str) -> List[GroupRef]:
        return self.groups.list_memberships(user_id)

    def add_group_member(self, group_id: str, user_id: str) -> None:
        self.groups.add_member(group_id, user_id)

    def remove_group_member(self, group_id: str, user_id: str) -> bool:
        return self.groups.remove_member(group_id, user_id)

    def disable_user(self, user_id: str) -> None:
        self.users.disable_user(user_id)

    def revoke_sessions(self, user_id: str) -> None:
        self.sessions.revoke_sessions(user_id)

    def issue_temporary_credential(self, user_id: str, lifetime_minutes: int, usable_once: bool) -> str:
        return self.credentials.issue_temporary_access_pass(user_id, lifetime_minutes, usable_once)

    def list_privileged_roles(self, user_id: str) -> set[str]:
        return self.roles.list_directory_roles(user_id)

    def granted_permissions(self) -> set[str]:
        return self.client.granted_permissions()
