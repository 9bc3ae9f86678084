from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from jml_batch.core.models import DirectoryUser, GroupRef


class DirectoryClient(Protocol):
    """Capabilities the lifecycle processor needs from a directory backend.

    Expected conditions come back as values (``None``, ``GroupRef.found``,
    ``False``); faults raise ``DirectoryError`` subclasses.
    """

    def resolve_user(self, key: str) -> Optional[DirectoryUser]:
        ...

    def create_user(self, attributes: Dict[str, Any]) -> DirectoryUser:
        ...

    def resolve_group(self, display_name: str) -> GroupRef:
        ...

    def is_group_member(self, group_id: str, user_id: str) -> bool:
        ...

    def list_group_memberships(self, user_id: str) -> List[GroupRef]:
        ...

    def add_group_member(self, group_id: str, user_id: str) -> None:
        ...

    def remove_group_member(self, group_id: str, user_id: str) -> bool:
        ...

    def disable_user(self, user_id: str) -> None:
        ...

    def revoke_sessions(self, user_id: str) -> None:
        ...

    def issue_temporary_credential(self, user_id: str, lifetime_minutes: int, usable_once: bool) -> str:
        ...

    def list_privileged_roles(self, user_id: str) -> set[str]:
        ...

    def granted_permissions(self) -> set[str]:
        ...
