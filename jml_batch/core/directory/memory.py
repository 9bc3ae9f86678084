"""In-memory directory used by demo mode and the test suite.

Implements the same contract as ``GraphDirectory`` without any network
access. Every call is recorded in ``calls`` so callers can assert which
operations ran, and ``fail_on`` injects a failure for a named operation.
"""
from __future__ import annotations
import secrets
import uuid
from typing import Any, Dict, Iterable, List, Optional

from jml_batch.core.models import DirectoryUser, GroupRef

from .credentials import MAX_TAP_LIFETIME_MINUTES, MIN_TAP_LIFETIME_MINUTES
from .exceptions import CredentialIssuanceError, MembershipError, UserCreationError

MUTATING_OPERATIONS = frozenset({
    "create_user",
    "add_group_member",
    "remove_group_member",
    "disable_user",
    "revoke_sessions",
    "issue_temporary_credential",
})

ALL_PERMISSIONS = frozenset({
    "User.ReadWrite.All",
    "Group.Read.All",
    "GroupMember.ReadWrite.All",
    "UserAuthenticationMethod.ReadWrite.All",
    "RoleManagement.Read.Directory",
})


class InMemoryDirectory:
    """Directory state held in dictionaries."""

    def __init__(self, permissions: Optional[Iterable[str]] = None):
        self._users: Dict[str, DirectoryUser] = {}
        self._groups: Dict[str, str] = {}
        self._group_display: Dict[str, str] = {}
        self._members: set[tuple[str, str]] = set()
        self._roles: Dict[str, set[str]] = {}
        self._revoked: set[str] = set()
        self.permissions = set(ALL_PERMISSIONS if permissions is None else permissions)
        self.calls: List[tuple[str, tuple]] = []
        self.fail_on: Dict[str, Exception] = {}
        self.issued_credentials: Dict[str, str] = {}

    # ── seeding ──────────────────────────────────────────────────────────────
    def add_user(self, upn: str, display_name: str = "", enabled: bool = True,
                 roles: Iterable[str] = ()) -> DirectoryUser:
        user = DirectoryUser(id=str(uuid.uuid4()), user_principal_name=upn,
                             display_name=display_name or upn, enabled=enabled)
        self._users[upn.lower()] = user
        if roles:
            self._roles[user.id] = set(roles)
        return user

    def add_group(self, display_name: str) -> str:
        group_id = self._groups.get(display_name.lower())
        if group_id is None:
            group_id = str(uuid.uuid4())
            self._groups[display_name.lower()] = group_id
            self._group_display[group_id] = display_name
        return group_id

    def add_member(self, group_name: str, upn: str) -> None:
        self._members.add((self.add_group(group_name), self._users[upn.lower()].id))

    # ── inspection ───────────────────────────────────────────────────────────
    def user(self, upn: str) -> Optional[DirectoryUser]:
        return self._users.get(upn.lower())

    def group_names_of(self, upn: str) -> set[str]:
        user = self._users[upn.lower()]
        return {self._group_display[gid] for gid, uid in self._members if uid == user.id}

    def sessions_revoked(self, upn: str) -> bool:
        return self._users[upn.lower()].id in self._revoked

    def mutating_calls(self) -> List[tuple[str, tuple]]:
        return [call for call in self.calls if call[0] in MUTATING_OPERATIONS]

    def operations(self) -> List[str]:
        return [name for name, _ in self.calls]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        failure = self.fail_on.get(name)
        if failure is not None:
            raise failure

    def _user_by_id(self, user_id: str) -> DirectoryUser:
        for user in self._users.values():
            if user.id == user_id:
                return user
        raise KeyError(user_id)

    def _group_name(self, group_id: str) -> str:
        return self._group_display[group_id]

    # ── DirectoryClient contract ─────────────────────────────────────────────
    def resolve_user(self, key: str) -> Optional[DirectoryUser]:
        self._record("resolve_user", key)
        return self._users.get(key.lower())

    def create_user(self, attributes: Dict[str, Any]) -> DirectoryUser:
        self._record("create_user", attributes.get("userPrincipalName"))
        upn = attributes.get("userPrincipalName") or ""
        if upn.lower() in self._users:
            raise UserCreationError(f"Another object with the same value for property userPrincipalName already exists: {upn}")
        if not attributes.get("displayName"):
            raise UserCreationError("Property displayName is required")
        return self.add_user(upn, display_name=attributes["displayName"])

    def resolve_group(self, display_name: str) -> GroupRef:
        self._record("resolve_group", display_name)
        group_id = self._groups.get(display_name.lower())
        if group_id is None:
            return GroupRef.missing(display_name)
        return GroupRef(display_name=self._group_display[group_id], id=group_id, found=True)

    def is_group_member(self, group_id: str, user_id: str) -> bool:
        self._record("is_group_member", group_id, user_id)
        return (group_id, user_id) in self._members

    def list_group_memberships(self, user_id: str) -> List[GroupRef]:
        self._record("list_group_memberships", user_id)
        return sorted(
            (GroupRef(display_name=self._group_name(gid), id=gid, found=True)
             for gid, uid in self._members if uid == user_id),
            key=lambda ref: ref.display_name,
        )

    def add_group_member(self, group_id: str, user_id: str) -> None:
        self._record("add_group_member", group_id, user_id)
        if group_id not in self._groups.values():
            raise MembershipError(f"Group {group_id} does not exist")
        self._members.add((group_id, user_id))

    def remove_group_member(self, group_id: str, user_id: str) -> bool:
        self._record("remove_group_member", group_id, user_id)
        if (group_id, user_id) not in self._members:
            return False
        self._members.discard((group_id, user_id))
        return True

    def disable_user(self, user_id: str) -> None:
        self._record("disable_user", user_id)
        user = self._user_by_id(user_id)
        self._users[user.user_principal_name.lower()] = DirectoryUser(
            id=user.id, user_principal_name=user.user_principal_name,
            display_name=user.display_name, enabled=False,
        )

    def revoke_sessions(self, user_id: str) -> None:
        self._record("revoke_sessions", user_id)
        self._revoked.add(user_id)

    def issue_temporary_credential(self, user_id: str, lifetime_minutes: int, usable_once: bool) -> str:
        self._record("issue_temporary_credential", user_id, lifetime_minutes, usable_once)
        if not MIN_TAP_LIFETIME_MINUTES <= lifetime_minutes <= MAX_TAP_LIFETIME_MINUTES:
            raise CredentialIssuanceError(f"Invalid TAP lifetime {lifetime_minutes}")
        value = secrets.token_urlsafe(12)
        self.issued_credentials[user_id] = value
        return value

    def list_privileged_roles(self, user_id: str) -> set[str]:
        self._record("list_privileged_roles", user_id)
        return set(self._roles.get(user_id, set()))

    def granted_permissions(self) -> set[str]:
        self._record("granted_permissions")
        return set(self.permissions)


def build_demo_directory() -> InMemoryDirectory:
    """Directory seeded with a few sample groups and accounts for DEMO_MODE runs."""
    directory = InMemoryDirectory()
    for group in ("All Staff", "VPN Users", "Sales", "Engineering"):
        directory.add_group(group)
    directory.add_user("alex.admin@contoso.example", "Alex Admin", roles=["Global Administrator"])
    directory.add_user("sam.leaver@contoso.example", "Sam Leaver")
    directory.add_member("All Staff", "sam.leaver@contoso.example")
    directory.add_member("Sales", "sam.leaver@contoso.example")
    directory.add_user("existing.user@contoso.example", "Existing User")
    directory.add_member("All Staff", "existing.user@contoso.example")
    return directory
