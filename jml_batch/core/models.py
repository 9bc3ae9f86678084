"""Value types shared by the validator, guards, processor, and directory."""
from __future__ import annotations
import enum
from dataclasses import dataclass, field, replace
from typing import Optional, Union

UPN_COLUMN = "UserPrincipalName"


# ─────────────────────────────────────────────────────────────────────────────
# Directory entities
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DirectoryUser:
    id: str
    user_principal_name: str
    display_name: str = ""
    enabled: bool = True


@dataclass(frozen=True)
class GroupRef:
    """A group looked up by display name.

    ``found`` is False (and ``id`` None) when no group carries that name.
    """
    display_name: str
    id: Optional[str] = None
    found: bool = False

    @classmethod
    def missing(cls, display_name: str) -> "GroupRef":
        return cls(display_name=display_name, id=None, found=False)


# ─────────────────────────────────────────────────────────────────────────────
# Validated commands
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Rejected:
    reason: str


@dataclass(frozen=True)
class CreateAndGroup:
    upn: str
    display_name: str
    given_name: str = ""
    surname: str = ""
    department: str = ""
    job_title: str = ""
    usage_location: str = ""

    def to_attributes(self) -> dict:
        """Build the user attributes handed to ``DirectoryClient.create_user``."""
        attributes = {
            "userPrincipalName": self.upn,
            "displayName": self.display_name,
            "mailNickname": self.upn.split("@", 1)[0],
            "usageLocation": self.usage_location,
        }
        optional = {
            "givenName": self.given_name,
            "surname": self.surname,
            "department": self.department,
            "jobTitle": self.job_title,
        }
        attributes.update({key: value for key, value in optional.items() if value})
        return attributes


class OffboardAction(str, enum.Enum):
    DISABLE_AND_REVOKE = "DisableAndRevoke"
    DISABLE_ONLY = "DisableOnly"
    REVOKE_ONLY = "RevokeOnly"

    @property
    def disables(self) -> bool:
        return self in (OffboardAction.DISABLE_AND_REVOKE, OffboardAction.DISABLE_ONLY)

    @property
    def revokes(self) -> bool:
        return self in (OffboardAction.DISABLE_AND_REVOKE, OffboardAction.REVOKE_ONLY)


@dataclass(frozen=True)
class RemoveGroups:
    names: tuple[str, ...]


@dataclass(frozen=True)
class RemoveAllGroups:
    pass


GroupRemoval = Union[RemoveGroups, RemoveAllGroups, None]


@dataclass(frozen=True)
class OffboardCommand:
    upn: str
    action: OffboardAction = OffboardAction.DISABLE_AND_REVOKE
    remove_groups: tuple[str, ...] = field(default_factory=tuple)
    remove_all_groups: bool = False
    reason: str = ""

    @property
    def has_conflicting_group_options(self) -> bool:
        return self.remove_all_groups and bool(self.remove_groups)

    def without_remove_all(self) -> "OffboardCommand":
        return replace(self, remove_all_groups=False)

    def group_removal(self) -> GroupRemoval:
        """Named groups take precedence over the all-groups flag."""
        if self.remove_groups:
            return RemoveGroups(self.remove_groups)
        if self.remove_all_groups:
            return RemoveAllGroups()
        return None


ValidatedCommand = Union[Rejected, CreateAndGroup, OffboardCommand]
