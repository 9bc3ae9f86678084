"""Run-level checks that must pass before any CSV row is processed."""
from __future__ import annotations
import logging

from jml_batch.core.directory.base import DirectoryClient

logger = logging.getLogger(__name__)

BASE_PERMISSIONS = ("User.ReadWrite.All", "Group.Read.All", "GroupMember.ReadWrite.All")
TAP_PERMISSION = "UserAuthenticationMethod.ReadWrite.All"
ROLE_READ_PERMISSION = "RoleManagement.Read.Directory"


class PreconditionError(Exception):
    """Fatal condition detected before processing; no row is touched."""
    pass


class InputFileError(PreconditionError):
    """CSV file missing, unreadable, or without the required header."""
    pass


class MissingPermissionsError(PreconditionError):
    """The directory session lacks required application permissions.

    Attributes:
        missing: Sorted permission names that were not granted
    """

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required permissions: {', '.join(missing)}")


class GroupResolutionError(PreconditionError):
    """A target group named on the command line does not exist."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Target group(s) not found: {', '.join(names)}")


def onboarding_permissions(issue_tap: bool = True) -> set[str]:
    required = set(BASE_PERMISSIONS)
    if issue_tap:
        required.add(TAP_PERMISSION)
    return required


def offboarding_permissions(protect_admins: bool = True) -> set[str]:
    required = set(BASE_PERMISSIONS)
    if protect_admins:
        required.add(ROLE_READ_PERMISSION)
    return required


def check_permissions(directory: DirectoryClient, required: set[str]) -> None:
    """Fail fast when the session does not hold every required permission.

    Raises:
        MissingPermissionsError: If any permission is absent
    """
    granted = directory.granted_permissions()
    missing = sorted(required - granted)
    if missing:
        raise MissingPermissionsError(missing)
    logger.info("Permission check passed (%s)", ", ".join(sorted(required)))
