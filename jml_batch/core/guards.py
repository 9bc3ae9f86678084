"""Guard policy deciding whether a validated command may touch the directory.

Guards read live directory state on every row instead of keeping local
bookkeeping, so re-running a CSV after a partial run re-skips the rows that
were already handled.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Union

from jml_batch.core.directory.base import DirectoryClient
from jml_batch.core.models import CreateAndGroup, DirectoryUser, OffboardCommand

logger = logging.getLogger(__name__)

ALREADY_EXISTS = "User already exists"
ROLE_CHECK_FAILED = "Could not verify privileged roles - manual review required"
CONFLICTING_GROUP_OPTIONS = "RemoveAllGroups ignored because RemoveGroups is set"


@dataclass(frozen=True)
class Allow:
    command: Union[CreateAndGroup, OffboardCommand]
    warnings: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Deny:
    reason: str


Decision = Union[Allow, Deny]


def privileged_reason(roles: set[str]) -> str:
    return f"Privileged account ({', '.join(sorted(roles))}) - manual review required"


def authorize_onboarding(command: CreateAndGroup, directory: DirectoryClient) -> Decision:
    """Deny creation when the principal name is already taken."""
    if directory.resolve_user(command.upn) is not None:
        return Deny(ALREADY_EXISTS)
    return Allow(command)


def resolve_group_options(command: OffboardCommand) -> tuple[OffboardCommand, tuple[str, ...]]:
    """Apply the named-groups-win rule.

    Returns:
        The command to execute and any warnings raised while resolving it
    """
    if not command.has_conflicting_group_options:
        return command, ()
    logger.warning("[offboard] %s: both RemoveAllGroups and RemoveGroups given; removing named groups only", command.upn)
    return command.without_remove_all(), (CONFLICTING_GROUP_OPTIONS,)


def authorize_offboarding(
    command: OffboardCommand,
    user: DirectoryUser,
    directory: DirectoryClient,
    *,
    protect_admins: bool = True,
    fail_open: bool = False,
) -> Decision:
    """Refuse to offboard privileged accounts, then settle group options.

    Args:
        command: Validated offboarding command
        user: The resolved target account
        directory: Directory to read role assignments from
        protect_admins: Deny accounts holding any directory role
        fail_open: When the role lookup itself fails, allow instead of deny

    Returns:
        Allow with the command to execute, or Deny with the reason
    """
    warnings: tuple[str, ...] = ()
    if protect_admins:
        try:
            roles = directory.list_privileged_roles(user.id)
        except Exception as e:
            if not fail_open:
                logger.error("[offboard] %s: privileged role lookup failed: %s", command.upn, e)
                return Deny(ROLE_CHECK_FAILED)
            logger.warning("[offboard] %s: privileged role lookup failed, continuing (fail-open): %s", command.upn, e)
            warnings += ("Privileged role check failed; continued (fail-open)",)
        else:
            if roles:
                return Deny(privileged_reason(roles))

    resolved, group_warnings = resolve_group_options(command)
    return Allow(resolved, warnings + group_warnings)
