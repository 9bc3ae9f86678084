"""Input validation for CSV rows.

Field helpers raise ``ValueError`` with a human-readable reason; the
``validate_*_row`` entry points turn that into ``Rejected`` so a bad row
never raises out of validation.
"""
from __future__ import annotations
import re
from typing import Mapping

from jml_batch.core.models import (
    UPN_COLUMN,
    CreateAndGroup,
    OffboardAction,
    OffboardCommand,
    Rejected,
)

USAGE_LOCATION_PATTERN = re.compile(r"^[A-Z]{2}$")
TRUE_VALUES = {"true", "yes", "y", "1"}
FALSE_VALUES = {"false", "no", "n", "0", ""}


def _cell(row: Mapping[str, str | None], column: str) -> str:
    return (row.get(column) or "").strip()


def check_identity_key(raw: str) -> str:
    """Validate the identifying key shared by every lifecycle CSV.

    Args:
        raw: Raw UserPrincipalName cell

    Returns:
        Trimmed key

    Raises:
        ValueError: If the key is blank or is a repeated header
    """
    key = raw.strip()
    if not key:
        raise ValueError("Missing UserPrincipalName")
    if key.lower() == UPN_COLUMN.lower():
        raise ValueError("Repeated header row")
    return key


def validate_upn(upn: str) -> str:
    """Require a minimal ``local@domain`` shape."""
    local, sep, domain = upn.partition("@")
    if not sep or not local or not domain or "@" in domain:
        raise ValueError("Invalid UPN format")
    return upn


def normalize_usage_location(raw: str) -> str:
    """Trim and upper-case a two-letter country code.

    Raises:
        ValueError: If the result is not exactly two letters
    """
    location = raw.strip().upper()
    if not USAGE_LOCATION_PATTERN.match(location):
        raise ValueError(f"Invalid UsageLocation '{raw.strip()}'")
    return location


def parse_action(raw: str) -> OffboardAction:
    """Match an offboarding action case-insensitively; blank means DisableAndRevoke."""
    value = raw.strip()
    if not value:
        return OffboardAction.DISABLE_AND_REVOKE
    for action in OffboardAction:
        if action.value.lower() == value.lower():
            return action
    raise ValueError(f"Invalid Action '{value}'")


def parse_flag(raw: str, column: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"Invalid {column} value '{raw.strip()}'")


def split_group_names(raw: str) -> tuple[str, ...]:
    """Split a semicolon-separated list, dropping blanks and duplicates."""
    names: list[str] = []
    for part in raw.split(";"):
        name = part.strip()
        if name and name.lower() not in {n.lower() for n in names}:
            names.append(name)
    return tuple(names)


def validate_onboarding_row(row: Mapping[str, str | None]) -> CreateAndGroup | Rejected:
    """Turn an onboarding CSV row into a create command or a rejection."""
    try:
        upn = validate_upn(check_identity_key(_cell(row, UPN_COLUMN)))
        usage_location = normalize_usage_location(_cell(row, "UsageLocation"))
    except ValueError as e:
        return Rejected(str(e))

    given_name = _cell(row, "GivenName")
    surname = _cell(row, "Surname")
    display_name = (
        _cell(row, "DisplayName")
        or " ".join(part for part in (given_name, surname) if part)
        or upn.split("@", 1)[0]
    )
    return CreateAndGroup(
        upn=upn,
        display_name=display_name,
        given_name=given_name,
        surname=surname,
        department=_cell(row, "Department"),
        job_title=_cell(row, "JobTitle"),
        usage_location=usage_location,
    )


def validate_offboarding_row(row: Mapping[str, str | None]) -> OffboardCommand | Rejected:
    """Turn an offboarding CSV row into an offboard command or a rejection."""
    try:
        upn = check_identity_key(_cell(row, UPN_COLUMN))
        action = parse_action(_cell(row, "Action"))
        remove_all = parse_flag(_cell(row, "RemoveAllGroups"), "RemoveAllGroups")
    except ValueError as e:
        return Rejected(str(e))

    return OffboardCommand(
        upn=upn,
        action=action,
        remove_groups=split_group_names(_cell(row, "RemoveGroups")),
        remove_all_groups=remove_all,
        reason=_cell(row, "Reason"),
    )
