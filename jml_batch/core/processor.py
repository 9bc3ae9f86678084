"""
Lifecycle Processor: one sequential pass over the rows of a CSV batch.

For every row, in file order:

    validate ──> guard ──> dry run? ──> execute ──> record outcome
       │           │          │            │
    SKIPPED     SKIPPED     DRYRUN    SUCCESS / ERROR

Each row gets exactly one OutcomeRecord. Failures raised while handling a
row are caught at the row boundary and recorded as ERROR; the batch moves
on to the next row. Only the run-level checks in ``prepare()`` can stop a
batch, and they run before the first row.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from jml_batch.core.directory.base import DirectoryClient
from jml_batch.core.guards import Deny, authorize_offboarding, authorize_onboarding
from jml_batch.core.models import (
    UPN_COLUMN,
    CreateAndGroup,
    GroupRef,
    OffboardCommand,
    Rejected,
    RemoveAllGroups,
    RemoveGroups,
)
from jml_batch.core.preconditions import (
    GroupResolutionError,
    PreconditionError,
    check_permissions,
    offboarding_permissions,
    onboarding_permissions,
)
from jml_batch.core.report import Report, Status, print_temporary_credential
from jml_batch.core.validators import validate_offboarding_row, validate_onboarding_row

logger = logging.getLogger(__name__)

AuditHook = Callable[..., Any]
CredentialSink = Callable[[str, str, int, bool], None]


def one_line(text: str) -> str:
    """Collapse line breaks and runs of whitespace so a note stays on one log line."""
    return " ".join(text.split())


@dataclass
class OnboardingOptions:
    target_groups: List[str] = field(default_factory=list)
    dry_run: bool = False
    issue_tap: bool = True
    tap_lifetime_minutes: int = 60
    tap_usable_once: bool = False
    operator: str = "automation"


@dataclass
class OffboardingOptions:
    dry_run: bool = False
    protect_admins: bool = True
    role_check_fail_open: bool = False
    operator: str = "automation"


@dataclass
class _Outcome:
    upn: str
    status: Status
    notes: str
    details: Dict[str, Any] = field(default_factory=dict)


class _BatchProcessor:
    """Shared row loop; subclasses supply validation, guards, and execution."""

    event_type = ""

    def __init__(
        self,
        directory: DirectoryClient,
        report: Optional[Report] = None,
        audit_hook: Optional[AuditHook] = None,
    ):
        self.directory = directory
        self.report = report if report is not None else Report()
        self.audit_hook = audit_hook
        self._group_cache: Dict[str, GroupRef] = {}

    # Overridden by subclasses
    def required_permissions(self) -> set[str]:
        raise NotImplementedError

    def _handle(self, row: Mapping[str, Any], steps: List[str]) -> _Outcome:
        raise NotImplementedError

    @property
    def operator(self) -> str:
        raise NotImplementedError

    def prepare(self) -> None:
        """Run-level checks.

        Raises:
            PreconditionError: If the batch must not start
        """
        check_permissions(self.directory, self.required_permissions())

    def process(self, rows: Iterable[Mapping[str, Any]]) -> Report:
        """Process every row in order and return the report."""
        for index, row in enumerate(rows, start=1):
            self._process_row(index, row)
        counts = ", ".join(f"{s.value}={n}" for s, n in self.report.counts().items())
        logger.info("[%s] Batch complete: %d row(s); %s", self.event_type, len(self.report), counts)
        return self.report

    def _process_row(self, index: int, row: Mapping[str, Any]) -> None:
        key = (row.get(UPN_COLUMN) or "").strip()
        steps: List[str] = []
        try:
            outcome = self._handle(row, steps)
        except Exception as e:
            message = one_line(str(e)) or e.__class__.__name__
            if steps:
                message = f"{message} (completed before failure: {', '.join(steps)})"
            outcome = _Outcome(key, Status.ERROR, message, {"error": message})

        self.report.append(outcome.upn, outcome.status, outcome.notes)
        level = logging.ERROR if outcome.status is Status.ERROR else logging.INFO
        logger.log(level, "[%s] Row %d %s %s: %s", self.event_type, index, outcome.status.value,
                   outcome.upn or "<blank>", outcome.notes)

        if outcome.status in (Status.SUCCESS, Status.ERROR) and self.audit_hook is not None:
            try:
                self.audit_hook(
                    self.event_type,
                    outcome.upn,
                    operator=self.operator,
                    details=outcome.details,
                    success=outcome.status is Status.SUCCESS,
                )
            except Exception as e:
                logger.warning("[%s] Row %d: audit event for %s not recorded: %s",
                               self.event_type, index, outcome.upn, one_line(str(e)))

    def _group(self, display_name: str) -> GroupRef:
        """Resolve a group once per run."""
        cache_key = display_name.lower()
        if cache_key not in self._group_cache:
            self._group_cache[cache_key] = self.directory.resolve_group(display_name)
        return self._group_cache[cache_key]


class OnboardingProcessor(_BatchProcessor):
    """Create users from an onboarding CSV, add them to groups, issue a TAP."""

    event_type = "onboard"

    def __init__(
        self,
        directory: DirectoryClient,
        options: OnboardingOptions,
        report: Optional[Report] = None,
        audit_hook: Optional[AuditHook] = None,
        credential_sink: CredentialSink = print_temporary_credential,
    ):
        super().__init__(directory, report, audit_hook)
        self.options = options
        self.credential_sink = credential_sink
        self._targets: List[GroupRef] = []

    @property
    def operator(self) -> str:
        return self.options.operator

    def required_permissions(self) -> set[str]:
        return onboarding_permissions(issue_tap=self.options.issue_tap)

    def prepare(self) -> None:
        """Check permissions and resolve every target group.

        Raises:
            PreconditionError: No target group given
            MissingPermissionsError: Session lacks a permission
            GroupResolutionError: A target group does not exist
        """
        if not self.options.target_groups:
            raise PreconditionError("At least one target group is required")
        super().prepare()
        refs = [self._group(name) for name in self.options.target_groups]
        missing = [ref.display_name for ref in refs if not ref.found]
        if missing:
            raise GroupResolutionError(missing)
        self._targets = refs
        logger.info("[onboard] Target groups: %s", ", ".join(ref.display_name for ref in refs))

    def _handle(self, row: Mapping[str, Any], steps: List[str]) -> _Outcome:
        command = validate_onboarding_row(row)
        if isinstance(command, Rejected):
            return _Outcome((row.get(UPN_COLUMN) or "").strip(), Status.SKIPPED, command.reason)

        decision = authorize_onboarding(command, self.directory)
        if isinstance(decision, Deny):
            return _Outcome(command.upn, Status.SKIPPED, decision.reason)

        if self.options.dry_run:
            return _Outcome(command.upn, Status.DRYRUN, self._describe(command))
        return self._execute(command, steps)

    def _describe(self, command: CreateAndGroup) -> str:
        parts = [
            f"Would create user '{command.display_name}'",
            f"add to groups: {', '.join(self.options.target_groups)}",
        ]
        if self.options.issue_tap:
            parts.append(f"issue TAP ({self.options.tap_lifetime_minutes} min)")
        return "; ".join(parts)

    def _execute(self, command: CreateAndGroup, steps: List[str]) -> _Outcome:
        opts = self.options
        user = self.directory.create_user(command.to_attributes())
        steps.append("user created")

        added = []
        for ref in self._targets:
            self.directory.add_group_member(ref.id, user.id)
            added.append(ref.display_name)
            steps.append(f"added to {ref.display_name}")

        notes = [f"Created; added to groups: {', '.join(added) or 'none'}"]
        details: Dict[str, Any] = {
            "user_id": user.id,
            "department": command.department,
            "usage_location": command.usage_location,
            "groups": added,
        }

        if opts.issue_tap:
            try:
                value = self.directory.issue_temporary_credential(user.id, opts.tap_lifetime_minutes, opts.tap_usable_once)
            except Exception as e:
                logger.warning("[onboard] %s: Temporary Access Pass not issued: %s", command.upn, one_line(str(e)))
                notes.append("TAP issuance failed, see log")
                details["tap_issued"] = False
            else:
                self.credential_sink(command.upn, value, opts.tap_lifetime_minutes, opts.tap_usable_once)
                notes.append("TAP issued (shown on console only)")
                details["tap_issued"] = True

        return _Outcome(command.upn, Status.SUCCESS, "; ".join(notes), details)


class OffboardingProcessor(_BatchProcessor):
    """Disable accounts, revoke sessions, and strip group memberships."""

    event_type = "offboard"

    def __init__(
        self,
        directory: DirectoryClient,
        options: OffboardingOptions,
        report: Optional[Report] = None,
        audit_hook: Optional[AuditHook] = None,
    ):
        super().__init__(directory, report, audit_hook)
        self.options = options

    @property
    def operator(self) -> str:
        return self.options.operator

    def required_permissions(self) -> set[str]:
        return offboarding_permissions(protect_admins=self.options.protect_admins)

    def prepare(self) -> None:
        if not self.options.protect_admins:
            logger.warning("[offboard] Privileged-account protection is DISABLED for this run")
        elif self.options.role_check_fail_open:
            logger.warning("[offboard] Privileged role check is fail-open: lookup errors will not block offboarding")
        super().prepare()

    def _handle(self, row: Mapping[str, Any], steps: List[str]) -> _Outcome:
        command = validate_offboarding_row(row)
        if isinstance(command, Rejected):
            return _Outcome((row.get(UPN_COLUMN) or "").strip(), Status.SKIPPED, command.reason)

        user = self.directory.resolve_user(command.upn)
        if user is None:
            return _Outcome(command.upn, Status.SKIPPED, "User not found")

        decision = authorize_offboarding(
            command,
            user,
            self.directory,
            protect_admins=self.options.protect_admins,
            fail_open=self.options.role_check_fail_open,
        )
        if isinstance(decision, Deny):
            return _Outcome(command.upn, Status.SKIPPED, decision.reason)

        resolved = decision.command
        warnings = list(decision.warnings)
        if command.reason:
            logger.info("[offboard] %s: reason: %s", command.upn, command.reason)

        if self.options.dry_run:
            return _Outcome(command.upn, Status.DRYRUN, "; ".join([self._describe(resolved)] + warnings))
        return self._execute(resolved, user.id, warnings, steps)

    @staticmethod
    def _describe(command: OffboardCommand) -> str:
        parts = []
        if command.action.disables:
            parts.append("disable account")
        if command.action.revokes:
            parts.append("revoke sessions")
        removal = command.group_removal()
        if isinstance(removal, RemoveGroups):
            parts.append(f"remove from: {', '.join(removal.names)}")
        elif isinstance(removal, RemoveAllGroups):
            parts.append("remove from all groups")
        return "Would " + "; ".join(parts)

    def _execute(self, command: OffboardCommand, user_id: str, warnings: List[str], steps: List[str]) -> _Outcome:
        notes: List[str] = []
        if command.action.disables:
            self.directory.disable_user(user_id)
            steps.append("disabled")
            notes.append("Disabled")
        if command.action.revokes:
            self.directory.revoke_sessions(user_id)
            steps.append("sessions revoked")
            notes.append("Sessions revoked")

        removed: List[str] = []
        not_member: List[str] = []
        not_found: List[str] = []
        removal = command.group_removal()
        if isinstance(removal, RemoveGroups):
            targets = []
            for name in removal.names:
                ref = self._group(name)
                if ref.found:
                    targets.append(ref)
                else:
                    logger.warning("[offboard] %s: group '%s' not found", command.upn, name)
                    not_found.append(name)
        elif isinstance(removal, RemoveAllGroups):
            targets = self.directory.list_group_memberships(user_id)
        else:
            targets = []

        for ref in targets:
            if self.directory.remove_group_member(ref.id, user_id):
                removed.append(ref.display_name)
                steps.append(f"removed from {ref.display_name}")
            else:
                not_member.append(ref.display_name)

        if removal is not None:
            notes.append(f"Removed from groups: {', '.join(removed) or 'none'}")
        if not_member:
            notes.append(f"Not a member of: {', '.join(not_member)}")
        if not_found:
            notes.append(f"Group not found: {', '.join(not_found)}")

        details = {
            "user_id": user_id,
            "action": command.action.value,
            "groups_removed": removed,
            "reason": command.reason,
        }
        return _Outcome(command.upn, Status.SUCCESS, "; ".join(notes + warnings), details)


def run_onboarding(
    rows: Iterable[Mapping[str, Any]],
    directory: DirectoryClient,
    options: OnboardingOptions,
    **kwargs: Any,
) -> Report:
    """Check preconditions, then process an onboarding batch."""
    processor = OnboardingProcessor(directory, options, **kwargs)
    processor.prepare()
    return processor.process(rows)


def run_offboarding(
    rows: Iterable[Mapping[str, Any]],
    directory: DirectoryClient,
    options: OffboardingOptions,
    **kwargs: Any,
) -> Report:
    """Check preconditions, then process an offboarding batch."""
    processor = OffboardingProcessor(directory, options, **kwargs)
    processor.prepare()
    return processor.process(rows)
