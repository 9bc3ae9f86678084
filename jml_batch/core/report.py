"""Per-row outcome accumulator, CSV report writer, and console rendering."""
from __future__ import annotations
import csv
import enum
import sys
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import List, TextIO

REPORT_COLUMNS = ["UserPrincipalName", "Status", "Notes"]


class Status(str, enum.Enum):
    SKIPPED = "SKIPPED"
    DRYRUN = "DRYRUN"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


@dataclass(frozen=True)
class OutcomeRecord:
    user_principal_name: str
    status: Status
    notes: str = ""

    def as_row(self) -> dict[str, str]:
        return {
            "UserPrincipalName": self.user_principal_name,
            "Status": self.status.value,
            "Notes": self.notes,
        }


class Report:
    """Append-only list of outcomes, one per input row, in CSV order."""

    def __init__(self) -> None:
        self._records: List[OutcomeRecord] = []

    def append(self, upn: str, status: Status, notes: str = "") -> OutcomeRecord:
        record = OutcomeRecord(upn, status, notes)
        self._records.append(record)
        return record

    @property
    def records(self) -> tuple[OutcomeRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def sorted_records(self) -> List[OutcomeRecord]:
        """Records ordered by (status, principal name) for display."""
        return sorted(self._records, key=lambda r: (r.status.value, r.user_principal_name.lower()))

    def counts(self) -> dict[Status, int]:
        counter = Counter(record.status for record in self._records)
        return {status: counter.get(status, 0) for status in Status}

    @property
    def has_errors(self) -> bool:
        return any(record.status is Status.ERROR for record in self._records)

    def write_csv(self, path: str | Path) -> Path:
        """Write the report in processing order.

        Args:
            path: Destination file (parent directories are created)

        Returns:
            The path written
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=REPORT_COLUMNS)
            writer.writeheader()
            for record in self._records:
                writer.writerow(record.as_row())
        return target

    def render_summary(self) -> str:
        """Render a plain-text table sorted by (status, principal name) plus totals."""
        rows = [(r.status.value, r.user_principal_name, r.notes) for r in self.sorted_records()]
        status_width = max([len("Status")] + [len(row[0]) for row in rows])
        upn_width = max([len("UserPrincipalName")] + [len(row[1]) for row in rows])
        lines = [
            f"{'Status':<{status_width}}  {'UserPrincipalName':<{upn_width}}  Notes",
            f"{'-' * status_width}  {'-' * upn_width}  -----",
        ]
        lines.extend(f"{status:<{status_width}}  {upn:<{upn_width}}  {notes}" for status, upn, notes in rows)
        totals = ", ".join(f"{status.value}={count}" for status, count in self.counts().items())
        lines.append("")
        lines.append(f"Processed {len(self)} row(s): {totals}")
        return "\n".join(lines)


def print_temporary_credential(upn: str, value: str, lifetime_minutes: int, usable_once: bool,
                               stream: TextIO | None = None) -> None:
    """Show a freshly issued Temporary Access Pass on the console, once.

    This is the only place the value is written anywhere.
    """
    out = stream or sys.stdout
    usage = "single use" if usable_once else "multi use"
    print(
        f"[TAP] {upn}: {value}  (valid {lifetime_minutes} min, {usage}; "
        f"shown once, not written to the log or report)",
        file=out,
    )
