"""CSV input loading."""
from __future__ import annotations
import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List

from jml_batch.core.models import UPN_COLUMN
from jml_batch.core.preconditions import InputFileError

logger = logging.getLogger(__name__)

ONBOARDING_COLUMNS = ["UserPrincipalName", "DisplayName", "GivenName", "Surname", "Department", "JobTitle", "UsageLocation"]
OFFBOARDING_COLUMNS = ["UserPrincipalName", "Action", "RemoveAllGroups", "RemoveGroups", "Reason"]


def read_rows(
    path: str | Path,
    required_columns: Iterable[str] = (UPN_COLUMN,),
    expected_columns: Iterable[str] = (),
) -> List[Dict[str, str]]:
    """Read a UTF-8 CSV (BOM tolerated) into a list of row dictionaries.

    Args:
        path: CSV file path
        required_columns: Header names that must be present
        expected_columns: Optional header names, logged when absent

    Returns:
        Rows in file order, keyed by header name

    Raises:
        InputFileError: If the file is missing, empty, or lacks a required column
    """
    csv_path = Path(path)
    if not csv_path.is_file():
        raise InputFileError(f"Input file {csv_path} not found")

    with csv_path.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        headers = [h.strip() for h in (reader.fieldnames or [])]
        if not headers:
            raise InputFileError(f"Input file {csv_path} has no header row")
        missing = [column for column in required_columns if column not in headers]
        if missing:
            raise InputFileError(f"Input file {csv_path} is missing column(s): {', '.join(missing)}")
        absent = [column for column in expected_columns if column not in headers]
        if absent:
            logger.warning("Input file %s has no column(s) %s; treating them as blank", csv_path, ", ".join(absent))
        reader.fieldnames = headers
        rows = [dict(row) for row in reader]

    logger.info("Read %d row(s) from %s", len(rows), csv_path)
    return rows
