"""Pytest shared fixtures for the lifecycle batch tests."""
import csv
import os
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Never talk to a real tenant from the test suite
os.environ.setdefault("DEMO_MODE", "true")

import pytest
import requests

from jml_batch import audit
from jml_batch.core.directory import InMemoryDirectory


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """Fail loudly if a unit test reaches for the network.

    Tests that exercise the HTTP client install their own stubs on top.
    """
    def _refuse(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP call in unit test: {url}")

    for method in ("get", "post", "patch", "delete", "put"):
        monkeypatch.setattr(requests, method, _refuse)


@pytest.fixture(autouse=True)
def _isolated_audit(monkeypatch, tmp_path):
    """Keep audit events out of the working tree."""
    audit_dir = tmp_path / "audit"
    monkeypatch.setenv("AUDIT_LOG_DIR", str(audit_dir))
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_dir / "jml-events.jsonl")
    yield audit_dir


# ─────────────────────────────────────────────────────────────────────────────
# Directory and CSV helpers
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def directory():
    """In-memory directory with the groups most tests target."""
    d = InMemoryDirectory()
    d.add_group("All Staff")
    d.add_group("VPN Users")
    d.add_group("Sales")
    return d


@pytest.fixture()
def write_csv(tmp_path):
    """Write a list of dict rows to a CSV file and return its path."""
    def _write(rows, columns, name="input.csv"):
        path = tmp_path / name
        with path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()
            for row in rows:
                writer.writerow(row)
        return path
    return _write


def _onboarding_row(upn, location="US", **overrides):
    row = {
        "UserPrincipalName": upn,
        "DisplayName": "",
        "GivenName": "Test",
        "Surname": "User",
        "Department": "Sales",
        "JobTitle": "Rep",
        "UsageLocation": location,
    }
    row.update(overrides)
    return row


def _offboarding_row(upn, action="", remove_all="", remove_groups="", reason=""):
    return {
        "UserPrincipalName": upn,
        "Action": action,
        "RemoveAllGroups": remove_all,
        "RemoveGroups": remove_groups,
        "Reason": reason,
    }


@pytest.fixture()
def onboarding_row():
    """Factory for onboarding CSV rows with sensible defaults."""
    return _onboarding_row


@pytest.fixture()
def offboarding_row():
    """Factory for offboarding CSV rows."""
    return _offboarding_row
