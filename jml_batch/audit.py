"""Audit logging utilities for lifecycle batches (joiner/leaver events)."""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

AUDIT_LOG_DIR = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "jml-events.jsonl"

EventType = Literal["onboard", "offboard"]

# Never allowed into an audit event, whatever the caller passes in details
_REDACTED_KEYS = {"temporaryAccessPass", "tap", "password", "passwordProfile"}


def set_audit_dir(path: str | Path) -> None:
    """Point the audit trail at another directory (e.g. from settings)."""
    global AUDIT_LOG_DIR, AUDIT_LOG_FILE
    AUDIT_LOG_DIR = Path(path)
    AUDIT_LOG_FILE = AUDIT_LOG_DIR / "jml-events.jsonl"


def _get_signing_key() -> bytes:
    """Get the audit signing key (environment first, then key file)."""
    key = os.environ.get("AUDIT_LOG_SIGNING_KEY", "").strip()
    if key:
        return key.encode("utf-8")
    key_file = os.environ.get("AUDIT_LOG_SIGNING_KEY_FILE")
    if key_file and Path(key_file).exists():
        try:
            return Path(key_file).read_bytes().strip()
        except OSError:
            return b""
    return b""


def _ensure_audit_dir() -> None:
    """Create audit directory with restricted permissions."""
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)


def _sign_event(event: dict[str, Any]) -> str:
    """Generate HMAC-SHA256 signature for audit event."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_jml_event(
    event_type: EventType,
    username: str,
    *,
    operator: str = "automation",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Append a lifecycle event to the audit trail with timestamp and signature.

    Args:
        event_type: onboard or offboard
        username: Target user principal name
        operator: Who ran the batch
        details: Metadata (action, groups, status); credential values are dropped
        success: Whether the operation succeeded
    """
    _ensure_audit_dir()

    safe_details = {k: v for k, v in (details or {}).items() if k not in _REDACTED_KEYS}
    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "username": username,
        "operator": operator,
        "success": success,
        "details": safe_details,
    }

    signature = _sign_event(event)
    if signature:
        event["signature"] = signature

    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")

    AUDIT_LOG_FILE.chmod(0o600)


def safe_log_jml_event(
    event_type: EventType,
    username: str,
    *,
    operator: str = "automation",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Log an audit event with automatic error handling (never raises exceptions).

    The directory change has already happened when this runs, so an audit
    failure (unwritable directory, unreadable key, unserializable details)
    must not turn the row into an error or stop the batch.

    Returns:
        True if event was logged successfully, False if logging failed
    """
    try:
        log_jml_event(event_type, username, operator=operator, details=details, success=success)
        return True
    except Exception as e:
        logger.warning("[audit] Failed to log %s event for %s: %s", event_type, username, e)
        return False


def verify_audit_log() -> tuple[int, int]:
    """Verify all signatures in the audit log.

    Returns:
        Tuple of (total_events, valid_signatures)
    """
    if not AUDIT_LOG_FILE.exists():
        return 0, 0

    total = 0
    valid = 0

    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
                stored_sig = event.pop("signature", "")
                if not stored_sig:
                    continue
                computed_sig = _sign_event(event)
                if hmac.compare_digest(stored_sig, computed_sig):
                    valid += 1
            except (json.JSONDecodeError, KeyError):
                continue

    return total, valid
