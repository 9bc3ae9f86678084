"""Run joiner (onboard) and leaver (offboard) batches from CSV files.

This module serves as a CLI wrapper around jml_batch.core services.
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

import requests

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from jml_batch import audit
from jml_batch.config import AppConfig, load_settings
from jml_batch.core.csv_input import OFFBOARDING_COLUMNS, ONBOARDING_COLUMNS, read_rows
from jml_batch.core.directory import (
    DirectoryAPIError,
    DirectoryClient,
    GraphClient,
    GraphDirectory,
    build_demo_directory,
)
from jml_batch.core.directory.credentials import MAX_TAP_LIFETIME_MINUTES, MIN_TAP_LIFETIME_MINUTES
from jml_batch.core.preconditions import PreconditionError
from jml_batch.core.processor import (
    OffboardingOptions,
    OffboardingProcessor,
    OnboardingOptions,
    OnboardingProcessor,
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

EXIT_OK = 0
EXIT_ROW_ERRORS = 1
EXIT_PRECONDITION = 2

logger = logging.getLogger("jml_batch.cli")


class SingleLineFormatter(logging.Formatter):
    """Keep each record on one line so every line starts with its timestamp."""

    def format(self, record: logging.LogRecord) -> str:
        return " ".join(part.strip() for part in super().format(record).splitlines() if part.strip())


def configure_logging(log_path: str, verbose: bool = False) -> None:
    """Send log lines to the log file (append) and to stderr."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    formatter = SingleLineFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)

    root.addHandler(file_handler)
    root.addHandler(console)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def build_directory(config: AppConfig) -> DirectoryClient:
    """Return the in-memory demo directory or an authenticated Graph directory."""
    if config.demo_mode:
        return build_demo_directory()
    config.require_graph_credentials()
    client = GraphClient(config.graph_api_url, config.graph_authority_url)
    client.authenticate_service_account(config.graph_tenant_id, config.graph_client_id, config.graph_client_secret)
    return GraphDirectory(client)


def _tap_lifetime(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {raw!r}")
    if not MIN_TAP_LIFETIME_MINUTES <= value <= MAX_TAP_LIFETIME_MINUTES:
        raise argparse.ArgumentTypeError(
            f"must be between {MIN_TAP_LIFETIME_MINUTES} and {MAX_TAP_LIFETIME_MINUTES} minutes"
        )
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CSV-driven joiner/leaver batches")
    parser.add_argument("--operator", default=None,
                        help="Operator identifier for audit logs (default: $JML_OPERATOR or $USER)")
    parser.add_argument("--verbose", action="store_true", help="Echo every log line to stderr")

    sub = parser.add_subparsers(dest="cmd")

    on = sub.add_parser("onboard", help="Create users listed in a CSV")
    on.add_argument("--csv", dest="csv_path", required=True)
    on.add_argument("--group", dest="target_groups", action="append", required=True,
                    help="Target group display name (repeat for several groups)")
    on.add_argument("--dry-run", action="store_true")
    on.add_argument("--no-tap", action="store_true", help="Do not issue a Temporary Access Pass")
    on.add_argument("--tap-lifetime-minutes", type=_tap_lifetime, default=60)
    on.add_argument("--tap-usable-once", action="store_true")
    on.add_argument("--log-path", default=None)
    on.add_argument("--report-path", default=None)

    off = sub.add_parser("offboard", help="Disable users listed in a CSV")
    off.add_argument("--csv", dest="csv_path", required=True)
    off.add_argument("--dry-run", action="store_true")
    off.add_argument("--no-protect-admins", dest="protect_admins", action="store_false", default=None,
                     help="Allow offboarding accounts that hold directory roles")
    off.add_argument("--role-check-fail-open", action="store_true", default=None,
                     help="Continue when the privileged role lookup fails")
    off.add_argument("--log-path", default=None)
    off.add_argument("--report-path", default=None)

    sub.add_parser("verify-audit", help="Verify audit trail signatures")
    return parser


def _finish(report, report_path: str) -> int:
    written = report.write_csv(report_path)
    print(report.render_summary())
    print(f"\nReport written to {written}")
    logger.info("Report written to %s", written)
    return EXIT_ROW_ERRORS if report.has_errors else EXIT_OK


def run_onboard(args: argparse.Namespace, config: AppConfig) -> int:
    rows = read_rows(args.csv_path, expected_columns=ONBOARDING_COLUMNS)
    options = OnboardingOptions(
        target_groups=args.target_groups,
        dry_run=args.dry_run,
        issue_tap=not args.no_tap,
        tap_lifetime_minutes=args.tap_lifetime_minutes,
        tap_usable_once=args.tap_usable_once,
        operator=config.operator,
    )
    processor = OnboardingProcessor(build_directory(config), options, audit_hook=audit.safe_log_jml_event)
    processor.prepare()
    logger.info("[onboard] Starting batch from %s (dry_run=%s)", args.csv_path, args.dry_run)
    return _finish(processor.process(rows), args.report_path or config.report_path)


def run_offboard(args: argparse.Namespace, config: AppConfig) -> int:
    rows = read_rows(args.csv_path, expected_columns=OFFBOARDING_COLUMNS)
    options = OffboardingOptions(
        dry_run=args.dry_run,
        protect_admins=config.protect_admins if args.protect_admins is None else args.protect_admins,
        role_check_fail_open=config.role_check_fail_open if args.role_check_fail_open is None else True,
        operator=config.operator,
    )
    processor = OffboardingProcessor(build_directory(config), options, audit_hook=audit.safe_log_jml_event)
    processor.prepare()
    logger.info("[offboard] Starting batch from %s (dry_run=%s)", args.csv_path, args.dry_run)
    return _finish(processor.process(rows), args.report_path or config.report_path)


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return EXIT_OK

    config = load_settings(operator=args.operator)
    audit.set_audit_dir(config.audit_log_dir)

    if args.cmd == "verify-audit":
        total, valid = audit.verify_audit_log()
        print(f"Audit log: {valid}/{total} events with valid signatures")
        return EXIT_OK if total == valid else EXIT_ROW_ERRORS

    configure_logging(args.log_path or config.log_path, verbose=args.verbose)

    try:
        if args.cmd == "onboard":
            return run_onboard(args, config)
        return run_offboard(args, config)
    except (PreconditionError, DirectoryAPIError, requests.RequestException, ValueError) as e:
        logger.error("[%s] Aborted before processing any row: %s", args.cmd, e)
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        return EXIT_PRECONDITION


if __name__ == "__main__":
    sys.exit(main())
