import csv
import json
import logging
import re

import pytest

import scripts.jml as jml
from jml_batch import audit
from jml_batch.core.csv_input import OFFBOARDING_COLUMNS, ONBOARDING_COLUMNS
from jml_batch.core.directory import InMemoryDirectory

TAP_LINE = re.compile(r"^\[TAP\] (\S+): (\S+)", re.MULTILINE)


@pytest.fixture(autouse=True)
def cli_env(monkeypatch, tmp_path):
    """Demo directory, signed audit trail, and outputs under tmp_path."""
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "cli-test-signing-key")
    monkeypatch.setenv("JML_LOG_PATH", str(tmp_path / "jml-batch.log"))
    monkeypatch.setenv("JML_REPORT_PATH", str(tmp_path / "jml-report.csv"))
    monkeypatch.setenv("JML_OPERATOR", "cli-test")


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Drop the handlers installed by configure_logging()."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler.formatter is not None and handler.formatter._fmt == jml.LOG_FORMAT:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def read_report(path):
    with open(path, encoding="utf-8", newline="") as f:
        return list(csv.DictReader(f))


def test_no_command_prints_help(capsys):
    assert jml.main([]) == jml.EXIT_OK
    assert "onboard" in capsys.readouterr().out


def test_onboard_demo_run(write_csv, onboarding_row, tmp_path, capsys):
    path = write_csv(
        [
            onboarding_row("new.joiner@contoso.example"),
            onboarding_row("bad-email"),
            onboarding_row("existing.user@contoso.example"),
        ],
        ONBOARDING_COLUMNS,
    )

    code = jml.main(["onboard", "--csv", str(path), "--group", "All Staff", "--group", "VPN Users"])
    out = capsys.readouterr().out

    assert code == jml.EXIT_OK
    rows = read_report(tmp_path / "jml-report.csv")
    assert [(r["UserPrincipalName"], r["Status"]) for r in rows] == [
        ("new.joiner@contoso.example", "SUCCESS"),
        ("bad-email", "SKIPPED"),
        ("existing.user@contoso.example", "SKIPPED"),
    ]
    assert "Processed 3 row(s)" in out

    # The credential appears on the console once and nowhere else
    shown = TAP_LINE.findall(out)
    assert [upn for upn, _ in shown] == ["new.joiner@contoso.example"]
    value = shown[0][1]
    assert value not in (tmp_path / "jml-report.csv").read_text()
    assert value not in (tmp_path / "jml-batch.log").read_text()
    assert value not in audit.AUDIT_LOG_FILE.read_text()


def test_onboard_dry_run(write_csv, onboarding_row, tmp_path, capsys):
    path = write_csv([onboarding_row("new.joiner@contoso.example")], ONBOARDING_COLUMNS)
    code = jml.main(["onboard", "--csv", str(path), "--group", "All Staff", "--dry-run"])

    assert code == jml.EXIT_OK
    assert read_report(tmp_path / "jml-report.csv")[0]["Status"] == "DRYRUN"
    assert "[TAP]" not in capsys.readouterr().out
    assert not audit.AUDIT_LOG_FILE.exists()


def test_onboard_report_path_option(write_csv, onboarding_row, tmp_path):
    path = write_csv([onboarding_row("new.joiner@contoso.example")], ONBOARDING_COLUMNS)
    target = tmp_path / "custom" / "out.csv"
    jml.main(["onboard", "--csv", str(path), "--group", "All Staff", "--no-tap", "--report-path", str(target)])
    assert read_report(target)[0]["Status"] == "SUCCESS"


def test_onboard_unknown_group_aborts(write_csv, onboarding_row, tmp_path, capsys):
    path = write_csv([onboarding_row("new.joiner@contoso.example")], ONBOARDING_COLUMNS)
    code = jml.main(["onboard", "--csv", str(path), "--group", "No Such Group"])

    assert code == jml.EXIT_PRECONDITION
    assert "No Such Group" in capsys.readouterr().err
    assert not (tmp_path / "jml-report.csv").exists()


def test_missing_csv_aborts(tmp_path):
    code = jml.main(["offboard", "--csv", str(tmp_path / "missing.csv")])
    assert code == jml.EXIT_PRECONDITION


def test_tap_lifetime_is_validated():
    with pytest.raises(SystemExit):
        jml.main(["onboard", "--csv", "x.csv", "--group", "All Staff", "--tap-lifetime-minutes", "5"])


def test_offboard_demo_run(write_csv, offboarding_row, tmp_path):
    path = write_csv(
        [
            offboarding_row("sam.leaver@contoso.example", remove_all="true", reason="Resigned"),
            offboarding_row("alex.admin@contoso.example"),
            offboarding_row("ghost@contoso.example"),
        ],
        OFFBOARDING_COLUMNS,
    )

    assert jml.main(["offboard", "--csv", str(path)]) == jml.EXIT_OK

    rows = read_report(tmp_path / "jml-report.csv")
    assert [r["Status"] for r in rows] == ["SUCCESS", "SKIPPED", "SKIPPED"]
    assert "Global Administrator" in rows[1]["Notes"]
    assert rows[2]["Notes"] == "User not found"

    events = [json.loads(line) for line in audit.AUDIT_LOG_FILE.read_text().splitlines()]
    assert [(e["event_type"], e["username"], e["operator"]) for e in events] == [
        ("offboard", "sam.leaver@contoso.example", "cli-test"),
    ]


def test_offboard_without_admin_protection(write_csv, offboarding_row, tmp_path):
    path = write_csv([offboarding_row("alex.admin@contoso.example")], OFFBOARDING_COLUMNS)
    assert jml.main(["offboard", "--csv", str(path), "--no-protect-admins"]) == jml.EXIT_OK
    assert read_report(tmp_path / "jml-report.csv")[0]["Status"] == "SUCCESS"


def test_row_errors_give_exit_code_one(write_csv, offboarding_row, tmp_path, monkeypatch):
    directory = InMemoryDirectory()
    directory.add_user("bob@x.com")
    directory.fail_on["disable_user"] = RuntimeError("service unavailable")
    monkeypatch.setattr(jml, "build_directory", lambda config: directory)

    path = write_csv([offboarding_row("bob@x.com")], OFFBOARDING_COLUMNS)
    assert jml.main(["offboard", "--csv", str(path)]) == jml.EXIT_ROW_ERRORS
    assert read_report(tmp_path / "jml-report.csv")[0]["Status"] == "ERROR"


def test_every_log_line_starts_with_timestamp(write_csv, offboarding_row, tmp_path, monkeypatch):
    directory = InMemoryDirectory()
    directory.add_user("bob@x.com")
    directory.add_user("carol@x.com")
    directory.fail_on["disable_user"] = RuntimeError("<html>\n<body>502 Bad Gateway</body>\n</html>")
    monkeypatch.setattr(jml, "build_directory", lambda config: directory)

    path = write_csv([offboarding_row("bob@x.com"), offboarding_row("carol@x.com")], OFFBOARDING_COLUMNS)
    assert jml.main(["offboard", "--csv", str(path)]) == jml.EXIT_ROW_ERRORS
    logging.getLogger("jml_batch.test").warning("first line\nsecond line\r\n  third line")

    lines = (tmp_path / "jml-batch.log").read_text(encoding="utf-8").splitlines()
    stamped = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \[[A-Z]+\] ")
    assert lines
    assert [line for line in lines if not stamped.match(line)] == []
    assert any("502 Bad Gateway" in line for line in lines)
    assert lines[-1].endswith("[WARNING] first line second line third line")


def test_production_mode_requires_credentials(write_csv, offboarding_row, monkeypatch, capsys):
    monkeypatch.setenv("DEMO_MODE", "false")
    for name in ("GRAPH_TENANT_ID", "GRAPH_CLIENT_ID", "GRAPH_CLIENT_SECRET"):
        monkeypatch.delenv(name, raising=False)

    path = write_csv([offboarding_row("bob@x.com")], OFFBOARDING_COLUMNS)
    assert jml.main(["offboard", "--csv", str(path)]) == jml.EXIT_PRECONDITION
    assert "GRAPH_TENANT_ID" in capsys.readouterr().err


def test_verify_audit(write_csv, offboarding_row, capsys):
    path = write_csv([offboarding_row("sam.leaver@contoso.example")], OFFBOARDING_COLUMNS)
    jml.main(["offboard", "--csv", str(path)])
    capsys.readouterr()

    assert jml.main(["verify-audit"]) == jml.EXIT_OK
    assert "1/1" in capsys.readouterr().out
