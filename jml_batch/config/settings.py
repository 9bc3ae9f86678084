"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from jml_batch.core.directory.client import DEFAULT_AUTHORITY_URL, DEFAULT_GRAPH_URL


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] Loaded {secret_name} from /run/secrets", file=sys.stderr)
                return secret_value
        except OSError as e:
            print(f"[settings] Failed to read /run/secrets/{secret_name}: {e}", file=sys.stderr)

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"true", "1", "yes", "on"}


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool = False

    # Graph app registration
    graph_tenant_id: str = ""
    graph_client_id: str = ""
    graph_client_secret: str = ""
    graph_api_url: str = DEFAULT_GRAPH_URL
    graph_authority_url: str = DEFAULT_AUTHORITY_URL

    # Guards
    protect_admins: bool = True
    role_check_fail_open: bool = False

    # Outputs
    log_path: str = "jml-batch.log"
    report_path: str = "jml-report.csv"
    audit_log_dir: str = ".runtime/audit"

    operator: str = "automation"

    def require_graph_credentials(self) -> None:
        """Ensure the Graph app registration is fully configured.

        Raises:
            ValueError: If a credential is missing outside demo mode
        """
        if self.demo_mode:
            return
        missing = [
            name for name, value in (
                ("GRAPH_TENANT_ID", self.graph_tenant_id),
                ("GRAPH_CLIENT_ID", self.graph_client_id),
                ("GRAPH_CLIENT_SECRET", self.graph_client_secret),
            ) if not value
        ]
        if missing:
            raise ValueError(
                f"{', '.join(missing)} not set. "
                "Set DEMO_MODE=true or provide them via Docker secrets or environment variables."
            )


def load_settings(operator: Optional[str] = None) -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_flag("DEMO_MODE", False)

    graph_client_secret = _load_secret_from_file("graph_client_secret", "GRAPH_CLIENT_SECRET") or ""

    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY")
    if audit_log_signing_key:
        # The audit module reads the key lazily from the environment
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key
    elif not demo_mode:
        print("[settings] WARNING: AUDIT_LOG_SIGNING_KEY not set; audit events will be unsigned", file=sys.stderr)

    config = AppConfig(
        demo_mode=demo_mode,
        graph_tenant_id=os.environ.get("GRAPH_TENANT_ID", "").strip(),
        graph_client_id=os.environ.get("GRAPH_CLIENT_ID", "").strip(),
        graph_client_secret=graph_client_secret,
        graph_api_url=os.environ.get("GRAPH_API_URL", DEFAULT_GRAPH_URL).strip() or DEFAULT_GRAPH_URL,
        graph_authority_url=os.environ.get("GRAPH_AUTHORITY_URL", DEFAULT_AUTHORITY_URL).strip() or DEFAULT_AUTHORITY_URL,
        protect_admins=_env_flag("JML_PROTECT_ADMINS", True),
        role_check_fail_open=_env_flag("ROLE_CHECK_FAIL_OPEN", False),
        log_path=os.environ.get("JML_LOG_PATH", "jml-batch.log"),
        report_path=os.environ.get("JML_REPORT_PATH", "jml-report.csv"),
        audit_log_dir=os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"),
        operator=operator or os.environ.get("JML_OPERATOR") or os.environ.get("USER") or "automation",
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; tenant={config.graph_tenant_id or '-'}; "
          f"client_id={config.graph_client_id or '-'}", file=sys.stderr)
    if demo_mode:
        print("[settings] WARNING: Demo mode uses an in-memory directory; nothing is changed in a tenant.",
              file=sys.stderr)
    return config
