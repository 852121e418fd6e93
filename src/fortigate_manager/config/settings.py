"""Service configuration from environment variables and the access YAML file.

Environment Variables:
    FORTIGATE_HOST, FORTIGATE_USERNAME, FORTIGATE_PASSWORD: appliance login
    FORTIGATE_PORT: SSH port (default: 22)
    FORTIGATE_TIMEOUT: connect timeout in milliseconds (default: 20000)
    FORTIGATE_COMMAND_TIMEOUT: per-command timeout in seconds (default: 30)
    FORTIGATE_SETTLE_DELAY: pause after configuration changes (default: 1.0)
    FORTIGATE_CONNECT_ATTEMPTS: startup auto-connect attempts (default: 3)
    FORTIMGR_HOST, FORTIMGR_PORT: HTTP listen address (default: 127.0.0.1:3000)
    FORTIMGR_ACCESS_FILE: path to access.yaml
    FORTIMGR_EMAIL_HEADER, FORTIMGR_USER_HEADER: headers set by the auth proxy

Only the process environment is read. A .env file has to be exported by
whatever starts the service (systemd EnvironmentFile, docker --env-file,
`set -a; . ./.env`).
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number, using {default}")
        return default


@dataclass(frozen=True)
class ConnectionConfig:
    """Connection settings for the FortiGate appliance."""
    host: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    port: int = 22
    timeout: float = 20  # seconds
    command_timeout: float = 30
    settle_delay: float = 1.0

    @property
    def is_complete(self) -> bool:
        return bool(self.host and self.username and self.password)

    def safe_info(self) -> dict:
        """Connection details safe to show to operators (no password)."""
        return {"host": self.host, "username": self.username, "port": self.port}

    @classmethod
    def from_env(cls) -> "ConnectionConfig":
        """Load from FORTIGATE_* variables.

        Missing credentials only produce a warning so the service can still
        start and report "not connected" cleanly.
        """
        config = cls(
            host=os.environ.get("FORTIGATE_HOST", ""),
            username=os.environ.get("FORTIGATE_USERNAME", ""),
            password=os.environ.get("FORTIGATE_PASSWORD", ""),
            port=_env_int("FORTIGATE_PORT", 22),
            timeout=_env_float("FORTIGATE_TIMEOUT", 20000) / 1000,
            command_timeout=_env_float("FORTIGATE_COMMAND_TIMEOUT", 30),
            settle_delay=_env_float("FORTIGATE_SETTLE_DELAY", 1.0),
        )
        if not config.is_complete:
            logger.warning(
                "FortiGate environment not fully configured "
                "(FORTIGATE_HOST, FORTIGATE_USERNAME, FORTIGATE_PASSWORD)"
            )
        return config


class AccessPolicy:
    """Which authenticated operators may use the service.

    Loaded from YAML:

    ```yaml
    workspace_domain: example.edu
    authorized_emails:
      - netops@example.edu
      - alice@example.edu
    admin_emails:
      - alice@example.edu
    ```

    With no file (or an empty authorized list) every authenticated email is
    admitted.
    """

    def __init__(
        self,
        authorized_emails: Optional[list[str]] = None,
        admin_emails: Optional[list[str]] = None,
        workspace_domain: Optional[str] = None,
    ):
        self.authorized_emails = [e.lower() for e in (authorized_emails or [])]
        self.admin_emails = [e.lower() for e in (admin_emails or [])]
        self.workspace_domain = (workspace_domain or "").lower() or None

    @staticmethod
    def find_config() -> Optional[str]:
        """Find access.yaml in the usual locations."""
        search_paths = [
            Path.cwd() / "configs" / "access.yaml",
            Path.cwd() / "access.yaml",
            Path.home() / ".config" / "fortigate-manager" / "access.yaml",
        ]
        for path in search_paths:
            if path.exists():
                return str(path)
        return None

    @classmethod
    def load(cls, path: Optional[str] = None) -> "AccessPolicy":
        """Load the policy from YAML, or an open policy if no file is found."""
        path = path or cls.find_config()
        if path is None:
            logger.warning("No access.yaml found - any authenticated email is allowed")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        policy = cls(
            authorized_emails=data.get("authorized_emails", []),
            admin_emails=data.get("admin_emails", []),
            workspace_domain=data.get("workspace_domain"),
        )
        for email in policy.admin_emails:
            if policy.authorized_emails and email not in policy.authorized_emails:
                logger.warning(f"Admin {email} is not in authorized_emails")
        logger.info(f"Loaded access policy from {path}: {len(policy.authorized_emails)} authorized emails")
        return policy

    def is_authorized(self, email: str) -> bool:
        email = email.lower()
        if self.workspace_domain and not email.endswith(f"@{self.workspace_domain}"):
            return False
        if not self.authorized_emails:
            return True
        return email in self.authorized_emails

    def is_admin(self, email: str) -> bool:
        return email.lower() in self.admin_emails


@dataclass
class Settings:
    """HTTP server settings."""
    host: str = "127.0.0.1"
    port: int = 3000
    access_file: Optional[str] = None
    email_header: str = "X-Auth-Request-Email"
    user_header: str = "X-Auth-Request-User"
    connect_attempts: int = 3

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.environ.get("FORTIMGR_HOST", "127.0.0.1"),
            port=_env_int("FORTIMGR_PORT", 3000),
            access_file=os.environ.get("FORTIMGR_ACCESS_FILE") or None,
            email_header=os.environ.get("FORTIMGR_EMAIL_HEADER", "X-Auth-Request-Email"),
            user_header=os.environ.get("FORTIMGR_USER_HEADER", "X-Auth-Request-User"),
            connect_attempts=max(1, _env_int("FORTIGATE_CONNECT_ATTEMPTS", 3)),
        )
