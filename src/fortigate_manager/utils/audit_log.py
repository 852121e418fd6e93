"""Audit logging for appliance configuration changes.

Every create/update/delete of an address object and every group membership
replacement is written as one JSON line to a dedicated rotating audit file,
together with the operator who requested it.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Create dedicated audit logger
audit_logger = logging.getLogger("fortigate_manager.audit")

AUDIT_FILE_NAME = "audit.log"


def get_audit_dir() -> str:
    return os.environ.get("FORTIMGR_AUDIT_DIR", os.path.expanduser("~/.fortigate-manager"))


def setup_audit_logging(log_dir: Optional[str] = None) -> str:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to FORTIMGR_AUDIT_DIR or ~/.fortigate-manager/

    Returns:
        Path of the audit log file
    """
    log_dir = log_dir or get_audit_dir()
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = os.path.join(log_dir, AUDIT_FILE_NAME)

    audit_logger.setLevel(logging.INFO)
    for handler in list(audit_logger.handlers):
        handler.close()
        audit_logger.removeHandler(handler)

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # JSON lines, one record per change
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)

    # Don't propagate to the package logger
    audit_logger.propagate = False
    return audit_file


@dataclass
class ChangeRecord:
    """Record of a configuration change."""
    timestamp: str
    target: str
    operation: str  # save_object, delete_object, replace_group_members
    user: str
    success: bool
    parameters: dict
    error: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        data = json.loads(json_str)
        return cls(**data)


class ChangeTracker:
    """Track and log configuration changes against one appliance."""

    def __init__(self, target: str):
        self.target = target

    def log_change(
        self,
        operation: str,
        parameters: dict,
        success: bool,
        user: str = "system",
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Log a configuration change.

        Args:
            operation: The operation performed (e.g., "save_object")
            parameters: Parameters passed to the operation
            success: Whether the operation succeeded
            user: Email of the operator who requested the change
            error: Error message if failed

        Returns:
            The ChangeRecord that was logged
        """
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            target=self.target,
            operation=operation,
            user=user,
            success=success,
            parameters=parameters,
            error=error,
        )
        audit_logger.info(record.to_json())
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    operation: Optional[str] = None,
    user: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log.

    Args:
        log_file: Path to audit log. Defaults to the configured audit dir
        operation: Filter by operation type
        user: Filter by operator email
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    if log_file is None:
        log_file = os.path.join(get_audit_dir(), AUDIT_FILE_NAME)

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if operation and record.operation != operation:
                continue
            if user and record.user != user:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
