"""Audit trail of apply runs.

Every run against a router, dry runs included, appends one JSON line to
``audit.log``. A line lists each record change with the commands that
carried it and the device state it replaced, so a run can be reviewed or
undone by hand later.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

DEFAULT_AUDIT_DIR = "~/.rtx-config"

audit_logger = logging.getLogger("rtx_config.audit")
audit_logger.setLevel(logging.INFO)
audit_logger.propagate = False


def default_audit_file() -> Path:
    return Path(os.path.expanduser(DEFAULT_AUDIT_DIR)) / "audit.log"


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Send audit lines to ``<log_dir>/audit.log``, replacing earlier handlers.

    Returns:
        Path of the audit log file
    """
    directory = Path(os.path.expanduser(log_dir or DEFAULT_AUDIT_DIR))
    directory.mkdir(parents=True, exist_ok=True)
    audit_file = directory / "audit.log"

    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=10,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    return audit_file


@dataclass
class ChangeEntry:
    """One record change of a run.

    change_type is create, modify, move or delete. before holds the
    observed record as it was on the device, if there was one.
    """
    feature: str
    key: str
    change_type: str
    commands: list[str] = field(default_factory=list)
    fields: list[str] = field(default_factory=list)
    before: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.feature} {self.key}"


@dataclass
class ChangeRecord:
    """One apply run against one router."""
    timestamp: str
    device_id: str
    user: str
    dry_run: bool
    success: bool
    context: str = ""
    changes: list[ChangeEntry] = field(default_factory=list)
    commands_sent: list[str] = field(default_factory=list)
    rollback_performed: bool = False
    error: Optional[str] = None

    def touches(self, feature: str) -> bool:
        return any(entry.feature == feature for entry in self.changes)

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        data = json.loads(json_str)
        data["changes"] = [ChangeEntry(**entry) for entry in data.get("changes", [])]
        return cls(**data)


class ChangeTracker:
    """Writes audit records for one router."""

    def __init__(self, device_id: str):
        self.device_id = device_id

    def log_run(
        self,
        changes: list[ChangeEntry],
        commands_sent: list[str],
        success: bool,
        dry_run: bool = False,
        user: Optional[str] = None,
        context: str = "",
        rollback_performed: bool = False,
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Append one run to the audit log and return it."""
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            device_id=self.device_id,
            user=user or "system",
            dry_run=dry_run,
            success=success,
            context=context,
            changes=changes,
            commands_sent=commands_sent,
            rollback_performed=rollback_performed,
            error=error,
        )
        audit_logger.info(record.to_json())
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    device_id: Optional[str] = None,
    feature: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """
    Read runs back from the audit log, most recent first.

    Args:
        log_file: Audit log path, defaults to ~/.rtx-config/audit.log
        device_id: Only runs against this router
        feature: Only runs that changed this feature
        limit: Maximum number of runs returned
    """
    path = Path(log_file) if log_file else default_audit_file()
    if not path.exists():
        return []

    records = []
    with path.open(encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # foreign or truncated line
            if device_id and record.device_id != device_id:
                continue
            if feature and not record.touches(feature):
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
