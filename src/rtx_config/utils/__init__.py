"""Utility modules for logging, timing and auditing."""
from .logging_config import (
    setup_logging,
    timed,
    timed_section,
    timed_stage,
    perf_logger,
)
from .audit_log import (
    ChangeEntry,
    ChangeRecord,
    ChangeTracker,
    setup_audit_logging,
    get_recent_changes,
)

__all__ = [
    "setup_logging",
    "timed",
    "timed_section",
    "timed_stage",
    "perf_logger",
    "ChangeEntry",
    "ChangeRecord",
    "ChangeTracker",
    "setup_audit_logging",
    "get_recent_changes",
]
