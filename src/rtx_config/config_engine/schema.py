"""Schema definitions for the Config Engine.

Defines the desired state format and the diff, plan and execution results.
Feature records themselves live in the features package.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional

from .errors import ScopedDecodeError


class ChangeType(str, Enum):
    """Type of change in a diff."""
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    NO_CHANGE = "no_change"


@dataclass
class DesiredState:
    """Complete desired state for a device.

    records maps a feature name to its desired records. Features absent
    from the mapping are left alone, even in full mode.
    """
    device_id: str
    version: int = 1
    checksum: Optional[str] = None
    source_checksum: Optional[str] = None
    mode: Literal["full", "patch"] = "patch"
    records: dict[str, list[Any]] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)

    @property
    def total_records(self) -> int:
        return sum(len(r) for r in self.records.values())


# --- Validation Results ---

@dataclass
class ValidationResult:
    """Result of config validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# --- Diff Results ---

@dataclass
class RecordChange:
    """A single record change.

    For a modify, fields lists the attributes that differ. moved is set
    when the record was matched by fallback key under a different identity.
    """
    feature: str
    change_type: ChangeType
    key: Any
    desired: Optional[Any] = None
    observed: Optional[Any] = None
    fields: list[str] = field(default_factory=list)
    moved: bool = False


@dataclass
class DiffResult:
    """Result of diffing desired vs current state."""
    changes: list[RecordChange] = field(default_factory=list)
    decode_errors: list[ScopedDecodeError] = field(default_factory=list)

    @property
    def no_change(self) -> bool:
        """Check if there are any changes."""
        return len(self.changes) == 0

    @property
    def total_changes(self) -> int:
        """Total number of changes."""
        return len(self.changes)

    def of_type(self, change_type: ChangeType) -> list[RecordChange]:
        return [c for c in self.changes if c.change_type == change_type]


# --- Command Plan ---

@dataclass
class CommandPlan:
    """Plan of commands to execute."""
    pre_commands: list[str] = field(default_factory=list)
    main_commands: list[str] = field(default_factory=list)
    post_commands: list[str] = field(default_factory=list)
    rollback_commands: list[str] = field(default_factory=list)

    @property
    def total_commands(self) -> int:
        """Total number of commands."""
        return (
            len(self.pre_commands) +
            len(self.main_commands) +
            len(self.post_commands)
        )


# --- Execution Results ---

@dataclass
class ExecuteOptions:
    """Options for config execution."""
    dry_run: bool = False
    stop_on_error: bool = True
    rollback_on_error: bool = False
    audit_context: str = ""
    user: Optional[str] = None


@dataclass
class ExecuteResult:
    """Result of config execution."""
    success: bool = False
    dry_run: bool = False
    changes_made: list[str] = field(default_factory=list)
    commands_executed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None
    error_context: Optional[str] = None
    recovery_attempts: list[str] = field(default_factory=list)
    rollback_performed: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "changes_made": self.changes_made,
            "commands_executed": self.commands_executed,
            "warnings": self.warnings,
            "error": self.error,
            "error_context": self.error_context,
            "recovery_attempts": self.recovery_attempts,
            "rollback_performed": self.rollback_performed,
        }
