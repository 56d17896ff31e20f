"""Diff engine for calculating changes between desired and current state.

Turns reconciliation results into the minimal set of record changes.
"""
from dataclasses import fields, is_dataclass
from typing import Any

from .reconcile import MatchKind, ReconcileResult
from .schema import (
    ChangeType,
    DiffResult,
    RecordChange,
)
from .features import get_codec


def changed_fields(desired: Any, observed: Any) -> list[str]:
    """Names of the dataclass fields that differ."""
    if not is_dataclass(desired) or type(desired) is not type(observed):
        return [] if desired == observed else ["*"]
    return [
        f.name for f in fields(desired)
        if getattr(desired, f.name) != getattr(observed, f.name)
    ]


class DiffEngine:
    """Calculate differences between desired and current state."""

    def calculate(
        self,
        reconciled: ReconcileResult,
        mode: str = "patch",
    ) -> list[RecordChange]:
        """
        Calculate the changes for one feature.

        Args:
            reconciled: Result of reconciling the feature's records
            mode: "full" also deletes ghosts and moves renumbered records,
                "patch" only creates and modifies

        Returns:
            Changes in desired order, deletions of ghosts last
        """
        codec = get_codec(reconciled.feature)
        changes = []

        for match in reconciled.matches:
            if match.kind == MatchKind.GHOST:
                continue
            key = codec.identity(match.desired)

            # Patch mode never removes device records, so a renumbered
            # match is created under its new identity and the old one stays
            if match.kind == MatchKind.UNMATCHED_DESIRED or (
                match.identity_changed and mode != "full"
            ):
                changes.append(RecordChange(
                    feature=reconciled.feature,
                    change_type=ChangeType.CREATE,
                    key=key,
                    desired=match.desired,
                ))
                continue

            diff_fields = changed_fields(match.desired, match.observed)
            if not diff_fields:
                continue

            changes.append(RecordChange(
                feature=reconciled.feature,
                change_type=ChangeType.MODIFY,
                key=key,
                desired=match.desired,
                observed=match.observed,
                fields=diff_fields,
                moved=match.identity_changed,
            ))

        if mode == "full":
            for ghost in reconciled.ghosts:
                changes.append(RecordChange(
                    feature=reconciled.feature,
                    change_type=ChangeType.DELETE,
                    key=codec.identity(ghost),
                    observed=ghost,
                ))

        return changes

    def calculate_all(
        self,
        reconciled: list[ReconcileResult],
        mode: str = "patch",
    ) -> DiffResult:
        """Calculate changes across features."""
        result = DiffResult()
        for feature_result in reconciled:
            result.changes.extend(self.calculate(feature_result, mode))
        return result


def _describe(change: RecordChange) -> str:
    return f"{change.feature} {change.key}"


def summarize_diff(diff: DiffResult) -> str:
    """
    Create a human-readable summary of a diff.

    Useful for dry-run output and logging.
    """
    lines = []

    if diff.no_change and not diff.decode_errors:
        return "No changes needed - current state matches desired state"

    if diff.no_change:
        lines.append("No changes needed")
    else:
        lines.append(f"Changes to apply ({diff.total_changes} total):")
    lines.append("")

    for change in diff.changes:
        if change.change_type == ChangeType.CREATE:
            lines.append(f"  [+] Create {_describe(change)}")

        elif change.change_type == ChangeType.DELETE:
            lines.append(f"  [-] Delete {_describe(change)}")

        elif change.change_type == ChangeType.MODIFY:
            if change.moved:
                old_key = get_codec(change.feature).identity(change.observed)
                lines.append(f"  [~] Move {change.feature} {old_key} -> {change.key}")
            else:
                lines.append(f"  [~] Modify {_describe(change)}")
            if change.fields:
                lines.append(f"      Fields: {', '.join(change.fields)}")

    if diff.decode_errors:
        lines.append("")
        lines.append(f"Unreadable device lines ({len(diff.decode_errors)}):")
        for err in diff.decode_errors:
            lines.append(f"  [!] {err.feature}: {err.line} ({err.reason})")

    return "\n".join(lines)
