"""Executor for applying command plans to routers.

Sends commands one at a time, treats device error lines as failures,
optionally rolls back, and writes an audit record per run.
"""
import logging
from typing import Optional

from ..devices.base import Executor
from ..utils.audit_log import ChangeEntry, ChangeTracker
from .features import get_codec
from .generator import CommandGenerator
from .schema import (
    ChangeType,
    CommandPlan,
    DiffResult,
    ExecuteOptions,
    ExecuteResult,
)

logger = logging.getLogger(__name__)


class ConfigExecutor:
    """Execute command plans through an Executor."""

    def __init__(self, generator: Optional[CommandGenerator] = None):
        self.generator = generator or CommandGenerator()

    async def execute(
        self,
        executor: Executor,
        plan: CommandPlan,
        diff: DiffResult,
        options: ExecuteOptions
    ) -> ExecuteResult:
        """
        Execute a command plan on a router.

        Args:
            executor: Command executor for the target router
            plan: Command plan to execute
            diff: Original diff (for reporting)
            options: Execution options (dry_run, etc.)

        Returns:
            ExecuteResult with success/failure and details
        """
        result = ExecuteResult(dry_run=options.dry_run)
        tracker = ChangeTracker(executor.device_id)

        try:
            # DRY RUN MODE
            if options.dry_run:
                return self._dry_run(plan, diff, result)

            async with executor:
                # Execute pre-commands (one by one for safety)
                if plan.pre_commands:
                    logger.info(f"Executing {len(plan.pre_commands)} pre-commands")
                    failures = await self._execute_commands(
                        executor, plan.pre_commands, "pre", True, result
                    )
                    if failures:
                        result.success = False
                        result.error = f"Pre-command failed: {failures[0]}"
                        result.error_context = "\n".join(failures)
                        return result

                if plan.main_commands:
                    logger.info(f"Executing {len(plan.main_commands)} main commands")
                    failures = await self._execute_commands(
                        executor, plan.main_commands, "main", options.stop_on_error, result
                    )
                    if failures:
                        result.success = False
                        result.error = f"{len(failures)} command(s) failed"
                        result.error_context = "\n".join(failures)

                        # Attempt rollback if requested
                        if options.rollback_on_error and plan.rollback_commands:
                            await self._attempt_rollback(executor, plan, result)

                        return result

                # Execute post-commands (save config, etc.)
                if plan.post_commands:
                    logger.info(f"Executing {len(plan.post_commands)} post-commands")
                    failures = await self._execute_commands(
                        executor, plan.post_commands, "post", False, result
                    )
                    for failure in failures:
                        # Post-command failure is not critical
                        logger.warning(f"Post-command failed: {failure}")
                        result.warnings.append(failure)

                result.changes_made = self._extract_changes(diff)
                result.success = True

        except Exception as e:
            logger.exception(f"Execution failed: {e}")
            result.success = False
            result.error = str(e)

        finally:
            tracker.log_run(
                changes=self._audit_entries(diff),
                commands_sent=[] if options.dry_run else result.commands_executed,
                success=result.success,
                dry_run=options.dry_run,
                user=options.user,
                context=options.audit_context,
                rollback_performed=result.rollback_performed,
                error=result.error,
            )

        return result

    def _dry_run(
        self,
        plan: CommandPlan,
        diff: DiffResult,
        result: ExecuteResult
    ) -> ExecuteResult:
        """Handle dry-run mode - preview without executing."""
        result.success = True
        result.dry_run = True

        # Show what would be executed
        all_commands = (
            plan.pre_commands +
            plan.main_commands +
            plan.post_commands
        )

        result.commands_executed = [
            f"[DRY-RUN] {cmd}" for cmd in all_commands
        ]

        # Extract changes that would be made
        result.changes_made = [
            f"[PREVIEW] {change}"
            for change in self._extract_changes(diff)
        ]

        return result

    async def _execute_commands(
        self,
        executor: Executor,
        commands: list[str],
        phase: str,
        stop_on_error: bool,
        result: ExecuteResult,
    ) -> list[str]:
        """Execute commands individually. Returns failure descriptions."""
        failures = []

        for cmd in commands:
            result.commands_executed.append(cmd)
            success, output = await executor.run(cmd)
            if success:
                continue
            failure = f"{phase} command '{cmd}' failed: {output}"
            logger.error(failure)
            failures.append(failure)
            if stop_on_error:
                break

        return failures

    async def _attempt_rollback(
        self,
        executor: Executor,
        plan: CommandPlan,
        result: ExecuteResult
    ) -> None:
        """Attempt to rollback changes after failure."""
        logger.warning("Attempting rollback after failure")

        errors = []
        for cmd in plan.rollback_commands:
            success, output = await executor.run(cmd)
            if not success:
                errors.append(f"'{cmd}': {output}")

        if errors:
            result.recovery_attempts.append(f"Rollback failed: {'; '.join(errors)}")
            logger.error(f"Rollback failed: {'; '.join(errors)}")
        else:
            result.rollback_performed = True
            result.recovery_attempts.append("Rollback successful")
            logger.info("Rollback completed successfully")

    def _audit_entries(self, diff: DiffResult) -> list[ChangeEntry]:
        """One audit entry per change, with the commands that carry it."""
        return [
            ChangeEntry(
                feature=change.feature,
                key=str(change.key),
                change_type="move" if change.moved else change.change_type.value,
                commands=self.generator.change_commands(change),
                fields=list(change.fields),
                before=repr(change.observed) if change.observed is not None else None,
            )
            for change in diff.changes
        ]

    def _extract_changes(self, diff: DiffResult) -> list[str]:
        """Extract human-readable change descriptions from diff."""
        changes = []

        for change in diff.changes:
            label = f"{change.feature} {change.key}"
            if change.change_type == ChangeType.CREATE:
                changes.append(f"Created {label}")
            elif change.change_type == ChangeType.DELETE:
                changes.append(f"Deleted {label}")
            elif change.moved:
                old_key = get_codec(change.feature).identity(change.observed)
                changes.append(f"Moved {change.feature} {old_key} to {change.key}")
            else:
                changes.append(f"Modified {label}: {', '.join(change.fields)}")

        return changes
