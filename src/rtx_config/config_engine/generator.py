"""Command generator for creating RTX command batches.

Generates ordered command sequences from diff results through the feature
encoders.
"""
import logging

from .errors import ValidationError
from .features import FEATURES, Intent, get_codec
from .schema import (
    ChangeType,
    CommandPlan,
    DiffResult,
    RecordChange,
)

logger = logging.getLogger(__name__)

FEATURE_ORDER = {name: i for i, name in enumerate(FEATURES)}


class CommandGenerator:
    """Generate RTX command batches from diff results."""

    def generate(
        self,
        diff: DiffResult,
        save_config: bool = True
    ) -> CommandPlan:
        """
        Generate command plan from diff.

        Deletions run first in reverse feature order (bindings go before the
        filters they reference), then creates and modifies in feature order.

        Args:
            diff: Diff result with changes to apply
            save_config: Whether to include the save command

        Returns:
            CommandPlan with all commands

        Raises:
            ValidationError: If a desired record cannot be encoded
        """
        plan = CommandPlan()

        deletes = sorted(
            diff.of_type(ChangeType.DELETE),
            key=lambda c: -FEATURE_ORDER.get(c.feature, 0),
        )
        upserts = sorted(
            [c for c in diff.changes if c.change_type in (ChangeType.CREATE, ChangeType.MODIFY)],
            key=lambda c: FEATURE_ORDER.get(c.feature, 0),
        )

        for change in deletes + upserts:
            plan.main_commands.extend(self.change_commands(change))

        # Post-commands: persist to flash
        if save_config and plan.main_commands:
            plan.post_commands.append("save")

        # Generate rollback commands (reverse order)
        plan.rollback_commands = self._generate_rollback(list(reversed(deletes + upserts)))

        return plan

    def change_commands(self, change: RecordChange) -> list[str]:
        """Commands applying one change."""
        codec = get_codec(change.feature)

        if change.change_type == ChangeType.CREATE:
            return codec.encode(change.desired, Intent.CREATE)

        if change.change_type == ChangeType.DELETE:
            return codec.encode(change.observed, Intent.DELETE)

        if change.change_type == ChangeType.MODIFY:
            if change.moved:
                # Identity changed: the old entry goes, the new one is created
                create = codec.encode(change.desired, Intent.CREATE)
                return codec.encode(change.observed, Intent.DELETE) + create
            return codec.encode(change.desired, Intent.UPDATE, observed=change.observed)

        return []

    def _generate_rollback(self, changes: list[RecordChange]) -> list[str]:
        """Commands restoring the observed state, best effort."""
        commands = []

        for change in changes:
            codec = get_codec(change.feature)
            try:
                if change.change_type == ChangeType.CREATE:
                    commands.extend(codec.encode(change.desired, Intent.DELETE))
                elif change.change_type == ChangeType.DELETE:
                    commands.extend(codec.encode(change.observed, Intent.CREATE))
                elif change.moved:
                    commands.extend(codec.encode(change.desired, Intent.DELETE))
                    commands.extend(codec.encode(change.observed, Intent.CREATE))
                else:
                    commands.extend(
                        codec.encode(change.observed, Intent.UPDATE, observed=change.desired)
                    )
            except ValidationError as e:
                logger.warning(f"No rollback for {change.feature} {change.key}: {e}")

        return commands
