"""Offline executor backed by a saved configuration.

Serves ``show config`` (and ``| grep`` variants) from a text file or string
and records every other command instead of sending it anywhere. Used for
previews against a config backup and in tests.
"""
import logging
import re
from pathlib import Path
from typing import Optional, Union

from .base import Executor

logger = logging.getLogger(__name__)

SHOW_CONFIG = re.compile(r'^show\s+config(?:\s*\|\s*grep\s+"?([^"]*)"?)?\s*$')


class OfflineExecutor(Executor):
    """Executor replaying a saved config and recording commands."""

    def __init__(
        self,
        device_id: str,
        config_text: str = "",
        failures: Optional[dict[str, str]] = None,
    ):
        """
        Args:
            device_id: Device identifier
            config_text: Saved ``show config`` output
            failures: Command -> error line to answer with, for simulating
                rejected commands
        """
        super().__init__(device_id)
        self.config_text = config_text
        self.failures = failures or {}
        self.commands: list[str] = []

    @classmethod
    def from_file(cls, device_id: str, path: Union[str, Path]) -> "OfflineExecutor":
        """Load the saved config from a file."""
        return cls(device_id, Path(path).read_text(encoding="utf-8"))

    async def execute(self, command: str) -> tuple[str, Optional[str]]:
        match = SHOW_CONFIG.match(command.strip())
        if match:
            return self._show_config(match.group(1)), None

        self.commands.append(command)
        if command in self.failures:
            logger.debug(f"{self.device_id}: simulated failure for '{command}'")
            return f"{self.failures[command]}\n", None
        return "", None

    def _show_config(self, pattern: Optional[str]) -> str:
        if not pattern:
            return self.config_text
        from ..config_engine.wrap import reconstruct_lines

        # grep sees logical lines, so wrapped continuations stay with their command
        lines = [line for line in reconstruct_lines(self.config_text) if pattern in line]
        return "\n".join(lines) + ("\n" if lines else "")
