"""Engine settings loaded from YAML configuration."""
import logging
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, Optional, Union

import yaml

logger = logging.getLogger(__name__)


@dataclass
class EngineSettings:
    """Tunables for reconstruction, scanning and apply.

    Example rtx-config.yaml:

    ```yaml
    wrap_marker: "\\"
    extra_command_words: [bgp, ospf]
    extra_context_kinds:
      - name: ipv6_pp
        header: '^ipv6\\s+pp\\s+select\\s+(\\d+)$'
        leave: '^ipv6\\s+pp\\s+select\\s+none$'
        members: ["ipv6 pp "]
    default_mode: patch
    audit_log_dir: ~/.rtx-config
    ```
    """
    wrap_marker: str = "\\"
    extra_command_words: list[str] = field(default_factory=list)
    extra_context_kinds: list[dict[str, Any]] = field(default_factory=list)
    default_mode: Literal["full", "patch"] = "patch"
    audit_log_dir: Optional[str] = None
    save_config: bool = True
    stop_on_error: bool = True
    rollback_on_error: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineSettings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")

        settings = cls(**{k: v for k, v in data.items() if k in known})
        if settings.default_mode not in ("full", "patch"):
            raise ValueError(
                f"Invalid default_mode: {settings.default_mode}. Must be 'full' or 'patch'"
            )
        return settings

    def wrap_policies(self) -> list:
        """Policy chain for the line-wrap reconstructor."""
        from ..config_engine.wrap import default_policies

        return default_policies(self.wrap_marker, self.extra_command_words)

    def context_kinds(self) -> tuple:
        """Built-in context kinds followed by configured ones."""
        from ..config_engine.scanner import DEFAULT_CONTEXT_KINDS, ContextKind

        extra = []
        for entry in self.extra_context_kinds:
            try:
                extra.append(ContextKind(
                    name=entry["name"],
                    header=re.compile(entry["header"]),
                    leave=re.compile(entry["leave"]),
                    closing=re.compile(entry["closing"]) if entry.get("closing") else None,
                    members=tuple(entry.get("members", ())),
                ))
            except KeyError as e:
                raise ValueError(f"Context kind missing field {e}: {entry}")
            except re.error as e:
                raise ValueError(f"Context kind {entry.get('name')}: bad pattern: {e}")
        return DEFAULT_CONTEXT_KINDS + tuple(extra)


def _find_config() -> Optional[Path]:
    """Find the rtx-config.yaml settings file."""
    search_paths = [
        Path.cwd() / "configs" / "rtx-config.yaml",
        Path.cwd() / "rtx-config.yaml",
        Path.home() / ".config" / "rtx-config" / "rtx-config.yaml",
    ]

    for path in search_paths:
        if path.exists():
            return path
    return None


def load_settings(config_path: Optional[Union[str, Path]] = None) -> EngineSettings:
    """
    Load engine settings.

    Without an explicit path the search paths are tried in order. No file
    at all means defaults.

    Raises:
        FileNotFoundError: If an explicit path does not exist
        ValueError: If the file holds invalid settings
    """
    path = Path(config_path) if config_path else _find_config()
    if path is None:
        logger.debug("No rtx-config.yaml found, using defaults")
        return EngineSettings()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings must be a mapping")

    logger.info(f"Loaded settings from {path}")
    return EngineSettings.from_dict(data)
