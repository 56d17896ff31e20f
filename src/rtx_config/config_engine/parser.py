"""Parser for desired state configuration.

Converts dict/YAML input to strongly-typed DesiredState objects.
"""
import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Union

import yaml

from .features import FEATURES, assign_priorities, get_codec
from .features.dns_select import DEFAULT_PRIORITY_STEP
from .schema import DesiredState

logger = logging.getLogger(__name__)


class ParseError(Exception):
    """Error parsing desired state configuration."""
    pass


class ConfigParser:
    """Parse desired state from dict/YAML format."""

    def parse(self, config: dict[str, Any]) -> DesiredState:
        """
        Parse a configuration dict into a DesiredState object.

        Example input:
            device_id: rtx1210-office
            mode: patch
            records:
              ip_filter:
                - {number: 100, action: pass, source: "*", destination: "*", protocol: tcp}
              dns_select:
                priority_start: 500
                entries:
                  - {servers: [192.168.1.1], query_pattern: corp.example.com}

        Args:
            config: Dict with device_id, mode and records

        Returns:
            DesiredState object

        Raises:
            ParseError: If config is invalid
        """
        if not isinstance(config, dict):
            raise ParseError("Configuration must be a mapping")

        # Required field
        device_id = config.get("device_id") or config.get("device")
        if not device_id:
            raise ParseError("Missing required field: device_id or device")

        # Optional fields with defaults
        version = config.get("version", 1)
        checksum = config.get("checksum")
        mode = config.get("mode", "patch")

        if mode not in ("full", "patch"):
            raise ParseError(f"Invalid mode: {mode}. Must be 'full' or 'patch'")

        records = {}
        for feature, section in (config.get("records") or {}).items():
            if feature not in FEATURES:
                raise ParseError(
                    f"Unknown feature: {feature}. Must be one of {', '.join(FEATURES)}"
                )
            records[feature] = self._parse_feature(feature, section)

        return DesiredState(
            device_id=str(device_id),
            version=version,
            checksum=checksum,
            source_checksum=compute_checksum(config) if checksum else None,
            mode=mode,
            records=records,
            settings=config.get("settings", {}) or {},
        )

    def _parse_feature(self, feature: str, section: Any) -> list[Any]:
        """Parse one feature's record list."""
        entries = section
        options: dict[str, Any] = {}
        if isinstance(section, dict):
            entries = section.get("entries", [])
            options = {k: v for k, v in section.items() if k != "entries"}

        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise ParseError(f"{feature}: entries must be a list")

        codec = get_codec(feature)
        records = []
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ParseError(f"{feature}[{i}]: entry must be a mapping")
            try:
                records.append(codec.from_dict(entry))
            except KeyError as e:
                raise ParseError(f"{feature}[{i}]: missing field {e}")
            except (ValueError, TypeError) as e:
                raise ParseError(f"{feature}[{i}]: {e}")

        if feature == "dns_select" and "priority_start" in options:
            try:
                assign_priorities(
                    records,
                    start=int(options["priority_start"]),
                    step=int(options.get("priority_step", DEFAULT_PRIORITY_STEP)),
                )
            except ValueError as e:
                raise ParseError(f"{feature}: {e}")
        elif options:
            logger.warning(f"{feature}: ignoring options {', '.join(sorted(options))}")

        return records


def load_file(path: Union[str, Path]) -> DesiredState:
    """
    Load and parse a desired state YAML file.

    Raises:
        ParseError: If the file is missing, is not valid YAML or fails parsing
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ParseError(f"Cannot read {path}: {e}")
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML in {path}: {e}")

    logger.debug(f"Loaded desired state from {path}")
    return ConfigParser().parse(data or {})


def compute_checksum(config: dict[str, Any]) -> str:
    """
    Compute SHA256 checksum of a config dict.

    Useful for integrity verification.
    """
    # Remove existing checksum field for computation
    config_copy = {k: v for k, v in config.items() if k != "checksum"}

    # Serialize deterministically
    config_str = json.dumps(config_copy, sort_keys=True, separators=(",", ":"), default=str)

    # Compute hash
    hash_bytes = hashlib.sha256(config_str.encode()).hexdigest()

    return f"sha256:{hash_bytes[:16]}"  # Short hash for readability
