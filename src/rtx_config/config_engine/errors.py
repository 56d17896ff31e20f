"""Error types for the Config Engine.

Decode problems are collected per record and never abort a whole stanza.
Encode problems are raised before any command text is produced.
"""
from dataclasses import dataclass


class ConfigEngineError(Exception):
    """Base class for all config engine errors."""
    pass


class ValidationError(ConfigEngineError):
    """A record failed validation and cannot be encoded."""

    def __init__(self, feature: str, errors: list[str]):
        self.feature = feature
        self.errors = list(errors)
        super().__init__(f"{feature}: {'; '.join(self.errors)}")


class ScopedDecodeError(ConfigEngineError):
    """A single line matched a feature prefix but could not be parsed."""

    def __init__(self, feature: str, line: str, reason: str):
        self.feature = feature
        self.line = line
        self.reason = reason
        super().__init__(f"{feature}: {reason}: {line!r}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScopedDecodeError):
            return NotImplemented
        return (
            self.feature == other.feature and
            self.line == other.line and
            self.reason == other.reason
        )

    def __hash__(self) -> int:
        return hash((self.feature, self.line, self.reason))


@dataclass(frozen=True)
class ReconstructionAmbiguity:
    """A wrap point that could not be classified with certainty.

    Recorded and logged for audit, never raised.
    """
    previous: str
    fragment: str
    resolution: str
