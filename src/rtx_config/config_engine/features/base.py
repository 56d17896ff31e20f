"""Base feature codec.

A feature codec owns one area of router configuration (filters, routes,
tunnels...). It decodes scanner output into typed records and encodes
records back into the commands that create, update or delete them.
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Optional

from ..errors import ScopedDecodeError, ValidationError
from ..scanner import Stanza

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """What an encoded command set should do on the device."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class DecodeResult:
    """Records decoded from a stanza plus per-line errors."""
    records: list[Any] = field(default_factory=list)
    errors: list[ScopedDecodeError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def extend(self, other: "DecodeResult") -> None:
        self.records.extend(other.records)
        self.errors.extend(other.errors)


ID_LIST = re.compile(r"^\d+(?:\s+\d+)*$")


def parse_id_list(text: str) -> list[int]:
    """Parse a whitespace separated list of filter numbers.

    Raises ValueError on anything that is not a plain number.
    """
    text = text.strip()
    if not text:
        return []
    if not ID_LIST.match(text):
        raise ValueError(f"expected filter numbers, got {text!r}")
    return [int(n) for n in text.split()]


def format_id_list(ids: list[int]) -> str:
    return " ".join(str(n) for n in ids)


def on_off(value: bool) -> str:
    return "on" if value else "off"


def optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def optional_ids(value: Any) -> Optional[list[int]]:
    """Desired-state id list: None stays unset, anything else becomes a list."""
    if value is None:
        return None
    if isinstance(value, (int, str)):
        value = str(value).split()
    return [int(v) for v in value]


class FeatureCodec(ABC):
    """Decoder/encoder pair for one configuration feature."""

    name: str = ""
    # Lines owned by this feature; a match that then fails parsing is an error
    prefix: re.Pattern = re.compile(r"^$")

    def decode(self, stanza: Stanza) -> DecodeResult:
        """Decode the feature from a scanned stanza (top-level lines by default)."""
        return self.decode_lines(stanza.top_level)

    def decode_lines(self, lines: list[str]) -> DecodeResult:
        """
        Decode every owned line independently.

        A line that matches the feature prefix but fails parsing becomes a
        ScopedDecodeError; the remaining lines still decode.
        """
        result = DecodeResult()
        for line in lines:
            line = line.strip()
            if not self.prefix.match(line):
                continue
            try:
                record = self.parse_line(line)
            except ValueError as e:
                logger.warning(f"{self.name}: cannot decode {line!r}: {e}")
                result.errors.append(ScopedDecodeError(self.name, line, str(e)))
                continue
            if record is not None:
                result.records.append(record)
        return self.merge(result)

    def parse_line(self, line: str) -> Any:
        """Parse one owned line into a record; raise ValueError on bad input."""
        raise NotImplementedError(f"{self.name} does not decode single lines")

    def merge(self, result: DecodeResult) -> DecodeResult:
        """Hook for features that fold several lines into one record."""
        return result

    def encode(
        self,
        record: Any,
        intent: Intent,
        observed: Optional[Any] = None,
    ) -> list[str]:
        """
        Encode a record into device commands.

        Args:
            record: Typed record to encode
            intent: create, update or delete
            observed: Current device record, used by updates that must
                clear settings the record no longer carries

        Returns:
            Commands in execution order

        Raises:
            ValidationError: If the record is invalid (nothing is produced)
        """
        intent = Intent(intent)
        if intent == Intent.DELETE:
            return self.delete_commands(record)

        errors = self.validate(record)
        if errors:
            raise ValidationError(self.name, errors)

        if intent == Intent.UPDATE:
            return self.update_commands(record, observed)
        return self.create_commands(record)

    @abstractmethod
    def create_commands(self, record: Any) -> list[str]:
        """Commands creating the record."""
        pass

    def update_commands(self, record: Any, observed: Optional[Any]) -> list[str]:
        """Commands updating the record; RTX overwrites by identity."""
        return self.create_commands(record)

    @abstractmethod
    def delete_commands(self, record: Any) -> list[str]:
        """Commands removing the record."""
        pass

    @abstractmethod
    def identity(self, record: Any) -> Hashable:
        """Primary identity key."""
        pass

    def fallback_key(self, record: Any) -> Optional[tuple]:
        """Secondary tuple used when identities do not line up."""
        return None

    def validate(self, record: Any) -> list[str]:
        """Return validation error messages, empty if valid."""
        return []

    @abstractmethod
    def show_command(self) -> str:
        """Command reading this feature's configuration from the device."""
        pass

    @abstractmethod
    def from_dict(self, data: dict[str, Any]) -> Any:
        """Build a record from desired-state input."""
        pass
