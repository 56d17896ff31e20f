"""Secure filter bindings: ``ip <iface> secure filter in|out <ids> [dynamic <ids>]``.

Each filter list is tri-state:
  None  - no line for that direction
  []    - the line exists with no numbers
  [...] - the line lists these numbers
"""
import re
from dataclasses import dataclass, fields
from typing import Any, Optional

from ..scanner import Stanza
from .base import DecodeResult, FeatureCodec, format_id_list, optional_ids, parse_id_list

SECURE_FILTER_LINE = re.compile(r"^ip\s+(\S+)\s+secure\s+filter\s+(in|out)(?:\s+(.*))?$")
PP_INTERFACE = re.compile(r"^pp(\d+|-anonymous)$")


@dataclass
class InterfaceFilter:
    """Filter bindings of one interface."""
    interface: str
    inbound: Optional[list[int]] = None
    outbound: Optional[list[int]] = None
    dynamic_inbound: Optional[list[int]] = None
    dynamic_outbound: Optional[list[int]] = None


class InterfaceFilterCodec(FeatureCodec):
    """Codec for interface secure filter bindings (LAN, bridge and PP)."""

    name = "interface_filter"
    # "ip tunnel secure filter" belongs to the tunnel feature
    prefix = re.compile(r"^ip\s+(?!tunnel\s)\S+\s+secure\s+filter\s")

    def decode(self, stanza: Stanza) -> DecodeResult:
        result = DecodeResult()
        result.extend(self.decode_lines(stanza.top_level))
        for key, lines in stanza.contexts_of("pp").items():
            result.extend(self._decode_pp(key, lines))
        return result

    def _decode_pp(self, key: str, lines: list[str]) -> DecodeResult:
        result = self.decode_lines(lines)
        name = "pp-anonymous" if key == "anonymous" else f"pp{key}"
        for record in result.records:
            if record.interface == "pp":
                record.interface = name
        return result

    def parse_line(self, line: str) -> InterfaceFilter:
        m = SECURE_FILTER_LINE.match(line)
        if not m:
            raise ValueError("expected: ip <iface> secure filter in|out [ids] [dynamic ids]")
        iface, direction, rest = m.group(1), m.group(2), m.group(3) or ""

        static_part, has_dynamic, dynamic_part = rest.partition("dynamic")
        static_ids = parse_id_list(static_part)
        dynamic_ids = parse_id_list(dynamic_part) if has_dynamic else None

        record = InterfaceFilter(interface=iface)
        if direction == "in":
            record.inbound = static_ids
            record.dynamic_inbound = dynamic_ids
        else:
            record.outbound = static_ids
            record.dynamic_outbound = dynamic_ids
        return record

    def merge(self, result: DecodeResult) -> DecodeResult:
        """Fold the in and out lines of each interface into one record."""
        merged: dict[str, InterfaceFilter] = {}
        for record in result.records:
            target = merged.setdefault(record.interface, InterfaceFilter(record.interface))
            for f in fields(InterfaceFilter):
                value = getattr(record, f.name)
                if f.name != "interface" and value is not None:
                    setattr(target, f.name, value)
        return DecodeResult(records=list(merged.values()), errors=result.errors)

    def _line(self, record: InterfaceFilter, direction: str) -> Optional[str]:
        static = record.inbound if direction == "in" else record.outbound
        dynamic = record.dynamic_inbound if direction == "in" else record.dynamic_outbound
        if static is None:
            return None
        cmd = f"ip {self._cli_name(record)} secure filter {direction}"
        if static:
            cmd += f" {format_id_list(static)}"
        if dynamic is not None:
            cmd += " dynamic"
            if dynamic:
                cmd += f" {format_id_list(dynamic)}"
        return cmd

    def _cli_name(self, record: InterfaceFilter) -> str:
        return "pp" if PP_INTERFACE.match(record.interface) else record.interface

    def _in_context(self, record: InterfaceFilter, commands: list[str]) -> list[str]:
        """PP bindings must be issued inside ``pp select``."""
        m = PP_INTERFACE.match(record.interface)
        if not m or not commands:
            return commands
        key = "anonymous" if m.group(1) == "-anonymous" else m.group(1)
        return [f"pp select {key}"] + commands + ["pp select none"]

    def create_commands(self, record: InterfaceFilter) -> list[str]:
        commands = [
            line for line in (self._line(record, "in"), self._line(record, "out"))
            if line is not None
        ]
        return self._in_context(record, commands)

    def update_commands(
        self,
        record: InterfaceFilter,
        observed: Optional[InterfaceFilter],
    ) -> list[str]:
        commands = []
        for direction in ("in", "out"):
            line = self._line(record, direction)
            if line is not None:
                commands.append(line)
            elif observed is not None and self._line(observed, direction) is not None:
                commands.append(f"no ip {self._cli_name(record)} secure filter {direction}")
        return self._in_context(record, commands)

    def delete_commands(self, record: InterfaceFilter) -> list[str]:
        directions = [
            d for d, static in (("in", record.inbound), ("out", record.outbound))
            if static is not None
        ] or ["in", "out"]
        return self._in_context(record, [
            f"no ip {self._cli_name(record)} secure filter {d}" for d in directions
        ])

    def identity(self, record: InterfaceFilter) -> str:
        return record.interface

    def validate(self, record: InterfaceFilter) -> list[str]:
        errors = []
        if not record.interface:
            errors.append("interface is required")
        for static_name, dynamic_name in (
            ("inbound", "dynamic_inbound"),
            ("outbound", "dynamic_outbound"),
        ):
            if getattr(record, dynamic_name) is not None and getattr(record, static_name) is None:
                errors.append(
                    f"{dynamic_name} requires {static_name} to be set (use [] for no static filters)"
                )
            for n in (getattr(record, static_name) or []) + (getattr(record, dynamic_name) or []):
                if not 1 <= n <= 65535:
                    errors.append(f"filter number must be between 1 and 65535, got {n}")
        return errors

    def show_command(self) -> str:
        return "show config"

    def from_dict(self, data: dict[str, Any]) -> InterfaceFilter:
        return InterfaceFilter(
            interface=str(data["interface"]),
            inbound=optional_ids(data.get("inbound")),
            outbound=optional_ids(data.get("outbound")),
            dynamic_inbound=optional_ids(data.get("dynamic_inbound")),
            dynamic_outbound=optional_ids(data.get("dynamic_outbound")),
        )
