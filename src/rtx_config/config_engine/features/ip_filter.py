"""Static IPv4 filters: ``ip filter <n> <action> <src> <dst> <proto> ...``."""
import re
from dataclasses import dataclass
from typing import Any, Optional

from .base import FeatureCodec, optional_str

VALID_ACTIONS = (
    "pass", "pass-log", "pass-nolog",
    "reject", "reject-log", "reject-nolog",
    "restrict", "restrict-log", "restrict-nolog",
)

VALID_PROTOCOLS = (
    "tcp", "udp", "tcpudp", "icmp", "ip", "*", "gre", "esp", "ah", "icmp6",
)

PORT_PROTOCOLS = ("tcp", "udp", "tcpudp")

FILTER_LINE = re.compile(
    r"^ip\s+filter\s+(\d+)\s+(\S+)\s+(\S+)\s+(\S+)\s+(\S+)"
    r"(?:\s+(\S+))?(?:\s+(\S+))?(?:\s+(established))?$"
)


@dataclass
class IPFilter:
    """One static filter rule."""
    number: int
    action: str
    source: str
    destination: str
    protocol: str
    source_port: Optional[str] = None
    dest_port: Optional[str] = None
    established: bool = False


class IPFilterCodec(FeatureCodec):
    """Codec for numbered static filters."""

    name = "ip_filter"
    # "ip filter dynamic", "ip filter set" and friends belong elsewhere
    prefix = re.compile(r"^ip\s+filter\s+(?!dynamic\b|set\b|directed-broadcast\b|source-route\b)\S")

    def parse_line(self, line: str) -> IPFilter:
        m = FILTER_LINE.match(line)
        if not m:
            raise ValueError("expected: ip filter <n> <action> <src> <dst> <proto> [ports]")

        number, action, src, dst, proto, sport, dport, established = m.groups()

        # Trailing "established" can land in a port slot when ports are absent
        if dport == "established" and not established:
            dport, established = None, "established"
        if sport == "established" and not established and dport is None:
            sport, established = None, "established"

        # "*" source port is the placeholder written when only dport is set
        if dport is not None and sport == "*":
            sport = None

        if action.lower() not in VALID_ACTIONS:
            raise ValueError(f"unknown action {action!r}")

        return IPFilter(
            number=int(number),
            action=action.lower(),
            source=src,
            destination=dst,
            protocol=proto.lower(),
            source_port=sport,
            dest_port=dport,
            established=established is not None,
        )

    def create_commands(self, record: IPFilter) -> list[str]:
        parts = [
            "ip", "filter", str(record.number), record.action,
            record.source, record.destination, record.protocol,
        ]
        if record.source_port:
            parts.append(record.source_port)
        elif record.dest_port:
            parts.append("*")
        if record.dest_port:
            parts.append(record.dest_port)
        if record.established:
            parts.append("established")
        return [" ".join(parts)]

    def delete_commands(self, record: IPFilter) -> list[str]:
        return [f"no ip filter {record.number}"]

    def identity(self, record: IPFilter) -> int:
        return record.number

    def fallback_key(self, record: IPFilter) -> tuple:
        return (
            record.action, record.source, record.destination,
            record.protocol, record.source_port, record.dest_port,
        )

    def validate(self, record: IPFilter) -> list[str]:
        errors = []
        if not 1 <= record.number <= 65535:
            errors.append(f"filter number must be between 1 and 65535, got {record.number}")
        if record.action not in VALID_ACTIONS:
            errors.append(
                f"invalid action {record.action!r}, must be one of: {', '.join(VALID_ACTIONS)}"
            )
        if not record.source:
            errors.append("source address is required")
        if not record.destination:
            errors.append("destination address is required")
        if record.protocol not in VALID_PROTOCOLS:
            errors.append(
                f"invalid protocol {record.protocol!r}, must be one of: {', '.join(VALID_PROTOCOLS)}"
            )
        if record.established and record.protocol != "tcp":
            errors.append("established can only be used with protocol tcp")
        if (record.source_port or record.dest_port) and record.protocol not in PORT_PROTOCOLS:
            errors.append(f"ports require protocol tcp, udp or tcpudp, got {record.protocol!r}")
        return errors

    def show_command(self) -> str:
        return 'show config | grep "ip filter"'

    def from_dict(self, data: dict[str, Any]) -> IPFilter:
        source_port = optional_str(data.get("source_port"))
        dest_port = optional_str(data.get("dest_port"))
        if dest_port is not None and source_port == "*":
            source_port = None
        return IPFilter(
            number=int(data["number"]),
            action=str(data.get("action", "pass")).lower(),
            source=str(data.get("source", "*")),
            destination=str(data.get("destination", "*")),
            protocol=str(data.get("protocol", "*")).lower(),
            source_port=source_port,
            dest_port=dest_port,
            established=bool(data.get("established", False)),
        )
