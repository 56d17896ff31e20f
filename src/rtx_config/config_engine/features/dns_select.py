"""Domain based DNS server selection: ``dns server select``.

    dns server select <id> <srv> [edns=on|off] [<srv2> [edns=on|off]]
        [<type>] <pattern> [<original-sender>] [restrict pp <n>]

Field order is strict on the device, so the decoder walks tokens left to
right: servers, optional record type, query pattern, optional sender, then
the optional pp restriction. "." is always a query pattern.
"""
import ipaddress
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from .base import FeatureCodec

VALID_RECORD_TYPES = ("a", "aaaa", "ptr", "mx", "ns", "cname", "any")
MAX_SERVERS = 2
DEFAULT_PRIORITY_STEP = 10

SELECT_LINE = re.compile(r"^dns\s+server\s+select\s+(\d+)\s+(.+)$")


@dataclass
class DNSServer:
    """Upstream server of a select entry."""
    address: str
    edns: bool = False


@dataclass
class DNSServerSelect:
    """One selection entry; the id doubles as its priority."""
    id: int
    servers: list[DNSServer] = field(default_factory=list)
    query_pattern: str = "."
    record_type: str = "a"
    original_sender: Optional[str] = None
    restrict_pp: Optional[int] = None


def _is_ip(text: str) -> bool:
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


def _is_sender(text: str) -> bool:
    """IP, CIDR or ``a-b`` range."""
    if "-" in text:
        low, _, high = text.partition("-")
        return _is_ip(low) and _is_ip(high)
    try:
        ipaddress.ip_network(text, strict=False)
    except ValueError:
        return False
    return True


def normalize_record_type(record_type: Optional[str]) -> str:
    return (record_type or "a").lower()


def assign_priorities(
    selects: list[DNSServerSelect],
    start: int,
    step: int = DEFAULT_PRIORITY_STEP,
) -> list[DNSServerSelect]:
    """Give entries ids from their list position: start, start+step, ..."""
    if step < 1:
        raise ValueError(f"priority step must be positive, got {step}")
    for i, sel in enumerate(selects):
        sel.id = start + i * step
    return selects


class DNSSelectCodec(FeatureCodec):
    """Codec for ``dns server select`` entries."""

    name = "dns_select"
    prefix = re.compile(r"^dns\s+server\s+select\s")

    def parse_line(self, line: str) -> DNSServerSelect:
        m = SELECT_LINE.match(line)
        if not m:
            raise ValueError("expected: dns server select <id> <server> ... <pattern>")
        sel = DNSServerSelect(id=int(m.group(1)))
        tokens = m.group(2).split()
        i = 0

        while i < len(tokens) and len(sel.servers) < MAX_SERVERS and _is_ip(tokens[i]):
            server = DNSServer(address=tokens[i])
            i += 1
            if i < len(tokens) and tokens[i] in ("edns=on", "edns=off"):
                server.edns = tokens[i] == "edns=on"
                i += 1
            sel.servers.append(server)
        if not sel.servers:
            raise ValueError("at least one server address is required")

        if i < len(tokens) and tokens[i] in VALID_RECORD_TYPES:
            sel.record_type = tokens[i]
            i += 1

        if i >= len(tokens):
            raise ValueError("query pattern is required")
        sel.query_pattern = tokens[i]
        i += 1

        if i < len(tokens) and _is_sender(tokens[i]):
            sel.original_sender = tokens[i]
            i += 1

        if i < len(tokens):
            if tokens[i:i + 2] != ["restrict", "pp"] or len(tokens) != i + 3 or not tokens[i + 2].isdigit():
                raise ValueError(f"unexpected trailing tokens: {' '.join(tokens[i:])}")
            sel.restrict_pp = int(tokens[i + 2])

        return sel

    def create_commands(self, record: DNSServerSelect) -> list[str]:
        parts = ["dns", "server", "select", str(record.id)]
        for server in record.servers:
            parts.append(server.address)
            if server.edns:
                parts.append("edns=on")
        record_type = normalize_record_type(record.record_type)
        if record_type != "a":
            parts.append(record_type)
        parts.append(record.query_pattern)
        if record.original_sender:
            parts.append(record.original_sender)
        if record.restrict_pp is not None:
            parts += ["restrict", "pp", str(record.restrict_pp)]
        return [" ".join(parts)]

    def delete_commands(self, record: DNSServerSelect) -> list[str]:
        return [f"no dns server select {record.id}"]

    def identity(self, record: DNSServerSelect) -> int:
        return record.id

    def fallback_key(self, record: DNSServerSelect) -> tuple[str, str]:
        return (record.query_pattern, normalize_record_type(record.record_type))

    def validate(self, record: DNSServerSelect) -> list[str]:
        errors = []
        if not 1 <= record.id <= 65535:
            errors.append(f"dns server select id must be between 1 and 65535, got {record.id}")
        if not record.servers:
            errors.append(f"dns server select {record.id} must have at least one server")
        if len(record.servers) > MAX_SERVERS:
            errors.append(
                f"dns server select {record.id}: maximum {MAX_SERVERS} servers allowed, "
                f"got {len(record.servers)}"
            )
        for server in record.servers:
            if not _is_ip(server.address):
                errors.append(f"dns server select {record.id}: invalid server address {server.address!r}")
        if not record.query_pattern:
            errors.append(f"dns server select {record.id} must have a query pattern")
        if normalize_record_type(record.record_type) not in VALID_RECORD_TYPES:
            errors.append(
                f"dns server select {record.id}: invalid record type {record.record_type!r}, "
                f"must be one of: {', '.join(VALID_RECORD_TYPES)}"
            )
        if record.original_sender and not _is_sender(record.original_sender):
            errors.append(f"dns server select {record.id}: invalid original sender {record.original_sender!r}")
        return errors

    def show_command(self) -> str:
        return 'show config | grep "dns server select"'

    def from_dict(self, data: dict[str, Any]) -> DNSServerSelect:
        servers = []
        for server in data.get("servers", []):
            if isinstance(server, str):
                servers.append(DNSServer(address=server))
            else:
                servers.append(DNSServer(
                    address=str(server["address"]),
                    edns=bool(server.get("edns", False)),
                ))
        restrict_pp = data.get("restrict_pp")
        return DNSServerSelect(
            id=int(data.get("id", 0)),
            servers=servers,
            query_pattern=str(data.get("query_pattern", ".")),
            record_type=normalize_record_type(data.get("record_type")),
            original_sender=data.get("original_sender"),
            restrict_pp=int(restrict_pp) if restrict_pp is not None else None,
        )
