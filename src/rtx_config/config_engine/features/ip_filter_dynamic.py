"""Dynamic (stateful) IPv4 filters.

Two forms of the same command exist and are told apart by the ``filter``
keyword, never by counting fields::

    ip filter dynamic 100 * * www syslog on
    ip filter dynamic 101 * * filter 200 201 in 210 out 220 timeout=60
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .base import FeatureCodec, format_id_list, on_off, optional_ids, parse_id_list

VALID_DYNAMIC_PROTOCOLS = (
    "ftp", "www", "https", "smtp", "submission", "pop3", "dns", "domain",
    "telnet", "ssh", "tftp", "ntp", "tcp", "udp", "*",
)

DYNAMIC_LINE = re.compile(r"^ip\s+filter\s+dynamic\s+(\d+)\s+(\S+)\s+(\S+)\s+(.+)$")
TIMEOUT_TOKEN = re.compile(r"^timeout=(\d+)$")


class DynamicForm(str, Enum):
    """Which command form a dynamic filter uses."""
    PROTOCOL = "protocol"
    FILTER = "filter"


@dataclass
class IPFilterDynamic:
    """One dynamic filter.

    filters/in_filters/out_filters only exist in the filter form. For
    in/out, None means the keyword is absent and [] means the keyword is
    present with no numbers.
    """
    number: int
    source: str
    destination: str
    form: DynamicForm = DynamicForm.PROTOCOL
    protocol: Optional[str] = None
    filters: Optional[list[int]] = None
    in_filters: Optional[list[int]] = None
    out_filters: Optional[list[int]] = None
    syslog: Optional[bool] = None
    timeout: Optional[int] = None


class IPFilterDynamicCodec(FeatureCodec):
    """Codec for ``ip filter dynamic`` lines."""

    name = "ip_filter_dynamic"
    prefix = re.compile(r"^ip\s+filter\s+dynamic\s")

    def parse_line(self, line: str) -> IPFilterDynamic:
        m = DYNAMIC_LINE.match(line)
        if not m:
            raise ValueError("expected: ip filter dynamic <n> <src> <dst> <protocol|filter ...>")

        record = IPFilterDynamic(
            number=int(m.group(1)),
            source=m.group(2),
            destination=m.group(3),
        )
        tokens = m.group(4).split()

        if tokens[0] == "filter":
            record.form = DynamicForm.FILTER
            rest = self._parse_filter_lists(record, tokens[1:])
        else:
            record.form = DynamicForm.PROTOCOL
            record.protocol = tokens[0].lower()
            rest = tokens[1:]

        self._parse_options(record, rest)
        return record

    def _parse_filter_lists(self, record: IPFilterDynamic, tokens: list[str]) -> list[str]:
        """Consume ``<ids> [in <ids>] [out <ids>]``; return the leftover tokens."""
        lists: dict[str, list[str]] = {"filter": []}
        current = "filter"
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token in ("in", "out"):
                if token in lists:
                    raise ValueError(f"duplicate {token!r} list")
                lists[token] = []
                current = token
            elif token == "syslog" or TIMEOUT_TOKEN.match(token):
                break
            else:
                lists[current].append(token)
            i += 1

        record.filters = parse_id_list(" ".join(lists["filter"]))
        if not record.filters:
            raise ValueError("filter form needs at least one filter number")
        if "in" in lists:
            record.in_filters = parse_id_list(" ".join(lists["in"]))
        if "out" in lists:
            record.out_filters = parse_id_list(" ".join(lists["out"]))
        return tokens[i:]

    def _parse_options(self, record: IPFilterDynamic, tokens: list[str]) -> None:
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token == "syslog":
                if i + 1 >= len(tokens) or tokens[i + 1] not in ("on", "off"):
                    raise ValueError("syslog needs on or off")
                record.syslog = tokens[i + 1] == "on"
                i += 2
                continue
            m = TIMEOUT_TOKEN.match(token)
            if m:
                record.timeout = int(m.group(1))
                i += 1
                continue
            raise ValueError(f"unexpected token {token!r}")

    def create_commands(self, record: IPFilterDynamic) -> list[str]:
        parts = [
            "ip", "filter", "dynamic", str(record.number),
            record.source, record.destination,
        ]
        if record.form == DynamicForm.FILTER:
            parts += ["filter", format_id_list(record.filters or [])]
            if record.in_filters is not None:
                parts.append("in")
                if record.in_filters:
                    parts.append(format_id_list(record.in_filters))
            if record.out_filters is not None:
                parts.append("out")
                if record.out_filters:
                    parts.append(format_id_list(record.out_filters))
        else:
            parts.append(record.protocol)
        if record.syslog is not None:
            parts += ["syslog", on_off(record.syslog)]
        if record.timeout is not None:
            parts.append(f"timeout={record.timeout}")
        return [" ".join(parts)]

    def delete_commands(self, record: IPFilterDynamic) -> list[str]:
        return [f"no ip filter dynamic {record.number}"]

    def identity(self, record: IPFilterDynamic) -> int:
        return record.number

    def fallback_key(self, record: IPFilterDynamic) -> tuple:
        target = record.protocol if record.form == DynamicForm.PROTOCOL else tuple(record.filters or ())
        return (record.source, record.destination, DynamicForm(record.form).value, target)

    def validate(self, record: IPFilterDynamic) -> list[str]:
        errors = []
        if not 1 <= record.number <= 65535:
            errors.append(f"filter number must be between 1 and 65535, got {record.number}")
        if not record.source:
            errors.append("source is required")
        if not record.destination:
            errors.append("destination is required")

        if record.form == DynamicForm.PROTOCOL:
            if not record.protocol:
                errors.append("protocol is required")
            elif record.protocol not in VALID_DYNAMIC_PROTOCOLS:
                errors.append(
                    f"invalid dynamic protocol {record.protocol!r}, "
                    f"must be one of: {', '.join(VALID_DYNAMIC_PROTOCOLS)}"
                )
            if record.filters is not None or record.in_filters is not None or record.out_filters is not None:
                errors.append("filter lists are only allowed in the filter form")
        else:
            if record.protocol:
                errors.append("protocol is not allowed in the filter form")
            if not record.filters:
                errors.append("filter form needs at least one filter number")

        if record.timeout is not None and record.timeout < 1:
            errors.append(f"timeout must be positive, got {record.timeout}")
        return errors

    def show_command(self) -> str:
        return 'show config | grep "ip filter dynamic"'

    def from_dict(self, data: dict[str, Any]) -> IPFilterDynamic:
        filters = optional_ids(data.get("filters"))
        form = data.get("form") or ("filter" if filters is not None else "protocol")
        protocol = data.get("protocol")
        syslog = data.get("syslog")
        timeout = data.get("timeout")
        return IPFilterDynamic(
            number=int(data["number"]),
            source=str(data.get("source", "*")),
            destination=str(data.get("destination", "*")),
            form=DynamicForm(form),
            protocol=str(protocol).lower() if protocol is not None else None,
            filters=filters,
            in_filters=optional_ids(data.get("in_filters")),
            out_filters=optional_ids(data.get("out_filters")),
            syslog=bool(syslog) if syslog is not None else None,
            timeout=int(timeout) if timeout is not None else None,
        )
