"""Static IPv4 routes: ``ip route <net> gateway <gw> [options] [gateway ...]``."""
import ipaddress
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from .base import FeatureCodec, DecodeResult

ROUTE_LINE = re.compile(r"^ip\s+route\s+(\S+)\s+gateway\s+(.+)$")
INTERFACE_GATEWAY = re.compile(r"^(?:lan|bridge)\d+$")
HOP_OPTIONS = ("weight", "filter", "hide", "keepalive")


@dataclass
class NextHop:
    """One gateway of a route.

    gateway is an IPv4 address or an interface form: "pp 1", "tunnel 2",
    "dhcp lan2", "lan1", "null" or "loopback".
    """
    gateway: str
    weight: int = 1
    filter: Optional[int] = None
    hide: bool = False
    keepalive: bool = False


@dataclass
class StaticRoute:
    """A route and its ordered next hops."""
    prefix: str
    mask: str
    next_hops: list[NextHop] = field(default_factory=list)

    @property
    def network(self) -> str:
        return format_network(self.prefix, self.mask)


def parse_network(network: str) -> tuple[str, str]:
    """Turn ``default``, ``a.b.c.d/len`` or ``a.b.c.d/m.m.m.m`` into prefix and mask."""
    if network == "default":
        return "0.0.0.0", "0.0.0.0"
    try:
        net = ipaddress.IPv4Network(network, strict=False)
    except ValueError:
        raise ValueError(f"invalid network {network!r}")
    prefix = network.split("/", 1)[0]
    return prefix, str(net.netmask)


def format_network(prefix: str, mask: str) -> str:
    """Canonical network text: ``default`` or CIDR."""
    if prefix == "0.0.0.0" and mask == "0.0.0.0":
        return "default"
    try:
        length = ipaddress.IPv4Network(f"0.0.0.0/{mask}").prefixlen
    except ValueError:
        return f"{prefix}/{mask}"
    return f"{prefix}/{length}"


def _is_ipv4(text: str) -> bool:
    try:
        ipaddress.IPv4Address(text)
    except ValueError:
        return False
    return True


def parse_hop(text: str) -> NextHop:
    """Parse one ``<gateway> [weight n] [filter n] [hide] [keepalive]`` clause."""
    tokens = text.split()
    if not tokens:
        raise ValueError("empty gateway")

    first = tokens[0]
    if first in ("pp", "tunnel", "dhcp"):
        if len(tokens) < 2:
            raise ValueError(f"gateway {first} needs an argument")
        hop = NextHop(gateway=f"{first} {tokens[1]}")
        i = 2
    elif first in ("null", "loopback") or INTERFACE_GATEWAY.match(first) or _is_ipv4(first):
        hop = NextHop(gateway=first)
        i = 1
    else:
        raise ValueError(f"unknown gateway {first!r}")

    while i < len(tokens):
        token = tokens[i]
        if token in ("weight", "filter"):
            if i + 1 >= len(tokens) or not tokens[i + 1].isdigit():
                raise ValueError(f"{token} needs a number")
            setattr(hop, token, int(tokens[i + 1]))
            i += 2
        elif token == "hide":
            hop.hide = True
            i += 1
        elif token == "keepalive":
            hop.keepalive = True
            i += 1
        else:
            raise ValueError(f"unexpected token {token!r}")
    return hop


def format_hop(hop: NextHop) -> str:
    parts = [hop.gateway]
    if hop.weight != 1:
        parts += ["weight", str(hop.weight)]
    if hop.filter is not None:
        parts += ["filter", str(hop.filter)]
    if hop.hide:
        parts.append("hide")
    if hop.keepalive:
        parts.append("keepalive")
    return " ".join(parts)


class StaticRouteCodec(FeatureCodec):
    """Codec for ``ip route``; hops of one network fold into one record."""

    name = "static_route"
    prefix = re.compile(r"^ip\s+route\s")

    def parse_line(self, line: str) -> StaticRoute:
        m = ROUTE_LINE.match(line)
        if not m:
            raise ValueError("expected: ip route <network> gateway <gateway> ...")
        prefix, mask = parse_network(m.group(1))
        clauses = re.split(r"\s+gateway\s+", m.group(2))
        return StaticRoute(
            prefix=prefix,
            mask=mask,
            next_hops=[parse_hop(clause) for clause in clauses],
        )

    def merge(self, result: DecodeResult) -> DecodeResult:
        merged: dict[tuple[str, str], StaticRoute] = {}
        for route in result.records:
            key = (route.prefix, route.mask)
            if key not in merged:
                merged[key] = route
                continue
            existing = merged[key]
            known = {hop.gateway for hop in existing.next_hops}
            existing.next_hops.extend(
                hop for hop in route.next_hops if hop.gateway not in known
            )
        return DecodeResult(records=list(merged.values()), errors=result.errors)

    def create_commands(self, record: StaticRoute) -> list[str]:
        clauses = " gateway ".join(format_hop(hop) for hop in record.next_hops)
        return [f"ip route {record.network} gateway {clauses}"]

    def delete_commands(self, record: StaticRoute) -> list[str]:
        return [f"no ip route {record.network}"]

    def identity(self, record: StaticRoute) -> tuple[str, str]:
        return (record.prefix, record.mask)

    def validate(self, record: StaticRoute) -> list[str]:
        errors = []
        if not _is_ipv4(record.prefix):
            errors.append(f"invalid prefix: {record.prefix!r}")
        if not _is_ipv4(record.mask):
            errors.append(f"invalid mask: {record.mask!r}")
        if not record.next_hops:
            errors.append("at least one next hop is required")
        for i, hop in enumerate(record.next_hops):
            try:
                parse_hop(hop.gateway)
            except ValueError as e:
                errors.append(f"next_hops[{i}]: {e}")
            if not 1 <= hop.weight <= 100:
                errors.append(f"next_hops[{i}]: weight must be between 1 and 100")
            if hop.filter is not None and hop.filter < 1:
                errors.append(f"next_hops[{i}]: filter must be positive")
        return errors

    def show_command(self) -> str:
        return 'show config | grep "ip route"'

    def from_dict(self, data: dict[str, Any]) -> StaticRoute:
        if "network" in data:
            prefix, mask = parse_network(str(data["network"]))
        else:
            prefix, mask = str(data["prefix"]), str(data["mask"])
        hops = []
        for hop in data.get("next_hops", []):
            if isinstance(hop, str):
                hops.append(parse_hop(hop))
            else:
                hops.append(NextHop(
                    gateway=str(hop["gateway"]),
                    weight=int(hop.get("weight", 1)),
                    filter=hop.get("filter"),
                    hide=bool(hop.get("hide", False)),
                    keepalive=bool(hop.get("keepalive", False)),
                ))
        return StaticRoute(prefix=prefix, mask=mask, next_hops=hops)
