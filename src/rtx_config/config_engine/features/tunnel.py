"""Tunnel interfaces, decoded from ``tunnel select N`` contexts.

A typical IPsec tunnel as shown by the router::

    tunnel select 1
     description site-b
     tunnel encapsulation ipsec
     ipsec tunnel 101
      ipsec sa policy 101 1 esp aes-cbc sha-hmac
      ipsec ike keepalive use 1 on dpd 30 3
      ipsec ike local address 1 192.168.0.1
      ipsec ike pre-shared-key 1 text secret
      ipsec ike remote address 1 203.0.113.2
     ip tunnel secure filter in 200 201
     ip tunnel tcp mss limit auto
     tunnel enable 1

An L2TPv3 tunnel carries ``l2tp`` lines in the same context::

    tunnel select 2
     tunnel encapsulation l2tpv3
     l2tp hostname branch-rtx
     l2tp local router-id 192.168.1.1
     l2tp remote router-id 192.168.2.1
     l2tp remote end-id branch
     l2tp always-on on
     l2tp keepalive use on 60 3
     tunnel enable 2

Each context decodes to one Tunnel record or to one ScopedDecodeError.
``ipsec ike`` lines found at top level are attached to the tunnel using the
same IKE gateway id.
"""
import ipaddress
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..errors import ScopedDecodeError
from ..scanner import Stanza, StanzaScanner
from .base import DecodeResult, FeatureCodec, format_id_list, optional_ids, parse_id_list

logger = logging.getLogger(__name__)

ENCAPSULATIONS = ("ipsec", "l2tpv3", "l2tp")
ESP_ENCRYPTIONS = ("aes-cbc-256", "aes-cbc", "3des-cbc", "des-cbc")
ESP_HASHES = ("sha256-hmac", "sha-hmac", "md5-hmac")
IKE_ENCRYPTIONS = ("aes-cbc-256", "aes-cbc", "3des-cbc", "des-cbc")
IKE_HASHES = ("sha256", "sha", "md5")
IKE_GROUPS = ("modp2048", "modp1536", "modp1024", "modp768")
KEEPALIVE_MODES = ("dpd", "heartbeat", "off")
L2TP_ENCAPSULATIONS = ("l2tpv3", "l2tp")


@dataclass
class IKEKeepalive:
    """``ipsec ike keepalive use``: dpd, heartbeat or off."""
    mode: str = "dpd"
    interval: Optional[int] = None
    retry: Optional[int] = None


@dataclass
class IPsecSettings:
    """IPsec SA and IKE settings of a tunnel.

    policy_id is the number after ``ipsec tunnel`` (the SA policy in use);
    gateway_id is the IKE gateway number used by ``ipsec ike`` lines.
    """
    policy_id: int
    gateway_id: Optional[int] = None
    protocol: str = "esp"
    encryption: Optional[str] = None
    hash: Optional[str] = None
    local_address: Optional[str] = None
    remote_address: Optional[str] = None
    pre_shared_key: Optional[str] = None
    ike_encryption: Optional[str] = None
    ike_hash: Optional[str] = None
    ike_group: Optional[str] = None
    keepalive: Optional[IKEKeepalive] = None


@dataclass
class L2TPKeepalive:
    """``l2tp keepalive use``: on, optionally with interval and retry, or off."""
    enabled: bool = True
    interval: Optional[int] = None
    retry: Optional[int] = None


@dataclass
class L2TPSettings:
    """L2TP settings of a tunnel.

    Router ids, the remote end id and tunnel auth only apply to L2TPv3.
    On/off settings are tri-state: None means the line is absent.
    """
    hostname: Optional[str] = None
    local_router_id: Optional[str] = None
    remote_router_id: Optional[str] = None
    remote_end_id: Optional[str] = None
    always_on: Optional[bool] = None
    keepalive: Optional[L2TPKeepalive] = None
    tunnel_auth: Optional[bool] = None
    tunnel_auth_password: Optional[str] = None
    syslog: Optional[bool] = None


@dataclass
class Tunnel:
    """One ``tunnel select`` context."""
    tunnel_id: int
    description: Optional[str] = None
    encapsulation: Optional[str] = None
    ipsec: Optional[IPsecSettings] = None
    l2tp: Optional[L2TPSettings] = None
    secure_filter_in: Optional[list[int]] = None
    secure_filter_out: Optional[list[int]] = None
    tcp_mss: Optional[str] = None
    enabled: Optional[bool] = None


class _TunnelBuilder:
    """Accumulates one context's lines into a Tunnel."""

    def __init__(self, tunnel_id: int):
        self.tunnel = Tunnel(tunnel_id=tunnel_id)
        self.sa_policy_id: Optional[int] = None

    def ipsec(self) -> IPsecSettings:
        if self.tunnel.ipsec is None:
            raise ValueError("ipsec setting before 'ipsec tunnel'")
        return self.tunnel.ipsec

    def gateway(self, gateway_id: str) -> IPsecSettings:
        """IPsec settings for an ike line, checking the gateway id is consistent."""
        ipsec = self.ipsec()
        gid = int(gateway_id)
        if ipsec.gateway_id is None:
            ipsec.gateway_id = gid
        elif ipsec.gateway_id != gid:
            raise ValueError(f"ike gateway {gid} does not match gateway {ipsec.gateway_id}")
        return ipsec

    def l2tp(self) -> L2TPSettings:
        if self.tunnel.l2tp is None:
            self.tunnel.l2tp = L2TPSettings()
        return self.tunnel.l2tp

    def description(self, m: re.Match) -> None:
        self.tunnel.description = m.group(1)

    def encapsulation(self, m: re.Match) -> None:
        self.tunnel.encapsulation = m.group(1)

    def ipsec_tunnel(self, m: re.Match) -> None:
        self.tunnel.ipsec = IPsecSettings(policy_id=int(m.group(1)))

    def sa_policy(self, m: re.Match) -> None:
        ipsec = self.gateway(m.group(2))
        self.sa_policy_id = int(m.group(1))
        ipsec.protocol = m.group(3)
        if ipsec.protocol == "ah":
            if m.group(5):
                raise ValueError("ah takes only a hash algorithm")
            ipsec.hash = m.group(4)
        else:
            ipsec.encryption = m.group(4)
            ipsec.hash = m.group(5)

    def local_address(self, m: re.Match) -> None:
        self.gateway(m.group(1)).local_address = m.group(2)

    def remote_address(self, m: re.Match) -> None:
        self.gateway(m.group(1)).remote_address = m.group(2)

    def pre_shared_key(self, m: re.Match) -> None:
        self.gateway(m.group(1)).pre_shared_key = m.group(2)

    def ike_encryption(self, m: re.Match) -> None:
        self.gateway(m.group(1)).ike_encryption = m.group(2)

    def ike_hash(self, m: re.Match) -> None:
        self.gateway(m.group(1)).ike_hash = m.group(2)

    def ike_group(self, m: re.Match) -> None:
        self.gateway(m.group(1)).ike_group = m.group(2)

    def keepalive(self, m: re.Match) -> None:
        gateway, on_mode, interval, retry, off = m.groups()
        ipsec = self.gateway(gateway)
        mode = on_mode or off
        if mode == "off":
            ipsec.keepalive = IKEKeepalive(mode="off")
            return
        if mode == "heartbeat" and retry is None:
            raise ValueError("heartbeat needs interval and retry")
        ipsec.keepalive = IKEKeepalive(
            mode=mode,
            interval=int(interval),
            retry=int(retry) if retry is not None else None,
        )

    def l2tp_hostname(self, m: re.Match) -> None:
        self.l2tp().hostname = m.group(1)

    def l2tp_router_id(self, m: re.Match) -> None:
        setattr(self.l2tp(), f"{m.group(1)}_router_id", m.group(2))

    def l2tp_end_id(self, m: re.Match) -> None:
        self.l2tp().remote_end_id = m.group(1)

    def l2tp_always_on(self, m: re.Match) -> None:
        self.l2tp().always_on = m.group(1) == "on"

    def l2tp_keepalive(self, m: re.Match) -> None:
        interval, retry, off = m.groups()
        if off:
            self.l2tp().keepalive = L2TPKeepalive(enabled=False)
            return
        self.l2tp().keepalive = L2TPKeepalive(
            interval=int(interval) if interval else None,
            retry=int(retry) if retry else None,
        )

    def l2tp_tunnel_auth(self, m: re.Match) -> None:
        l2tp = self.l2tp()
        l2tp.tunnel_auth = m.group(1) == "on"
        l2tp.tunnel_auth_password = m.group(2)

    def l2tp_syslog(self, m: re.Match) -> None:
        self.l2tp().syslog = m.group(1) == "on"

    def secure_filter(self, m: re.Match) -> None:
        ids = parse_id_list(m.group(2) or "")
        if m.group(1) == "in":
            self.tunnel.secure_filter_in = ids
        else:
            self.tunnel.secure_filter_out = ids

    def tcp_mss(self, m: re.Match) -> None:
        self.tunnel.tcp_mss = m.group(1)

    def state(self, m: re.Match) -> None:
        if int(m.group(2)) != self.tunnel.tunnel_id:
            raise ValueError(f"tunnel {m.group(1)} {m.group(2)} inside tunnel {self.tunnel.tunnel_id}")
        self.tunnel.enabled = m.group(1) == "enable"

    def finish(self) -> Tunnel:
        ipsec = self.tunnel.ipsec
        if ipsec is not None and self.sa_policy_id is not None and self.sa_policy_id != ipsec.policy_id:
            raise ValueError(
                f"sa policy {self.sa_policy_id} does not match ipsec tunnel {ipsec.policy_id}"
            )
        return self.tunnel


# (owned prefix, full pattern, handler). A line matching the prefix but
# not the full pattern is malformed.
LineRule = tuple[re.Pattern, re.Pattern, Callable[[_TunnelBuilder, re.Match], None]]

TUNNEL_RULES: list[LineRule] = [
    (re.compile(r"^description\s"), re.compile(r"^description\s+(.+)$"),
     _TunnelBuilder.description),
    (re.compile(r"^tunnel\s+encapsulation\s"), re.compile(r"^tunnel\s+encapsulation\s+(ipsec|l2tpv3|l2tp)$"),
     _TunnelBuilder.encapsulation),
    (re.compile(r"^ipsec\s+tunnel\s"), re.compile(r"^ipsec\s+tunnel\s+(\d+)$"),
     _TunnelBuilder.ipsec_tunnel),
    (re.compile(r"^ipsec\s+sa\s+policy\s"),
     re.compile(r"^ipsec\s+sa\s+policy\s+(\d+)\s+(\d+)\s+(esp|ah)\s+(\S+)(?:\s+(\S+))?$"),
     _TunnelBuilder.sa_policy),
    (re.compile(r"^ipsec\s+ike\s+local\s+address\s"),
     re.compile(r"^ipsec\s+ike\s+local\s+address\s+(\d+)\s+(\S+)$"),
     _TunnelBuilder.local_address),
    (re.compile(r"^ipsec\s+ike\s+remote\s+address\s"),
     re.compile(r"^ipsec\s+ike\s+remote\s+address\s+(\d+)\s+(\S+)$"),
     _TunnelBuilder.remote_address),
    (re.compile(r"^ipsec\s+ike\s+pre-shared-key\s"),
     re.compile(r"^ipsec\s+ike\s+pre-shared-key\s+(\d+)\s+text\s+(.+)$"),
     _TunnelBuilder.pre_shared_key),
    (re.compile(r"^ipsec\s+ike\s+encryption\s"),
     re.compile(r"^ipsec\s+ike\s+encryption\s+(\d+)\s+(\S+)$"),
     _TunnelBuilder.ike_encryption),
    (re.compile(r"^ipsec\s+ike\s+hash\s"),
     re.compile(r"^ipsec\s+ike\s+hash\s+(\d+)\s+(\S+)$"),
     _TunnelBuilder.ike_hash),
    (re.compile(r"^ipsec\s+ike\s+group\s"),
     re.compile(r"^ipsec\s+ike\s+group\s+(\d+)\s+(\S+)$"),
     _TunnelBuilder.ike_group),
    (re.compile(r"^ipsec\s+ike\s+keepalive\s+use\s"),
     re.compile(r"^ipsec\s+ike\s+keepalive\s+use\s+(\d+)\s+(?:on\s+(dpd|heartbeat)\s+(\d+)(?:\s+(\d+))?|(off))$"),
     _TunnelBuilder.keepalive),
    (re.compile(r"^l2tp\s+hostname\s"), re.compile(r"^l2tp\s+hostname\s+(\S+)$"),
     _TunnelBuilder.l2tp_hostname),
    (re.compile(r"^l2tp\s+(?:local|remote)\s+router-id\s"),
     re.compile(r"^l2tp\s+(local|remote)\s+router-id\s+(\S+)$"),
     _TunnelBuilder.l2tp_router_id),
    (re.compile(r"^l2tp\s+remote\s+end-id\s"), re.compile(r"^l2tp\s+remote\s+end-id\s+(\S+)$"),
     _TunnelBuilder.l2tp_end_id),
    (re.compile(r"^l2tp\s+always-on\s"), re.compile(r"^l2tp\s+always-on\s+(on|off)$"),
     _TunnelBuilder.l2tp_always_on),
    (re.compile(r"^l2tp\s+keepalive\s+use\s"),
     re.compile(r"^l2tp\s+keepalive\s+use\s+(?:on(?:\s+(\d+)\s+(\d+))?|(off))$"),
     _TunnelBuilder.l2tp_keepalive),
    (re.compile(r"^l2tp\s+tunnel\s+auth\s"),
     re.compile(r"^l2tp\s+tunnel\s+auth\s+(on|off)(?:\s+(\S+))?$"),
     _TunnelBuilder.l2tp_tunnel_auth),
    (re.compile(r"^l2tp\s+syslog\s"), re.compile(r"^l2tp\s+syslog\s+(on|off)$"),
     _TunnelBuilder.l2tp_syslog),
    (re.compile(r"^ip\s+tunnel\s+secure\s+filter\s"),
     re.compile(r"^ip\s+tunnel\s+secure\s+filter\s+(in|out)(?:\s+(.*))?$"),
     _TunnelBuilder.secure_filter),
    (re.compile(r"^ip\s+tunnel\s+tcp\s+mss\s"),
     re.compile(r"^ip\s+tunnel\s+tcp\s+mss\s+limit\s+(auto|\d+)$"),
     _TunnelBuilder.tcp_mss),
    (re.compile(r"^tunnel\s+(?:enable|disable)\s"),
     re.compile(r"^tunnel\s+(enable|disable)\s+(\d+)$"),
     _TunnelBuilder.state),
]

IKE_LINE = re.compile(r"^ipsec\s+ike\s+\S+(?:\s+\S+)*?\s+(\d+)\s")


class TunnelCodec(FeatureCodec):
    """Codec for tunnel contexts."""

    name = "tunnel"
    prefix = re.compile(r"^tunnel\s+select\s+\d+$")

    def decode(self, stanza: Stanza) -> DecodeResult:
        result = DecodeResult()
        for key, lines in stanza.contexts_of("tunnel").items():
            try:
                tunnel = self.decode_context(int(key), lines)
            except ScopedDecodeError as e:
                logger.warning(f"Skipping tunnel {key}: {e}")
                result.errors.append(e)
                continue
            result.records.append(tunnel)

        self._attach_top_level_ike(result, stanza.top_level)
        return result

    def decode_lines(self, lines: list[str]) -> DecodeResult:
        """Decode command text that may contain several tunnel contexts."""
        return self.decode(StanzaScanner().scan(lines))

    def decode_context(self, tunnel_id: int, lines: list[str]) -> Tunnel:
        """Build one Tunnel from its context lines.

        Raises:
            ScopedDecodeError: On the first malformed owned line
        """
        builder = _TunnelBuilder(tunnel_id)
        for line in lines:
            self._apply(builder, line.strip())
        try:
            return builder.finish()
        except ValueError as e:
            raise ScopedDecodeError(self.name, f"tunnel select {tunnel_id}", str(e))

    def _apply(self, builder: _TunnelBuilder, line: str) -> None:
        for owned, pattern, handler in TUNNEL_RULES:
            if not owned.match(line):
                continue
            m = pattern.match(line)
            if not m:
                raise ScopedDecodeError(self.name, line, "malformed tunnel command")
            try:
                handler(builder, m)
            except ValueError as e:
                raise ScopedDecodeError(self.name, line, str(e))
            return

    def _attach_top_level_ike(self, result: DecodeResult, lines: list[str]) -> None:
        by_gateway = {
            t.ipsec.gateway_id: t for t in result.records
            if t.ipsec is not None and t.ipsec.gateway_id is not None
        }
        for line in lines:
            m = IKE_LINE.match(line)
            if not m or int(m.group(1)) not in by_gateway:
                continue
            tunnel = by_gateway[int(m.group(1))]
            builder = _TunnelBuilder(tunnel.tunnel_id)
            builder.tunnel = tunnel
            try:
                self._apply(builder, line)
            except ScopedDecodeError as e:
                result.errors.append(e)

    def _body(self, record: Tunnel) -> list[str]:
        lines = []
        if record.description is not None:
            lines.append(f"description {record.description}")
        if record.encapsulation is not None:
            lines.append(f"tunnel encapsulation {record.encapsulation}")
        if record.ipsec is not None:
            lines.extend(self._ipsec_lines(record.ipsec))
        if record.l2tp is not None:
            lines.extend(self._l2tp_lines(record.l2tp))
        for direction, ids in (("in", record.secure_filter_in), ("out", record.secure_filter_out)):
            if ids is not None:
                cmd = f"ip tunnel secure filter {direction}"
                lines.append(f"{cmd} {format_id_list(ids)}" if ids else cmd)
        if record.tcp_mss is not None:
            lines.append(f"ip tunnel tcp mss limit {record.tcp_mss}")
        return lines

    def _ipsec_lines(self, ipsec: IPsecSettings) -> list[str]:
        lines = [f"ipsec tunnel {ipsec.policy_id}"]
        gid = ipsec.gateway_id
        if gid is None:
            return lines
        if ipsec.hash or ipsec.encryption:
            algorithms = [a for a in (ipsec.encryption, ipsec.hash) if a]
            lines.append(
                f"ipsec sa policy {ipsec.policy_id} {gid} {ipsec.protocol} {' '.join(algorithms)}"
            )
        if ipsec.ike_encryption:
            lines.append(f"ipsec ike encryption {gid} {ipsec.ike_encryption}")
        if ipsec.ike_group:
            lines.append(f"ipsec ike group {gid} {ipsec.ike_group}")
        if ipsec.ike_hash:
            lines.append(f"ipsec ike hash {gid} {ipsec.ike_hash}")
        if ipsec.keepalive is not None:
            ka = ipsec.keepalive
            if ka.mode == "off":
                lines.append(f"ipsec ike keepalive use {gid} off")
            else:
                cmd = f"ipsec ike keepalive use {gid} on {ka.mode} {ka.interval}"
                lines.append(f"{cmd} {ka.retry}" if ka.retry is not None else cmd)
        if ipsec.local_address:
            lines.append(f"ipsec ike local address {gid} {ipsec.local_address}")
        if ipsec.pre_shared_key:
            lines.append(f"ipsec ike pre-shared-key {gid} text {ipsec.pre_shared_key}")
        if ipsec.remote_address:
            lines.append(f"ipsec ike remote address {gid} {ipsec.remote_address}")
        return lines

    def _l2tp_lines(self, l2tp: L2TPSettings) -> list[str]:
        lines = []
        if l2tp.hostname:
            lines.append(f"l2tp hostname {l2tp.hostname}")
        if l2tp.local_router_id:
            lines.append(f"l2tp local router-id {l2tp.local_router_id}")
        if l2tp.remote_router_id:
            lines.append(f"l2tp remote router-id {l2tp.remote_router_id}")
        if l2tp.remote_end_id:
            lines.append(f"l2tp remote end-id {l2tp.remote_end_id}")
        if l2tp.tunnel_auth is not None:
            cmd = f"l2tp tunnel auth {_on_off(l2tp.tunnel_auth)}"
            lines.append(f"{cmd} {l2tp.tunnel_auth_password}" if l2tp.tunnel_auth_password else cmd)
        if l2tp.always_on is not None:
            lines.append(f"l2tp always-on {_on_off(l2tp.always_on)}")
        if l2tp.keepalive is not None:
            ka = l2tp.keepalive
            if not ka.enabled:
                lines.append("l2tp keepalive use off")
            elif ka.interval is not None:
                lines.append(f"l2tp keepalive use on {ka.interval} {ka.retry}")
            else:
                lines.append("l2tp keepalive use on")
        if l2tp.syslog is not None:
            lines.append(f"l2tp syslog {_on_off(l2tp.syslog)}")
        return lines

    def _wrap(self, record: Tunnel, body: list[str]) -> list[str]:
        commands = [f"tunnel select {record.tunnel_id}"] + body
        if record.enabled is not None:
            commands.append(f"tunnel {'enable' if record.enabled else 'disable'} {record.tunnel_id}")
        commands.append("tunnel select none")
        return commands

    def create_commands(self, record: Tunnel) -> list[str]:
        return self._wrap(record, self._body(record))

    def update_commands(self, record: Tunnel, observed: Optional[Tunnel]) -> list[str]:
        clear = []
        if observed is not None:
            if record.description is None and observed.description is not None:
                clear.append("no description")
            if record.secure_filter_in is None and observed.secure_filter_in is not None:
                clear.append("no ip tunnel secure filter in")
            if record.secure_filter_out is None and observed.secure_filter_out is not None:
                clear.append("no ip tunnel secure filter out")
            if record.tcp_mss is None and observed.tcp_mss is not None:
                clear.append("no ip tunnel tcp mss limit")
            clear.extend(_clear_l2tp(record.l2tp, observed.l2tp))
            if observed.ipsec is not None and (
                record.ipsec is None or record.ipsec.policy_id != observed.ipsec.policy_id
            ):
                clear.append(f"no ipsec tunnel {observed.ipsec.policy_id}")
        return self._wrap(record, clear + self._body(record))

    def delete_commands(self, record: Tunnel) -> list[str]:
        commands = [f"tunnel select {record.tunnel_id}"]
        if record.ipsec is not None:
            commands.append(f"no ipsec tunnel {record.ipsec.policy_id}")
        commands += ["tunnel select none", f"no tunnel select {record.tunnel_id}"]
        return commands

    def identity(self, record: Tunnel) -> int:
        return record.tunnel_id

    def fallback_key(self, record: Tunnel) -> Optional[tuple]:
        remote = record.ipsec.remote_address if record.ipsec else None
        if remote is None and record.l2tp is not None:
            remote = record.l2tp.remote_router_id
        if remote is None:
            return None
        return (record.encapsulation, remote)

    def validate(self, record: Tunnel) -> list[str]:
        errors = []
        if not 1 <= record.tunnel_id <= 65535:
            errors.append(f"tunnel id must be between 1 and 65535, got {record.tunnel_id}")
        if record.encapsulation is not None and record.encapsulation not in ENCAPSULATIONS:
            errors.append(f"invalid encapsulation {record.encapsulation!r}")
        if record.tcp_mss is not None and record.tcp_mss != "auto" and not str(record.tcp_mss).isdigit():
            errors.append(f"tcp mss limit must be auto or a number, got {record.tcp_mss!r}")
        if record.ipsec is not None:
            errors.extend(self._validate_ipsec(record.ipsec))
        elif record.encapsulation == "ipsec":
            errors.append("ipsec encapsulation requires ipsec settings")
        errors.extend(self._validate_l2tp(record))
        return errors

    def _validate_ipsec(self, ipsec: IPsecSettings) -> list[str]:
        errors = []
        has_ike = any((
            ipsec.local_address, ipsec.remote_address, ipsec.pre_shared_key,
            ipsec.ike_encryption, ipsec.ike_hash, ipsec.ike_group, ipsec.keepalive,
            ipsec.encryption, ipsec.hash,
        ))
        if has_ike and ipsec.gateway_id is None:
            errors.append("ipsec gateway_id is required for sa policy and ike settings")
        if ipsec.protocol not in ("esp", "ah"):
            errors.append(f"invalid ipsec protocol {ipsec.protocol!r}")
        if ipsec.protocol == "esp" and ipsec.encryption and ipsec.encryption not in ESP_ENCRYPTIONS:
            errors.append(f"invalid esp encryption {ipsec.encryption!r}")
        if ipsec.protocol == "ah" and ipsec.encryption:
            errors.append("ah does not take an encryption algorithm")
        if ipsec.hash and ipsec.hash not in ESP_HASHES:
            errors.append(f"invalid sa hash {ipsec.hash!r}")
        if ipsec.ike_encryption and ipsec.ike_encryption not in IKE_ENCRYPTIONS:
            errors.append(f"invalid ike encryption {ipsec.ike_encryption!r}")
        if ipsec.ike_hash and ipsec.ike_hash not in IKE_HASHES:
            errors.append(f"invalid ike hash {ipsec.ike_hash!r}")
        if ipsec.ike_group and ipsec.ike_group not in IKE_GROUPS:
            errors.append(f"invalid ike group {ipsec.ike_group!r}")
        ka = ipsec.keepalive
        if ka is not None:
            if ka.mode not in KEEPALIVE_MODES:
                errors.append(f"invalid keepalive mode {ka.mode!r}")
            elif ka.mode != "off" and ka.interval is None:
                errors.append(f"keepalive {ka.mode} needs an interval")
            elif ka.mode == "heartbeat" and ka.retry is None:
                errors.append("keepalive heartbeat needs a retry count")
        return errors

    def _validate_l2tp(self, record: Tunnel) -> list[str]:
        l2tp = record.l2tp
        if record.encapsulation == "l2tpv3" and (
            l2tp is None or not l2tp.local_router_id or not l2tp.remote_router_id
        ):
            return ["l2tpv3 encapsulation requires local and remote router ids"]
        if l2tp is None:
            return []
        if record.encapsulation not in L2TP_ENCAPSULATIONS:
            return ["l2tp settings require encapsulation l2tp or l2tpv3"]

        errors = []
        v3_only = {
            "local_router_id": l2tp.local_router_id,
            "remote_router_id": l2tp.remote_router_id,
            "remote_end_id": l2tp.remote_end_id,
            "tunnel_auth": l2tp.tunnel_auth,
        }
        if record.encapsulation != "l2tpv3":
            errors.extend(
                f"l2tp {name} only applies to l2tpv3"
                for name, value in v3_only.items() if value is not None
            )
        for name in ("local_router_id", "remote_router_id"):
            value = getattr(l2tp, name)
            if value is not None and not _is_ipv4(value):
                errors.append(f"invalid l2tp {name} {value!r}")
        if l2tp.tunnel_auth_password and not l2tp.tunnel_auth:
            errors.append("l2tp tunnel auth password needs tunnel auth on")
        ka = l2tp.keepalive
        if ka is not None and ka.enabled and (ka.interval is None) != (ka.retry is None):
            errors.append("l2tp keepalive needs both interval and retry")
        return errors

    def show_command(self) -> str:
        return "show config"

    def from_dict(self, data: dict[str, Any]) -> Tunnel:
        ipsec = None
        if data.get("ipsec") is not None:
            raw = dict(data["ipsec"])
            keepalive = raw.pop("keepalive", None)
            ipsec = IPsecSettings(**raw)
            if keepalive is not None:
                ipsec.keepalive = IKEKeepalive(**keepalive)
        l2tp = None
        if data.get("l2tp") is not None:
            raw = dict(data["l2tp"])
            keepalive = raw.pop("keepalive", None)
            l2tp = L2TPSettings(**raw)
            if isinstance(keepalive, bool):
                l2tp.keepalive = L2TPKeepalive(enabled=keepalive)
            elif keepalive is not None:
                l2tp.keepalive = L2TPKeepalive(**keepalive)
        mss = data.get("tcp_mss")
        return Tunnel(
            tunnel_id=int(data["tunnel_id"]),
            description=data.get("description"),
            encapsulation=data.get("encapsulation"),
            ipsec=ipsec,
            l2tp=l2tp,
            secure_filter_in=optional_ids(data.get("secure_filter_in")),
            secure_filter_out=optional_ids(data.get("secure_filter_out")),
            tcp_mss=str(mss) if mss is not None else None,
            enabled=data.get("enabled"),
        )


def _on_off(value: bool) -> str:
    return "on" if value else "off"


def _is_ipv4(text: str) -> bool:
    try:
        ipaddress.IPv4Address(text)
    except ValueError:
        return False
    return True


# L2TPSettings field -> command removing it
L2TP_CLEAR = (
    ("hostname", "no l2tp hostname"),
    ("local_router_id", "no l2tp local router-id"),
    ("remote_router_id", "no l2tp remote router-id"),
    ("remote_end_id", "no l2tp remote end-id"),
    ("tunnel_auth", "no l2tp tunnel auth"),
    ("always_on", "no l2tp always-on"),
    ("keepalive", "no l2tp keepalive use"),
    ("syslog", "no l2tp syslog"),
)


def _clear_l2tp(desired: Optional[L2TPSettings], observed: Optional[L2TPSettings]) -> list[str]:
    """Commands removing L2TP settings the device has and the desired tunnel drops."""
    if observed is None:
        return []
    return [
        command for name, command in L2TP_CLEAR
        if getattr(observed, name) is not None
        and (desired is None or getattr(desired, name) is None)
    ]
