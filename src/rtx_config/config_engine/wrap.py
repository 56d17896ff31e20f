"""Line-wrap reconstruction for device output.

The router wraps "show config" output at a fixed column, which can split a
command in the middle of a word or a number. The reconstructor walks the raw
lines pairwise and asks a chain of policy functions whether the next physical
line continues the current logical line.

A policy is any callable ``(current, next_raw) -> JoinDecision | None``.
``None`` means "not my case"; the first decision returned wins.

Known limitation: the digit rules are a best-effort guess. Two legitimate
lines where the first ends with a digit and the second starts with one at
column zero will be glued together.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .errors import ReconstructionAmbiguity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinDecision:
    """How to combine the current logical line with the next physical line."""
    join: bool
    separator: str = " "
    strip_suffix: str = ""
    ambiguous: bool = False


NEW_LINE = JoinDecision(join=False)
SPACE_JOIN = JoinDecision(join=True)
TIGHT_JOIN = JoinDecision(join=True, separator="")

WrapPolicy = Callable[[str, str], Optional[JoinDecision]]


# First tokens that start a command in RTX configuration output
COMMAND_WORDS = frozenset({
    "administrator", "alarm", "auth", "bgp", "bridge", "clear", "console",
    "cooperation", "dashboard", "ddns", "description", "dhcp", "dns",
    "ethernet", "exit", "external-memory", "heartbeat", "httpd", "ip",
    "ipsec", "ipv6", "l2tp", "lan", "line", "login", "lua", "mail",
    "nat", "netvolante-dns", "no", "ntpdate", "operation", "ospf",
    "packet-buffer", "pki", "pp", "ppp", "pppoe", "pptp", "provider",
    "quit", "qos", "queue", "radius", "remote", "rip", "save", "schedule",
    "security", "sftpd", "show", "snmp", "snmpv2c", "snmpv3", "sshd",
    "statistics", "switch", "syslog", "system", "telnetd", "tftp",
    "timezone", "tunnel", "upnp", "url", "user", "vlan", "wins", "wlan",
})


def blank_or_comment_policy(current: str, next_raw: str) -> Optional[JoinDecision]:
    """Blank lines and comments never take part in a join."""
    nxt = next_raw.strip()
    if not nxt or nxt.startswith("#"):
        return NEW_LINE
    if not current.strip() or current.lstrip().startswith("#"):
        return NEW_LINE
    return None


def continuation_marker_policy(marker: str = "\\") -> WrapPolicy:
    """Build a policy joining lines that end with an explicit marker."""
    def policy(current: str, next_raw: str) -> Optional[JoinDecision]:
        if marker and current.rstrip().endswith(marker):
            return JoinDecision(join=True, strip_suffix=marker)
        return None
    return policy


def equals_continuation_policy(current: str, next_raw: str) -> Optional[JoinDecision]:
    """A line starting with '=' is the value half of a split key=value."""
    if next_raw.strip().startswith("="):
        return TIGHT_JOIN
    return None


def split_number_policy(current: str, next_raw: str) -> Optional[JoinDecision]:
    """A number cut by the column wrap: digit at the end, digit at column zero."""
    tail = current.rstrip()
    if tail and tail[-1].isdigit() and next_raw[:1].isdigit():
        return TIGHT_JOIN
    return None


def numeric_continuation_policy(current: str, next_raw: str) -> Optional[JoinDecision]:
    """Indented numbers continue an ID list wrapped at a word boundary."""
    if next_raw.strip()[:1].isdigit():
        return SPACE_JOIN
    return None


def command_start_policy(vocabulary: Iterable[str] = COMMAND_WORDS) -> WrapPolicy:
    """Build the final policy: known command words start a new line.

    Anything else is assumed to be a wrapped fragment and is space-joined,
    flagged as ambiguous.
    """
    words = frozenset(w.lower() for w in vocabulary)

    def policy(current: str, next_raw: str) -> Optional[JoinDecision]:
        first = next_raw.split(None, 1)[0].lower()
        if first in words:
            return NEW_LINE
        return JoinDecision(join=True, ambiguous=True)
    return policy


def default_policies(
    marker: str = "\\",
    extra_words: Iterable[str] = (),
) -> list[WrapPolicy]:
    """The standard policy chain, in evaluation order."""
    return [
        blank_or_comment_policy,
        continuation_marker_policy(marker),
        equals_continuation_policy,
        split_number_policy,
        numeric_continuation_policy,
        command_start_policy(COMMAND_WORDS | frozenset(extra_words)),
    ]


@dataclass
class ReconstructedText:
    """Logical lines plus every ambiguous join made while building them."""
    lines: list[str] = field(default_factory=list)
    ambiguities: list[ReconstructionAmbiguity] = field(default_factory=list)


class LineWrapReconstructor:
    """Rejoin physical lines split by the device's fixed-width wrapping."""

    def __init__(self, policies: Optional[list[WrapPolicy]] = None):
        self.policies = policies if policies is not None else default_policies()

    def decide(self, current: str, next_raw: str) -> JoinDecision:
        """Run the policy chain for one wrap point."""
        for policy in self.policies:
            decision = policy(current, next_raw)
            if decision is not None:
                return decision
        return NEW_LINE

    def reconstruct(self, raw: str) -> ReconstructedText:
        """
        Rebuild logical lines from raw device output.

        Never fails. Leading indentation of each logical line is kept so the
        scanner can see context nesting.

        Args:
            raw: Multi-line text as returned by the device

        Returns:
            ReconstructedText with lines and recorded ambiguities
        """
        result = ReconstructedText()
        current: Optional[str] = None

        for physical in raw.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
            physical = physical.rstrip()
            if current is None:
                current = physical
                continue

            decision = self.decide(current, physical)
            if not decision.join:
                result.lines.append(current)
                current = physical
                continue

            head = current.rstrip()
            if decision.strip_suffix and head.endswith(decision.strip_suffix):
                head = head[: -len(decision.strip_suffix)].rstrip()
            fragment = physical.strip()

            if decision.ambiguous:
                ambiguity = ReconstructionAmbiguity(
                    previous=head,
                    fragment=fragment,
                    resolution="space-join",
                )
                result.ambiguities.append(ambiguity)
                logger.warning(
                    f"Ambiguous wrap point, joining with space: "
                    f"{head!r} + {fragment!r}"
                )

            current = f"{head}{decision.separator}{fragment}"

        if current is not None:
            result.lines.append(current)

        return result


def reconstruct_lines(raw: str, policies: Optional[list[WrapPolicy]] = None) -> list[str]:
    """Shortcut returning only the logical lines."""
    return LineWrapReconstructor(policies).reconstruct(raw).lines
