"""Stanza scanner: partitions reconstructed lines into top-level and context buckets.

RTX configuration has single-level selection contexts::

    tunnel select 1
     description site-b
     ipsec tunnel 101
     tunnel enable 1
    ip route default gateway pp 1

Lines between a ``tunnel select 1`` header and the point where the context
closes belong to the ``("tunnel", "1")`` bucket and are not top-level lines.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)


class ContextKey(NamedTuple):
    """Address of one context bucket."""
    kind: str
    key: str


@dataclass(frozen=True)
class ContextKind:
    """Definition of one selection context.

    header: regex whose first group is the context key
    leave: regex of the explicit leave command
    closing: regex of member lines that end the context after being stored
    members: prefixes that may appear un-indented while inside the context
    """
    name: str
    header: re.Pattern
    leave: re.Pattern
    closing: Optional[re.Pattern] = None
    members: tuple[str, ...] = ()

    def is_member(self, line: str) -> bool:
        return any(line.startswith(prefix) for prefix in self.members)


TUNNEL_CONTEXT = ContextKind(
    name="tunnel",
    header=re.compile(r"^tunnel\s+select\s+(\d+)$"),
    leave=re.compile(r"^tunnel\s+select\s+none$"),
    closing=re.compile(r"^tunnel\s+(?:enable|disable)\s+\d+$"),
    members=("tunnel ", "ipsec ", "l2tp ", "description ", "ip tunnel "),
)

PP_CONTEXT = ContextKind(
    name="pp",
    header=re.compile(r"^pp\s+select\s+(\d+|anonymous)$"),
    leave=re.compile(r"^pp\s+select\s+none$"),
    closing=re.compile(r"^pp\s+(?:enable|disable)\s+(?:\d+|anonymous)$"),
    members=("pp ", "pppoe ", "ppp ", "ip pp ", "description ", "pp auth "),
)

DEFAULT_CONTEXT_KINDS = (TUNNEL_CONTEXT, PP_CONTEXT)


@dataclass
class Stanza:
    """Scanner output: top-level lines and per-context line buckets."""
    top_level: list[str] = field(default_factory=list)
    contexts: dict[ContextKey, list[str]] = field(default_factory=dict)

    def context(self, kind: str, key: str) -> list[str]:
        """Lines of one context, empty if the context was never entered."""
        return self.contexts.get(ContextKey(kind, str(key)), [])

    def contexts_of(self, kind: str) -> dict[str, list[str]]:
        """All buckets of one kind, keyed by context key, in first-seen order."""
        return {
            ck.key: lines
            for ck, lines in self.contexts.items()
            if ck.kind == kind
        }


class StanzaScanner:
    """Walk reconstructed lines and build a Stanza."""

    def __init__(self, kinds: Optional[tuple[ContextKind, ...]] = None):
        self.kinds = tuple(kinds) if kinds is not None else DEFAULT_CONTEXT_KINDS

    def _match_header(self, line: str) -> Optional[ContextKey]:
        for kind in self.kinds:
            m = kind.header.match(line)
            if m:
                return ContextKey(kind.name, m.group(1))
        return None

    def _match_leave(self, line: str) -> bool:
        return any(kind.leave.match(line) for kind in self.kinds)

    def _kind(self, name: str) -> ContextKind:
        for kind in self.kinds:
            if kind.name == name:
                return kind
        raise KeyError(name)

    def scan(self, lines: list[str]) -> Stanza:
        """
        Partition lines into top-level and context buckets.

        Never fails. Unknown lines stay verbatim in whatever bucket is
        current when they are seen.

        Args:
            lines: Logical lines from the LineWrapReconstructor

        Returns:
            Stanza with top_level and contexts filled in
        """
        stanza = Stanza()
        current: Optional[ContextKey] = None

        for raw in lines:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue

            header = self._match_header(line)
            if header is not None:
                current = header
                stanza.contexts.setdefault(header, [])
                continue

            if self._match_leave(line):
                current = None
                continue

            if current is not None:
                kind = self._kind(current.kind)
                indented = raw[:1].isspace()
                if not indented and not kind.is_member(line):
                    # Un-indented foreign command ends the context
                    logger.debug(f"Context {current.kind} {current.key} closed by: {line}")
                    current = None
                else:
                    stanza.contexts[current].append(line)
                    if kind.closing is not None and kind.closing.match(line):
                        current = None
                    continue

            stanza.top_level.append(line)

        return stanza
