"""Reconciliation of desired records against records read back from a device.

Matching runs in two explicit passes:

1. primary identity (filter number, route network, select id, ...)
2. the feature's fallback tuple, for desired records pass 1 left unmatched

Each observed record is claimed at most once. Observed records nobody
claimed are ghosts and never appear in the normalized output. All indices
are built per call from the observed list passed in.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Optional

from .features.base import FeatureCodec

logger = logging.getLogger(__name__)


class MatchKind(str, Enum):
    """Outcome of matching one record."""
    MATCHED_KEY = "matched_key"
    MATCHED_FALLBACK = "matched_fallback"
    UNMATCHED_DESIRED = "unmatched_desired"
    GHOST = "unmatched_observed"


@dataclass
class RecordMatch:
    """Pairing of a desired record with the observed record it maps to."""
    kind: MatchKind
    desired: Optional[Any] = None
    observed: Optional[Any] = None
    identity_changed: bool = False

    @property
    def matched(self) -> bool:
        return self.kind in (MatchKind.MATCHED_KEY, MatchKind.MATCHED_FALLBACK)


@dataclass
class ReconcileResult:
    """Result of reconciling one feature.

    matches holds one entry per desired record, in desired order, followed
    by one unmatched_observed entry per ghost in device order.
    normalized holds the matched observed records in desired order.
    """
    feature: str
    matches: list[RecordMatch] = field(default_factory=list)
    normalized: list[Any] = field(default_factory=list)

    def by_kind(self, kind: MatchKind) -> list[RecordMatch]:
        return [m for m in self.matches if m.kind == kind]

    @property
    def ghosts(self) -> list[Any]:
        return [m.observed for m in self.by_kind(MatchKind.GHOST)]

    @property
    def unmatched_desired(self) -> list[Any]:
        return [m.desired for m in self.by_kind(MatchKind.UNMATCHED_DESIRED)]


class ReconciliationEngine:
    """Two-pass matcher for one feature."""

    def __init__(self, codec: FeatureCodec):
        self.codec = codec

    def _identity(self, record: Any) -> Optional[Hashable]:
        return self.codec.identity(record)

    def reconcile(self, desired: list[Any], observed: list[Any]) -> ReconcileResult:
        """
        Match desired records to observed records.

        Never raises. A desired record that matches nothing is classified
        unmatched_desired and is left for the caller to create.

        Args:
            desired: Records as the caller wants them
            observed: Records decoded from a device read

        Returns:
            ReconcileResult with matches, ghosts and normalized output
        """
        result = ReconcileResult(feature=self.codec.name)
        used: set[int] = set()
        slots: list[Optional[RecordMatch]] = [None] * len(desired)

        # Pass 1: primary identity
        by_identity: dict[Hashable, list[int]] = {}
        for idx, record in enumerate(observed):
            by_identity.setdefault(self._identity(record), []).append(idx)

        for i, record in enumerate(desired):
            key = self._identity(record)
            if key is None:
                continue
            for idx in by_identity.get(key, []):
                if idx not in used:
                    used.add(idx)
                    slots[i] = RecordMatch(MatchKind.MATCHED_KEY, record, observed[idx])
                    break

        # Pass 2: fallback tuple over what pass 1 left
        by_fallback: dict[tuple, list[int]] = {}
        for idx, record in enumerate(observed):
            if idx in used:
                continue
            fallback = self.codec.fallback_key(record)
            if fallback is not None:
                by_fallback.setdefault(fallback, []).append(idx)

        for i, record in enumerate(desired):
            if slots[i] is not None:
                continue
            fallback = self.codec.fallback_key(record)
            candidates = [
                idx for idx in by_fallback.get(fallback, []) if idx not in used
            ] if fallback is not None else []

            if not candidates:
                slots[i] = RecordMatch(MatchKind.UNMATCHED_DESIRED, desired=record)
                continue
            if len(candidates) > 1:
                logger.debug(
                    f"{self.codec.name}: {len(candidates)} observed records share "
                    f"fallback key {fallback}, taking the first"
                )
            idx = candidates[0]
            used.add(idx)
            slots[i] = RecordMatch(
                MatchKind.MATCHED_FALLBACK,
                desired=record,
                observed=observed[idx],
                identity_changed=self._identity(record) != self._identity(observed[idx]),
            )
            logger.info(
                f"{self.codec.name}: matched {self._identity(record)} to observed "
                f"{self._identity(observed[idx])} by fallback key"
            )

        ghosts = [
            RecordMatch(MatchKind.GHOST, observed=record)
            for idx, record in enumerate(observed) if idx not in used
        ]
        result.matches = [m for m in slots if m is not None] + ghosts
        result.normalized = [m.observed for m in result.matches if m.matched]

        if ghosts:
            logger.info(
                f"{self.codec.name}: {len(ghosts)} observed record(s) not in desired state"
            )
        return result
