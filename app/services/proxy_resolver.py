from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from app.services.decision_evaluator import Participant
from app.services.tally_engine import safe_weight

logger = logging.getLogger("app.proxies")

DEFAULT_MAX_PROXIES_PER_HOLDER = 2


class ProxyValidationError(ValueError):
    """Raised when a new delegation would break a proxy rule."""


@dataclass(frozen=True)
class Proxy:
    grantor_id: str
    grantee_id: str
    meeting_id: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    proxy_id: Optional[str] = None

    def is_valid_at(self, moment: datetime) -> bool:
        moment = _as_utc(moment)
        if self.valid_from is not None and moment < _as_utc(self.valid_from):
            return False
        if self.valid_until is not None and moment > _as_utc(self.valid_until):
            return False
        return True

    def applies_to(self, meeting_id: Optional[str]) -> bool:
        return self.meeting_id is None or meeting_id is None or self.meeting_id == meeting_id


@dataclass(frozen=True)
class ResolvedWeights:
    effective_weights: Dict[str, float]
    proxy_weight: float
    represented: FrozenSet[str]
    applied: List[Proxy] = field(default_factory=list)
    skipped: List[Proxy] = field(default_factory=list)

    def holder_of(self, grantor_id: str) -> Optional[str]:
        for proxy in self.applied:
            if proxy.grantor_id == grantor_id:
                return proxy.grantee_id
        return None


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _sort_key(proxy: Proxy):
    started = proxy.valid_from or datetime.min.replace(tzinfo=timezone.utc)
    return _as_utc(started), proxy.proxy_id or "", proxy.grantor_id


def _creates_cycle(
    grantor_id: str, grantee_id: str, edges: Dict[str, str]
) -> bool:
    visited = {grantor_id}
    cursor: Optional[str] = grantee_id
    while cursor is not None:
        if cursor in visited:
            return True
        visited.add(cursor)
        cursor = edges.get(cursor)
    return False


def active_proxies(
    proxies: Iterable[Proxy],
    *,
    at: Optional[datetime] = None,
    meeting_id: Optional[str] = None,
) -> List[Proxy]:
    """Delegations inside their validity window and scoped to the meeting."""
    moment = at or datetime.now(timezone.utc)
    return sorted(
        (
            proxy
            for proxy in proxies
            if proxy.is_valid_at(moment) and proxy.applies_to(meeting_id)
        ),
        key=_sort_key,
    )


def resolve_effective_weights(
    participants: Sequence[Participant],
    proxies: Iterable[Proxy],
    *,
    at: Optional[datetime] = None,
    meeting_id: Optional[str] = None,
    max_proxies_per_holder: int = DEFAULT_MAX_PROXIES_PER_HOLDER,
) -> ResolvedWeights:
    """
    Flatten the delegation graph into one weight per participant.

    A delegation moves the grantor's weight to the grantee only when the
    grantee is present and the grantor is not. Each grantor delegates once,
    each holder carries at most ``max_proxies_per_holder`` delegations (oldest
    first), and delegations that would close a loop are dropped. Chains are
    not followed: a holder passes on only its own weight.
    """
    roster = {participant.participant_id: participant for participant in participants}
    effective: Dict[str, float] = {
        participant_id: safe_weight(participant.weight)
        for participant_id, participant in roster.items()
    }
    edges: Dict[str, str] = {}
    received: Dict[str, int] = {}
    applied: List[Proxy] = []
    skipped: List[Proxy] = []
    represented = set()
    proxy_weight = 0.0

    for proxy in active_proxies(proxies, at=at, meeting_id=meeting_id):
        grantor = roster.get(proxy.grantor_id)
        grantee = roster.get(proxy.grantee_id)
        if (
            grantor is None
            or grantee is None
            or proxy.grantor_id == proxy.grantee_id
            or proxy.grantor_id in edges
            or grantor.is_present
            or not grantee.is_present
            or received.get(proxy.grantee_id, 0) >= max_proxies_per_holder
            or _creates_cycle(proxy.grantor_id, proxy.grantee_id, edges)
        ):
            skipped.append(proxy)
            continue

        edges[proxy.grantor_id] = proxy.grantee_id
        received[proxy.grantee_id] = received.get(proxy.grantee_id, 0) + 1
        moved = effective[proxy.grantor_id]
        effective[proxy.grantee_id] += moved
        effective[proxy.grantor_id] = 0.0
        proxy_weight += moved
        represented.add(proxy.grantor_id)
        applied.append(proxy)

    if skipped:
        logger.debug("Skipped %d proxies during weight resolution", len(skipped))

    return ResolvedWeights(
        effective_weights=effective,
        proxy_weight=proxy_weight,
        represented=frozenset(represented),
        applied=applied,
        skipped=skipped,
    )


def validate_new_proxy(
    candidate: Proxy,
    existing: Iterable[Proxy],
    *,
    at: Optional[datetime] = None,
    max_proxies_per_holder: int = DEFAULT_MAX_PROXIES_PER_HOLDER,
) -> None:
    """Grant-time checks; raises ProxyValidationError on the first broken rule."""
    if candidate.grantor_id == candidate.grantee_id:
        raise ProxyValidationError("A participant cannot delegate to themselves.")
    if (
        candidate.valid_from is not None
        and candidate.valid_until is not None
        and _as_utc(candidate.valid_until) < _as_utc(candidate.valid_from)
    ):
        raise ProxyValidationError("Proxy validity ends before it starts.")

    current = active_proxies(existing, at=at, meeting_id=candidate.meeting_id)
    if any(proxy.grantor_id == candidate.grantor_id for proxy in current):
        raise ProxyValidationError(
            "This participant has already delegated for this meeting."
        )
    held = sum(1 for proxy in current if proxy.grantee_id == candidate.grantee_id)
    if held >= max_proxies_per_holder:
        raise ProxyValidationError(
            f"A participant may hold at most {max_proxies_per_holder} proxies."
        )
    edges = {proxy.grantor_id: proxy.grantee_id for proxy in current}
    if _creates_cycle(candidate.grantor_id, candidate.grantee_id, edges):
        raise ProxyValidationError("Circular proxy delegation is not allowed.")
