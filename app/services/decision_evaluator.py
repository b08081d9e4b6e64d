from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
from typing import Any, Dict, Iterable, Optional

from app.services.tally_engine import TallyResult, safe_weight

TWO_THIRDS_ROUNDED_CUTOFF = 66.67


class ThresholdType(str, Enum):
    SIMPLE_MAJORITY = "simple_majority"
    TWO_THIRDS = "two_thirds"
    ABSOLUTE = "absolute"
    UNANIMOUS = "unanimous"


class QuorumType(str, Enum):
    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class QuorumBasis(str, Enum):
    HEADCOUNT = "headcount"
    WEIGHT = "weight"


class TwoThirdsMode(str, Enum):
    EXACT = "exact"
    ROUNDED = "rounded"


@dataclass(frozen=True)
class Participant:
    participant_id: str
    weight: float = 1.0
    is_present: bool = False


@dataclass(frozen=True)
class QuestionConfig:
    threshold_type: ThresholdType = ThresholdType.SIMPLE_MAJORITY
    abstain_counts: bool = False
    quorum_type: QuorumType = QuorumType.NONE
    quorum_value: float = 0
    quorum_basis: QuorumBasis = QuorumBasis.HEADCOUNT


@dataclass(frozen=True)
class QuorumStatus:
    quorum_type: QuorumType
    quorum_value: float
    basis: QuorumBasis
    present_count: int
    total_count: int
    present_weight: float
    proxy_weight: float
    total_weight: float
    required: float
    present_percent: float
    is_met: bool

    def to_payload(self) -> Dict[str, Any]:
        return {
            "quorum_type": self.quorum_type.value,
            "quorum_value": self.quorum_value,
            "basis": self.basis.value,
            "present_count": self.present_count,
            "total_count": self.total_count,
            "present_weight": self.present_weight,
            "proxy_weight": self.proxy_weight,
            "total_weight": self.total_weight,
            "required": self.required,
            "present_percent": self.present_percent,
            "is_met": self.is_met,
        }


@dataclass(frozen=True)
class Verdict:
    is_accepted: bool
    threshold_type: Optional[ThresholdType]
    tally: TallyResult
    quorum: Optional[QuorumStatus] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "is_accepted": self.is_accepted,
            "threshold_type": self.threshold_type.value if self.threshold_type else None,
            "tally": self.tally.to_payload(),
            "quorum": self.quorum.to_payload() if self.quorum else None,
        }


def _coerce_enum(enum_cls, value, fallback):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return fallback


def evaluate_threshold(
    tally: TallyResult,
    threshold_type: Any,
    total_eligible: Any,
    *,
    two_thirds_mode: Any = TwoThirdsMode.EXACT,
) -> bool:
    """
    Decide whether a motion passed under the given majority rule.

    ``total_eligible`` is only consulted by the absolute rule, which needs a
    majority of the whole roster rather than of the ballots cast. Unknown
    threshold types reject.
    """
    threshold = _coerce_enum(ThresholdType, threshold_type, None)
    if tally.yes <= 0:
        return False

    if threshold is ThresholdType.SIMPLE_MAJORITY:
        return tally.yes_percent > 50
    if threshold is ThresholdType.TWO_THIRDS:
        mode = _coerce_enum(TwoThirdsMode, two_thirds_mode, TwoThirdsMode.EXACT)
        if mode is TwoThirdsMode.ROUNDED:
            return tally.yes_percent >= TWO_THIRDS_ROUNDED_CUTOFF
        denominator = tally.denominator
        return denominator > 0 and 3 * tally.yes >= 2 * denominator
    if threshold is ThresholdType.ABSOLUTE:
        eligible = safe_weight(total_eligible)
        if eligible <= 0:
            return False
        return tally.yes > eligible / 2
    if threshold is ThresholdType.UNANIMOUS:
        return tally.no == 0
    return False


def required_quorum_count(quorum_value: Any, total_count: Any) -> int:
    """Headcount needed for a percentage quorum, rounded up."""
    value = safe_weight(quorum_value)
    count = safe_weight(total_count)
    # Multiply before dividing and trim float noise so 7% of 100 stays 7.
    return math.ceil(round(value * count / 100, 9))


def evaluate_quorum(
    present_weight: Any,
    total_weight: Any,
    present_count: Any,
    total_count: Any,
    quorum_type: Any,
    quorum_value: Any,
    *,
    basis: Any = QuorumBasis.HEADCOUNT,
) -> bool:
    """
    Presence check that can run before, during or after a vote.

    Percentage quorums count heads (rounded up) for plain events and compare
    weight shares for weighted meetings. An empty roster never meets a
    percentage quorum.
    """
    kind = _coerce_enum(QuorumType, quorum_type, QuorumType.NONE)
    if kind is QuorumType.NONE:
        return True

    present = safe_weight(present_count)
    if kind is QuorumType.FIXED:
        return present >= safe_weight(quorum_value)

    if _coerce_enum(QuorumBasis, basis, QuorumBasis.HEADCOUNT) is QuorumBasis.WEIGHT:
        total = safe_weight(total_weight)
        if total <= 0:
            return False
        return safe_weight(present_weight) / total * 100 >= safe_weight(quorum_value)

    if safe_weight(total_count) <= 0:
        return False
    return present >= required_quorum_count(quorum_value, total_count)


def quorum_status(
    participants: Iterable[Participant],
    config: QuestionConfig,
    *,
    represented: Iterable[str] = (),
) -> QuorumStatus:
    """
    Build a quorum snapshot from a roster.

    ``represented`` holds absent participants whose vote is carried by a
    present proxy holder; they count as present, by head and by weight.
    """
    represented_ids = set(represented)
    present_count = 0
    total_count = 0
    present_weight = 0.0
    proxy_weight = 0.0
    total_weight = 0.0

    for participant in participants:
        weight = safe_weight(participant.weight)
        total_count += 1
        total_weight += weight
        if participant.is_present:
            present_count += 1
            present_weight += weight
        elif participant.participant_id in represented_ids:
            present_count += 1
            proxy_weight += weight

    effective_weight = present_weight + proxy_weight
    kind = _coerce_enum(QuorumType, config.quorum_type, QuorumType.NONE)
    basis = _coerce_enum(QuorumBasis, config.quorum_basis, QuorumBasis.HEADCOUNT)
    if kind is QuorumType.PERCENTAGE and basis is QuorumBasis.HEADCOUNT:
        required: float = required_quorum_count(config.quorum_value, total_count)
    elif kind is QuorumType.PERCENTAGE:
        required = total_weight * safe_weight(config.quorum_value) / 100
    elif kind is QuorumType.FIXED:
        required = safe_weight(config.quorum_value)
    else:
        required = 0

    if basis is QuorumBasis.WEIGHT:
        present_percent = effective_weight / total_weight * 100 if total_weight > 0 else 0.0
    else:
        present_percent = present_count / total_count * 100 if total_count > 0 else 0.0

    return QuorumStatus(
        quorum_type=kind,
        quorum_value=config.quorum_value,
        basis=basis,
        present_count=present_count,
        total_count=total_count,
        present_weight=present_weight,
        proxy_weight=proxy_weight,
        total_weight=total_weight,
        required=required,
        present_percent=present_percent,
        is_met=evaluate_quorum(
            effective_weight,
            total_weight,
            present_count,
            total_count,
            kind,
            config.quorum_value,
            basis=basis,
        ),
    )


def evaluate(
    tally: TallyResult,
    config: QuestionConfig,
    total_eligible: Any,
    *,
    quorum: Optional[QuorumStatus] = None,
    two_thirds_mode: Any = TwoThirdsMode.EXACT,
) -> Verdict:
    # An unknown rule rejects and is reported as None, never as a real rule.
    threshold = _coerce_enum(ThresholdType, config.threshold_type, None)
    return Verdict(
        is_accepted=evaluate_threshold(
            tally,
            threshold,
            total_eligible,
            two_thirds_mode=two_thirds_mode,
        ),
        threshold_type=threshold,
        tally=tally,
        quorum=quorum,
    )
