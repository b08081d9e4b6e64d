from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple


class BallotChoice(str, Enum):
    YES = "yes"
    NO = "no"
    ABSTAIN = "abstain"


BINARY_CHOICES = frozenset(choice.value for choice in BallotChoice)


class InvalidBallotChoiceError(ValueError):
    """Raised at ingestion when a ballot does not pick exactly one declared option."""


def normalize_choices(choices: Iterable[Any]) -> Tuple[str, ...]:
    """Validate a binary ballot before it reaches the store."""
    normalized = tuple(str(choice).strip().lower() for choice in choices or ())
    if len(normalized) != 1:
        raise InvalidBallotChoiceError("A ballot must contain exactly one choice.")
    if normalized[0] not in BINARY_CHOICES:
        raise InvalidBallotChoiceError(f"Unknown ballot choice: {normalized[0]!r}")
    return normalized


@dataclass(frozen=True)
class Ballot:
    question_id: str
    participant_id: Optional[str]
    choices: Tuple[str, ...]
    weight: Optional[float] = None

    @property
    def choice(self) -> Optional[str]:
        if len(self.choices) != 1:
            return None
        return str(self.choices[0]).strip().lower()


@dataclass(frozen=True)
class TallyResult:
    yes: float
    no: float
    abstain: float
    total: float
    ballot_count: int
    valid_votes: float
    yes_percent: float
    no_percent: float
    abstain_percent: float
    participation_percent: float
    abstain_counts: bool
    weighted: bool = False

    @property
    def denominator(self) -> float:
        """Pool the yes/no percentages are measured against."""
        return self.total if self.abstain_counts else self.valid_votes

    def to_payload(self) -> Dict[str, Any]:
        return {
            "yes": self.yes,
            "no": self.no,
            "abstain": self.abstain,
            "total": self.total,
            "ballot_count": self.ballot_count,
            "valid_votes": self.valid_votes,
            "yes_percent": self.yes_percent,
            "no_percent": self.no_percent,
            "abstain_percent": self.abstain_percent,
            "participation_percent": self.participation_percent,
            "abstain_counts": self.abstain_counts,
            "weighted": self.weighted,
        }


def safe_weight(value: Any) -> float:
    """Clamp a weight to a finite, non-negative float; garbage becomes 0."""
    try:
        candidate = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(candidate) or math.isinf(candidate) or candidate < 0:
        return 0.0
    return candidate


def _percent(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100


def _ballot_weight(ballot: Ballot, weights: Optional[Mapping[str, Any]]) -> float:
    if weights and ballot.participant_id is not None and ballot.participant_id in weights:
        return safe_weight(weights[ballot.participant_id])
    if ballot.weight is not None:
        return safe_weight(ballot.weight)
    return 1.0


def tally(
    ballots: Iterable[Ballot],
    abstain_counts: bool,
    *,
    eligible: Optional[float] = None,
    weights: Optional[Mapping[str, Any]] = None,
    weighted: Optional[bool] = None,
) -> TallyResult:
    """
    Aggregate binary ballots into yes/no/abstain counts and percentages.

    With ``abstain_counts`` the yes/no percentages are measured against every
    ballot cast; without it abstentions drop out of that pool. The abstain
    percentage is always measured against every ballot cast.

    When weighted each ballot contributes a weight instead of 1, so the counts
    become weight sums: the entry in ``weights`` for the ballot's principal,
    else the weight recorded on the ballot, else 1. Passing ``weights`` turns
    weighting on unless ``weighted`` says otherwise. Ballots whose choice is
    not yes/no/abstain are skipped.
    """
    if weighted is None:
        weighted = weights is not None
    totals = {choice: 0.0 for choice in BINARY_CHOICES}
    ballot_count = 0

    for ballot in ballots:
        choice = ballot.choice
        if choice not in totals:
            continue
        ballot_count += 1
        totals[choice] += _ballot_weight(ballot, weights) if weighted else 1

    yes = totals[BallotChoice.YES.value]
    no = totals[BallotChoice.NO.value]
    abstain = totals[BallotChoice.ABSTAIN.value]
    if not weighted:
        yes, no, abstain = int(yes), int(no), int(abstain)
    total = yes + no + abstain
    valid_votes = yes + no
    denominator = total if abstain_counts else valid_votes

    return TallyResult(
        yes=yes,
        no=no,
        abstain=abstain,
        total=total,
        ballot_count=ballot_count,
        valid_votes=valid_votes,
        yes_percent=_percent(yes, denominator),
        no_percent=_percent(no, denominator),
        abstain_percent=_percent(abstain, total),
        participation_percent=min(100.0, _percent(total, safe_weight(eligible))),
        abstain_counts=bool(abstain_counts),
        weighted=bool(weighted),
    )
