"""Pure tally, quorum and proxy logic for VoteBox."""

from .decision_evaluator import (
    QuorumBasis,
    QuorumType,
    ThresholdType,
    evaluate,
    quorum_status,
)  # noqa: F401
from .tally_engine import BallotChoice, tally  # noqa: F401

__all__ = [
    "BallotChoice",
    "QuorumBasis",
    "QuorumType",
    "ThresholdType",
    "evaluate",
    "quorum_status",
    "tally",
]
