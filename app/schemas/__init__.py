from .event import (
    BallotCastRequest,
    EventCreate,
    ParticipantCreate,
    ProxyCreate,
    QuestionCreate,
    QuestionState,
)

__all__ = [
    "BallotCastRequest",
    "EventCreate",
    "ParticipantCreate",
    "ProxyCreate",
    "QuestionCreate",
    "QuestionState",
]
