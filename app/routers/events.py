from typing import List

from fastapi import APIRouter, Depends

from app.data.ballot_manager import BallotManager, get_ballot_manager
from app.data.event_manager import EventManager, get_event_manager
from app.data.participant_manager import ParticipantManager, get_participant_manager
from app.schemas.event import (
    BallotCastRequest,
    BallotCastResponse,
    EventCreate,
    EventResponse,
    ParticipantCreate,
    ParticipantResponse,
    PresenceUpdate,
    QuestionCreate,
    QuestionResponse,
    QuestionResultResponse,
    QuestionTransitionResponse,
    QuorumPayload,
)
from app.services.results_manager import ResultsManager, get_results_manager


router = APIRouter(prefix="/api/events", tags=["events"])


@router.post("", response_model=EventResponse, status_code=201)
async def create_event(
    payload: EventCreate,
    events: EventManager = Depends(get_event_manager),
):
    return events.create_event(payload)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: str,
    events: EventManager = Depends(get_event_manager),
):
    return events.get_event(event_id)


@router.get("/{event_id}/quorum", response_model=QuorumPayload)
async def get_quorum(
    event_id: str,
    events: EventManager = Depends(get_event_manager),
    participants: ParticipantManager = Depends(get_participant_manager),
):
    event = events.get_event(event_id)
    return participants.quorum(event).to_payload()


# Participants


@router.post(
    "/{event_id}/participants",
    response_model=ParticipantResponse,
    status_code=201,
)
async def add_participant(
    event_id: str,
    payload: ParticipantCreate,
    events: EventManager = Depends(get_event_manager),
    participants: ParticipantManager = Depends(get_participant_manager),
):
    events.get_event(event_id)
    return participants.add_participant(event_id, payload)


@router.get("/{event_id}/participants", response_model=List[ParticipantResponse])
async def list_participants(
    event_id: str,
    events: EventManager = Depends(get_event_manager),
    participants: ParticipantManager = Depends(get_participant_manager),
):
    events.get_event(event_id)
    return participants.list_participants(event_id)


@router.post(
    "/{event_id}/participants/{participant_id}/presence",
    response_model=ParticipantResponse,
)
async def update_presence(
    event_id: str,
    participant_id: str,
    payload: PresenceUpdate,
    participants: ParticipantManager = Depends(get_participant_manager),
):
    return participants.set_presence(event_id, participant_id, payload.is_present)


# Questions


@router.post(
    "/{event_id}/questions",
    response_model=QuestionResponse,
    status_code=201,
)
async def create_question(
    event_id: str,
    payload: QuestionCreate,
    events: EventManager = Depends(get_event_manager),
):
    return events.add_question(event_id, payload)


@router.get("/{event_id}/questions", response_model=List[QuestionResponse])
async def list_questions(
    event_id: str,
    events: EventManager = Depends(get_event_manager),
):
    events.get_event(event_id)
    return events.list_questions(event_id)


@router.post(
    "/{event_id}/questions/{question_id}/activate",
    response_model=QuestionTransitionResponse,
)
async def activate_question(
    event_id: str,
    question_id: str,
    results: ResultsManager = Depends(get_results_manager),
):
    return results.activate(event_id, question_id)


@router.post(
    "/{event_id}/questions/{question_id}/close",
    response_model=QuestionResponse,
)
async def close_question(
    event_id: str,
    question_id: str,
    results: ResultsManager = Depends(get_results_manager),
):
    return results.close(event_id, question_id)


@router.post(
    "/{event_id}/questions/{question_id}/ballots",
    response_model=BallotCastResponse,
    status_code=201,
)
async def cast_ballot(
    event_id: str,
    question_id: str,
    payload: BallotCastRequest,
    ballots: BallotManager = Depends(get_ballot_manager),
):
    ballot = ballots.cast_ballot(event_id, question_id, payload)
    return BallotCastResponse(
        question_id=question_id, weight=ballot.weight, is_proxy=ballot.is_proxy
    )


@router.get(
    "/{event_id}/questions/{question_id}/results",
    response_model=QuestionResultResponse,
)
async def get_results(
    event_id: str,
    question_id: str,
    events: EventManager = Depends(get_event_manager),
    results: ResultsManager = Depends(get_results_manager),
):
    question = events.get_question(event_id, question_id)
    verdict = results.question_verdict(event_id, question_id)
    return QuestionResultResponse(
        question_id=question.question_id,
        state=question.state,
        **verdict.to_payload(),
    )
