from __future__ import annotations

import logging
from typing import List

from fastapi import Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.ballot import Ballot, CastMarker
from ..schemas.event import BallotCastRequest, QuestionState
from ..services import tally_engine
from ..services.tally_engine import (
    InvalidBallotChoiceError,
    normalize_choices,
    safe_weight,
)
from .audit_manager import AuditLogManager
from .event_manager import EventManager
from .participant_manager import ParticipantManager

logger = logging.getLogger("app.ballots")


class BallotManager:
    """Accepts ballots for active questions and hands them to the tally engine."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.events = EventManager(db)
        self.participants = ParticipantManager(db)
        self.audit = AuditLogManager(db)

    def cast_ballot(
        self, event_id: str, question_id: str, payload: BallotCastRequest
    ) -> Ballot:
        """
        Record one ballot per principal and question.

        A ballot speaks for exactly one principal: the caster, or with
        ``proxy_for_id`` an absent grantor whose active proxy the caster
        holds. It records that principal's own weight, so a holder with two
        grantors casts three ballots and may split them. Anonymous questions
        drop the principal from the ballot row; the cast marker alone
        remembers who has already voted.
        """
        question = self.events.get_question(event_id, question_id)
        if question.state != QuestionState.ACTIVE.value:
            raise HTTPException(
                status_code=409, detail="Voting is not open for this question."
            )

        try:
            choices = normalize_choices(payload.choices)
        except InvalidBallotChoiceError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

        caster = self.participants.get_participant(event_id, payload.participant_id)
        _, resolved = self.participants.resolve_weights(event_id)
        if payload.proxy_for_id is None:
            principal = caster
            if resolved.holder_of(caster.participant_id) is not None:
                raise HTTPException(
                    status_code=409,
                    detail="This participant is represented by a proxy holder.",
                )
        else:
            principal = self.participants.get_participant(event_id, payload.proxy_for_id)
            if resolved.holder_of(principal.participant_id) != caster.participant_id:
                raise HTTPException(
                    status_code=403,
                    detail="You do not hold an active proxy for this participant.",
                )

        if self.has_voted(question.question_id, principal.participant_id):
            raise HTTPException(
                status_code=409,
                detail="A ballot has already been cast for this question.",
            )
        weight = safe_weight(principal.weight)
        is_proxy = principal is not caster

        ballot = Ballot(
            question_id=question.question_id,
            participant_id=None if question.is_anonymous else principal.participant_id,
            cast_by_id=None
            if question.is_anonymous or not is_proxy
            else caster.participant_id,
            is_proxy=is_proxy,
            choices=list(choices),
            weight=weight,
        )
        try:
            self.db.add(
                CastMarker(
                    question_id=question.question_id,
                    participant_id=principal.participant_id,
                )
            )
            self.db.add(ballot)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=409,
                detail="A ballot has already been cast for this question.",
            )
        except SQLAlchemyError as exc:
            logger.error("Database error casting ballot on %s: %s", question_id, exc)
            self.db.rollback()
            raise HTTPException(
                status_code=500,
                detail="Could not record ballot due to a database error.",
            )

        self.audit.record(
            event_id,
            "proxy_ballot_cast" if is_proxy else "ballot_cast",
            entity_type="question",
            entity_id=question.question_id,
            details={
                # Anonymous questions keep the voter out of the trail.
                "participant_id": None
                if question.is_anonymous
                else principal.participant_id,
                "cast_by_id": None if question.is_anonymous else caster.participant_id,
                "weight": weight,
            },
        )
        self.db.commit()
        self.db.refresh(ballot)
        return ballot

    def list_ballots(self, question_id: str) -> List[tally_engine.Ballot]:
        rows = (
            self.db.query(Ballot)
            .filter(Ballot.question_id == question_id)
            .order_by(Ballot.created_at.asc())
            .all()
        )
        return [
            tally_engine.Ballot(
                question_id=row.question_id,
                participant_id=row.participant_id,
                choices=tuple(row.choices or ()),
                weight=row.weight,
            )
            for row in rows
        ]

    def has_voted(self, question_id: str, participant_id: str) -> bool:
        return (
            self.db.query(CastMarker)
            .filter(
                CastMarker.question_id == question_id,
                CastMarker.participant_id == participant_id,
            )
            .first()
            is not None
        )


def get_ballot_manager(db: Session = Depends(get_db)) -> BallotManager:
    """Dependency provider for BallotManager."""
    return BallotManager(db=db)
