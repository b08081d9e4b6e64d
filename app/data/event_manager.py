from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config.loader import get_tally_settings
from ..database import get_db
from ..models.event import Event, Question
from ..schemas.event import EventCreate, QuestionCreate, QuestionState
from ..services.decision_evaluator import QuestionConfig
from .audit_manager import AuditLogManager

logger = logging.getLogger("app.events")


class EventManager:
    """Manages events and their questions using SQLAlchemy."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.audit = AuditLogManager(db)

    def create_event(self, payload: EventCreate) -> Event:
        try:
            event = Event(
                name=payload.name,
                description=payload.description,
                quorum_type=payload.quorum_type.value,
                quorum_value=payload.quorum_value,
                quorum_basis=payload.quorum_basis.value,
            )
            self.db.add(event)
            self.db.flush()
            self.audit.record(
                event.event_id,
                "event_created",
                entity_type="event",
                entity_id=event.event_id,
                details={
                    "quorum_type": event.quorum_type,
                    "quorum_value": event.quorum_value,
                },
            )
            self.db.commit()
            self.db.refresh(event)
            logger.info("Created event %s (%s)", event.name, event.event_id)
            return event
        except SQLAlchemyError as exc:
            logger.error("Database error creating event: %s", exc)
            self.db.rollback()
            raise HTTPException(
                status_code=500,
                detail="Could not create event due to a database error.",
            )

    def get_event(self, event_id: str) -> Event:
        event = self.db.query(Event).filter(Event.event_id == event_id).one_or_none()
        if event is None:
            raise HTTPException(status_code=404, detail="Event not found")
        return event

    def list_questions(
        self, event_id: str, state: Optional[QuestionState] = None
    ) -> List[Question]:
        query = self.db.query(Question).filter(Question.event_id == event_id)
        if state is not None:
            query = query.filter(Question.state == state.value)
        return query.order_by(Question.order_index.asc()).all()

    def add_question(self, event_id: str, payload: QuestionCreate) -> Question:
        self.get_event(event_id)
        abstain_counts = payload.abstain_counts
        if abstain_counts is None:
            abstain_counts = get_tally_settings()["default_abstain_counts"]
        next_index = len(self.list_questions(event_id))
        question = Question(
            event_id=event_id,
            text=payload.text,
            threshold_type=payload.threshold_type.value,
            abstain_counts=bool(abstain_counts),
            is_anonymous=payload.is_anonymous,
            weighted=payload.weighted,
            state=QuestionState.DRAFT.value,
            order_index=next_index,
        )
        self.db.add(question)
        self.db.flush()
        self.audit.record(
            event_id,
            "question_created",
            entity_type="question",
            entity_id=question.question_id,
            details={"threshold_type": question.threshold_type},
        )
        self.db.commit()
        self.db.refresh(question)
        return question

    def get_question(self, event_id: str, question_id: str) -> Question:
        question = (
            self.db.query(Question)
            .filter(Question.event_id == event_id, Question.question_id == question_id)
            .one_or_none()
        )
        if question is None:
            raise HTTPException(status_code=404, detail="Question not found")
        return question

    def activate_question(self, event_id: str, question_id: str) -> Question:
        question = self.get_question(event_id, question_id)
        if question.state != QuestionState.DRAFT.value:
            raise HTTPException(
                status_code=409, detail="Only draft questions can be activated."
            )
        question.state = QuestionState.ACTIVE.value
        question.activated_at = datetime.now(timezone.utc)
        self.audit.record(
            event_id,
            "question_activated",
            entity_type="question",
            entity_id=question.question_id,
        )
        self.db.commit()
        self.db.refresh(question)
        return question

    def close_question(
        self, event_id: str, question_id: str, result: Dict[str, Any]
    ) -> Question:
        """Stamp a question closed and keep the final result snapshot."""
        question = self.get_question(event_id, question_id)
        if question.state != QuestionState.ACTIVE.value:
            raise HTTPException(
                status_code=409, detail="Only active questions can be closed."
            )
        question.state = QuestionState.CLOSED.value
        question.closed_at = datetime.now(timezone.utc)
        question.result = result
        self.audit.record(
            event_id,
            "question_closed",
            entity_type="question",
            entity_id=question.question_id,
            details={"is_accepted": result.get("is_accepted")},
        )
        self.db.commit()
        self.db.refresh(question)
        return question

    @staticmethod
    def question_config(event: Event, question: Question) -> QuestionConfig:
        return QuestionConfig(
            threshold_type=question.threshold_type,
            abstain_counts=bool(question.abstain_counts),
            quorum_type=event.quorum_type,
            quorum_value=event.quorum_value or 0,
            quorum_basis=event.quorum_basis,
        )


def get_event_manager(db: Session = Depends(get_db)) -> EventManager:
    """Dependency provider for EventManager."""
    return EventManager(db=db)
