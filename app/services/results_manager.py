from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from app.config.loader import get_export_settings, get_tally_settings
from app.data.ballot_manager import BallotManager
from app.data.event_manager import EventManager
from app.data.participant_manager import ParticipantManager
from app.database import get_db
from app.models.event import Event, Question
from app.schemas.event import QuestionState
from app.services import decision_evaluator, results_export, tally_engine
from app.services.decision_evaluator import (
    QuorumBasis,
    QuorumStatus,
    QuorumType,
    ThresholdType,
    Verdict,
)

logger = logging.getLogger("app.results")


def verdict_from_payload(payload: Dict[str, Any]) -> Verdict:
    """Rebuild a stored result snapshot into a Verdict."""
    tally = tally_engine.TallyResult(**payload["tally"])
    threshold: Optional[str] = payload.get("threshold_type")
    quorum_payload = payload.get("quorum")
    quorum = None
    if quorum_payload:
        quorum = QuorumStatus(
            **{
                **quorum_payload,
                "quorum_type": QuorumType(quorum_payload["quorum_type"]),
                "basis": QuorumBasis(quorum_payload["basis"]),
            }
        )
    return Verdict(
        is_accepted=bool(payload["is_accepted"]),
        threshold_type=ThresholdType(threshold) if threshold else None,
        tally=tally,
        quorum=quorum,
    )


class ResultsManager:
    """Computes verdicts and exports from stored ballots and the live roster."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.events = EventManager(db)
        self.participants = ParticipantManager(db)
        self.ballots = BallotManager(db)

    def compute_verdict(self, event: Event, question: Question) -> Verdict:
        """
        Tally a question against the current roster.

        Every ballot speaks for one principal, proxy ballots included, so a
        weighted question counts the weight recorded on each ballot (the
        principal's own weight when it was cast) and measures participation
        and the absolute rule against the roster's total weight. Delegations
        only decide who may cast a principal's ballot and who counts as
        present for quorum.
        """
        config = self.events.question_config(event, question)
        roster, resolved = self.participants.resolve_weights(event.event_id)
        quorum = decision_evaluator.quorum_status(
            roster, config, represented=resolved.represented
        )
        if question.weighted:
            eligible: float = sum(
                tally_engine.safe_weight(participant.weight) for participant in roster
            )
        else:
            eligible = len(roster)

        tally = tally_engine.tally(
            self.ballots.list_ballots(question.question_id),
            config.abstain_counts,
            eligible=eligible,
            weighted=bool(question.weighted),
        )
        return decision_evaluator.evaluate(
            tally,
            config,
            eligible,
            quorum=quorum,
            two_thirds_mode=get_tally_settings()["two_thirds_mode"],
        )

    def question_verdict(self, event_id: str, question_id: str) -> Verdict:
        event = self.events.get_event(event_id)
        question = self.events.get_question(event_id, question_id)
        if question.state == QuestionState.CLOSED.value and question.result:
            return verdict_from_payload(question.result)
        return self.compute_verdict(event, question)

    def activate(self, event_id: str, question_id: str) -> Dict[str, Any]:
        event = self.events.get_event(event_id)
        question = self.events.activate_question(event_id, question_id)
        quorum = self.participants.quorum(event)
        warnings: List[str] = []
        if not quorum.is_met:
            warnings.append(
                f"Quorum is not met: {quorum.present_count} of"
                f" {quorum.total_count} participants present."
            )
            logger.warning(
                "Question %s activated without quorum in event %s",
                question_id,
                event_id,
            )
        return {"question": question, "quorum_met": quorum.is_met, "warnings": warnings}

    def close(self, event_id: str, question_id: str) -> Question:
        event = self.events.get_event(event_id)
        question = self.events.get_question(event_id, question_id)
        if question.state == QuestionState.ACTIVE.value:
            verdict = self.compute_verdict(event, question)
            result = verdict.to_payload()
        else:
            # close_question rejects anything but an active question
            result = {}
        return self.events.close_question(event_id, question_id, result)

    # Exports

    def _question_reports(self, event_id: str) -> List[results_export.QuestionReport]:
        reports = []
        for question in self.events.list_questions(event_id, QuestionState.CLOSED):
            if not question.result:
                continue
            reports.append(
                results_export.QuestionReport(
                    text=question.text,
                    verdict=verdict_from_payload(question.result),
                    activated_at=question.activated_at,
                    closed_at=question.closed_at,
                )
            )
        return reports

    def _participant_reports(
        self, event_id: str
    ) -> List[results_export.ParticipantReport]:
        return [
            results_export.ParticipantReport(
                name=participant.name,
                email=participant.email,
                weight=tally_engine.safe_weight(participant.weight),
                is_present=bool(participant.is_present),
                checked_in_at=participant.joined_at,
            )
            for participant in self.participants.list_participants(event_id)
        ]

    def results_csv(self, event_id: str) -> str:
        self.events.get_event(event_id)
        settings = get_export_settings()
        return results_export.results_csv(
            self._question_reports(event_id),
            delimiter=settings["csv_delimiter"],
            places=settings["decimal_places"],
        )

    def participants_csv(self, event_id: str) -> str:
        self.events.get_event(event_id)
        return results_export.participants_csv(
            self._participant_reports(event_id),
            delimiter=get_export_settings()["csv_delimiter"],
        )

    def minutes(self, event_id: str) -> str:
        event = self.events.get_event(event_id)
        return results_export.minutes_text(
            event.name,
            self._question_reports(event_id),
            self._participant_reports(event_id),
            quorum=self.participants.quorum(event),
            places=get_export_settings()["decimal_places"],
        )


def get_results_manager(db: Session = Depends(get_db)) -> ResultsManager:
    """Dependency provider for ResultsManager."""
    return ResultsManager(db=db)
