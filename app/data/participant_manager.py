from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Dict, List, Optional, Tuple

from fastapi import Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config.loader import get_proxy_settings
from ..database import get_db
from ..models.event import Event, Participant, Proxy
from ..schemas.event import ParticipantCreate, ProxyCreate
from ..services import decision_evaluator
from ..services.decision_evaluator import QuestionConfig, QuorumStatus
from ..services.proxy_resolver import (
    Proxy as ProxySnapshot,
    ProxyValidationError,
    ResolvedWeights,
    active_proxies,
    resolve_effective_weights,
    validate_new_proxy,
)
from .audit_manager import AuditLogManager

logger = logging.getLogger("app.participants")


def _snapshot(participant: Participant) -> decision_evaluator.Participant:
    return decision_evaluator.Participant(
        participant_id=participant.participant_id,
        weight=participant.weight,
        is_present=bool(participant.is_present),
    )


def _proxy_snapshot(proxy: Proxy) -> ProxySnapshot:
    return ProxySnapshot(
        grantor_id=proxy.grantor_id,
        grantee_id=proxy.grantee_id,
        meeting_id=proxy.event_id,
        valid_from=proxy.valid_from,
        valid_until=proxy.valid_until,
        proxy_id=proxy.proxy_id,
    )


class ParticipantManager:
    """Roster, presence and proxy bookkeeping for an event."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.audit = AuditLogManager(db)

    def add_participant(self, event_id: str, payload: ParticipantCreate) -> Participant:
        participant = Participant(
            event_id=event_id,
            name=payload.name.strip(),
            email=payload.email,
            weight=payload.weight,
            is_present=payload.is_present,
            joined_at=datetime.now(timezone.utc) if payload.is_present else None,
        )
        try:
            self.db.add(participant)
            self.db.flush()
            self.audit.record(
                event_id,
                "participant_added",
                entity_type="participant",
                entity_id=participant.participant_id,
                details={"weight": participant.weight},
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            logger.error("Database error adding participant to %s: %s", event_id, exc)
            self.db.rollback()
            raise HTTPException(
                status_code=500,
                detail="Could not add participant due to a database error.",
            )
        self.db.refresh(participant)
        return participant

    def list_participants(self, event_id: str) -> List[Participant]:
        return (
            self.db.query(Participant)
            .filter(Participant.event_id == event_id)
            .order_by(Participant.created_at.asc(), Participant.name.asc())
            .all()
        )

    def get_participant(self, event_id: str, participant_id: str) -> Participant:
        participant = (
            self.db.query(Participant)
            .filter(
                Participant.event_id == event_id,
                Participant.participant_id == participant_id,
            )
            .one_or_none()
        )
        if participant is None:
            raise HTTPException(status_code=404, detail="Participant not found")
        return participant

    def set_presence(
        self, event_id: str, participant_id: str, is_present: bool
    ) -> Participant:
        participant = self.get_participant(event_id, participant_id)
        participant.is_present = is_present
        if is_present:
            participant.joined_at = datetime.now(timezone.utc)
        self.audit.record(
            event_id,
            "participant_checked_in" if is_present else "participant_checked_out",
            entity_type="participant",
            entity_id=participant_id,
        )
        self.db.commit()
        self.db.refresh(participant)
        return participant

    # Proxies

    def list_proxies(
        self, event_id: str, *, active_only: bool = False, at: Optional[datetime] = None
    ) -> List[Proxy]:
        rows = (
            self.db.query(Proxy)
            .filter(Proxy.event_id == event_id)
            .order_by(Proxy.valid_from.asc(), Proxy.proxy_id.asc())
            .all()
        )
        if not active_only:
            return rows
        live = {
            snapshot.proxy_id
            for snapshot in active_proxies(
                [_proxy_snapshot(row) for row in rows], at=at, meeting_id=event_id
            )
        }
        return [row for row in rows if row.proxy_id in live]

    def grant_proxy(self, event_id: str, payload: ProxyCreate) -> Proxy:
        self.get_participant(event_id, payload.grantor_id)
        self.get_participant(event_id, payload.grantee_id)
        now = datetime.now(timezone.utc)
        candidate = ProxySnapshot(
            grantor_id=payload.grantor_id,
            grantee_id=payload.grantee_id,
            meeting_id=event_id,
            valid_from=payload.valid_from or now,
            valid_until=payload.valid_until,
        )
        existing = [_proxy_snapshot(row) for row in self.list_proxies(event_id)]
        try:
            validate_new_proxy(
                candidate,
                existing,
                at=candidate.valid_from,
                max_proxies_per_holder=get_proxy_settings()["max_per_holder"],
            )
        except ProxyValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

        proxy = Proxy(
            event_id=event_id,
            grantor_id=candidate.grantor_id,
            grantee_id=candidate.grantee_id,
            valid_from=candidate.valid_from,
            valid_until=candidate.valid_until,
            document_url=payload.document_url,
        )
        self.db.add(proxy)
        self.db.flush()
        self.audit.record(
            event_id,
            "proxy_granted",
            entity_type="proxy",
            entity_id=proxy.proxy_id,
            details={"grantor_id": proxy.grantor_id, "grantee_id": proxy.grantee_id},
        )
        self.db.commit()
        self.db.refresh(proxy)
        logger.info(
            "Proxy %s granted in event %s: %s -> %s",
            proxy.proxy_id,
            event_id,
            proxy.grantor_id,
            proxy.grantee_id,
        )
        return proxy

    def revoke_proxy(self, event_id: str, proxy_id: str) -> Proxy:
        proxy = (
            self.db.query(Proxy)
            .filter(Proxy.event_id == event_id, Proxy.proxy_id == proxy_id)
            .one_or_none()
        )
        if proxy is None:
            raise HTTPException(status_code=404, detail="Proxy not found")
        now = datetime.now(timezone.utc)
        if proxy.valid_until is not None and _as_aware(proxy.valid_until) <= now:
            raise HTTPException(status_code=409, detail="Proxy is already revoked.")
        proxy.valid_until = now
        self.audit.record(
            event_id, "proxy_revoked", entity_type="proxy", entity_id=proxy_id
        )
        self.db.commit()
        self.db.refresh(proxy)
        return proxy

    # Weights and quorum

    def resolve_weights(
        self, event_id: str, at: Optional[datetime] = None
    ) -> Tuple[List[decision_evaluator.Participant], ResolvedWeights]:
        roster = [_snapshot(row) for row in self.list_participants(event_id)]
        proxies = [_proxy_snapshot(row) for row in self.list_proxies(event_id)]
        resolved = resolve_effective_weights(
            roster,
            proxies,
            at=at,
            meeting_id=event_id,
            max_proxies_per_holder=get_proxy_settings()["max_per_holder"],
        )
        return roster, resolved

    def quorum(self, event: Event, at: Optional[datetime] = None) -> QuorumStatus:
        roster, resolved = self.resolve_weights(event.event_id, at=at)
        config = QuestionConfig(
            quorum_type=event.quorum_type,
            quorum_value=event.quorum_value or 0,
            quorum_basis=event.quorum_basis,
        )
        return decision_evaluator.quorum_status(
            roster, config, represented=resolved.represented
        )

    def representation(self, event_id: str) -> Dict[str, Dict[str, object]]:
        """Who carries whose vote right now, keyed by holder."""
        _, resolved = self.resolve_weights(event_id)
        holders: Dict[str, Dict[str, object]] = {}
        for proxy in resolved.applied:
            entry = holders.setdefault(
                proxy.grantee_id,
                {
                    "grantee_id": proxy.grantee_id,
                    "grantor_ids": [],
                    "effective_weight": resolved.effective_weights.get(
                        proxy.grantee_id, 0.0
                    ),
                },
            )
            entry["grantor_ids"].append(proxy.grantor_id)
        return holders


def _as_aware(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def get_participant_manager(db: Session = Depends(get_db)) -> ParticipantManager:
    """Dependency provider for ParticipantManager."""
    return ParticipantManager(db=db)
