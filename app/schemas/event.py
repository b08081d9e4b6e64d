from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from app.services.decision_evaluator import QuorumBasis, QuorumType, ThresholdType


class QuestionState(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    quorum_type: QuorumType = QuorumType.NONE
    quorum_value: float = Field(0, ge=0)
    quorum_basis: QuorumBasis = QuorumBasis.HEADCOUNT

    @model_validator(mode="after")
    def _check_quorum_value(self) -> "EventCreate":
        if self.quorum_type is QuorumType.NONE:
            self.quorum_value = 0
        elif self.quorum_type is QuorumType.PERCENTAGE and self.quorum_value > 100:
            raise ValueError("Percentage quorum must be between 0 and 100.")
        return self


class EventResponse(BaseModel):
    event_id: str
    name: str
    description: Optional[str] = None
    quorum_type: QuorumType
    quorum_value: float
    quorum_basis: QuorumBasis
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ParticipantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = None
    weight: float = Field(1.0, ge=0)
    is_present: bool = False


class ParticipantResponse(BaseModel):
    participant_id: str
    event_id: str
    name: str
    email: Optional[str] = None
    weight: float
    is_present: bool
    joined_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PresenceUpdate(BaseModel):
    is_present: bool


class QuestionCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)
    threshold_type: ThresholdType = ThresholdType.SIMPLE_MAJORITY
    abstain_counts: Optional[bool] = None
    is_anonymous: bool = False
    weighted: bool = False


class QuestionResponse(BaseModel):
    question_id: str
    event_id: str
    text: str
    threshold_type: ThresholdType
    abstain_counts: bool
    is_anonymous: bool
    weighted: bool
    state: str
    order_index: int
    activated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class QuestionTransitionResponse(BaseModel):
    question: QuestionResponse
    quorum_met: bool
    warnings: List[str] = Field(default_factory=list)


class BallotCastRequest(BaseModel):
    participant_id: str
    choices: List[str] = Field(..., min_length=1)
    proxy_for_id: Optional[str] = None


class BallotCastResponse(BaseModel):
    question_id: str
    accepted: bool = True
    weight: float
    is_proxy: bool = False


class TallyPayload(BaseModel):
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
    weighted: bool


class QuorumPayload(BaseModel):
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


class QuestionResultResponse(BaseModel):
    question_id: str
    state: str
    is_accepted: bool
    threshold_type: Optional[ThresholdType] = None
    tally: TallyPayload
    quorum: Optional[QuorumPayload] = None


class ProxyCreate(BaseModel):
    grantor_id: str
    grantee_id: str
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    document_url: Optional[str] = None


class ProxyResponse(BaseModel):
    proxy_id: str
    event_id: str
    grantor_id: str
    grantee_id: str
    valid_from: datetime
    valid_until: Optional[datetime] = None
    document_url: Optional[str] = None

    model_config = {"from_attributes": True}


class RepresentationEntry(BaseModel):
    grantee_id: str
    grantor_ids: List[str] = Field(default_factory=list)
    effective_weight: float


class AuditLogResponse(BaseModel):
    entry_id: str
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
