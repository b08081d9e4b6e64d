from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


def generate_id() -> str:
    return str(uuid4())


class Event(Base):
    __tablename__ = "events"

    event_id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    quorum_type = Column(String, default="none", nullable=False)
    quorum_value = Column(Float, default=0, nullable=False)
    quorum_basis = Column(String, default="headcount", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    participants = relationship(
        "Participant",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Participant.created_at",
    )
    questions = relationship(
        "Question",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Question.order_index",
    )


class Participant(Base):
    __tablename__ = "participants"

    participant_id = Column(String(36), primary_key=True, default=generate_id)
    event_id = Column(
        String(36),
        ForeignKey("events.event_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    weight = Column(Float, nullable=False, default=1.0)
    is_present = Column(Boolean, nullable=False, default=False)
    joined_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="participants")


class Question(Base):
    __tablename__ = "questions"

    question_id = Column(String(36), primary_key=True, default=generate_id)
    event_id = Column(
        String(36),
        ForeignKey("events.event_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = Column(Text, nullable=False)
    threshold_type = Column(String, nullable=False, default="simple_majority")
    abstain_counts = Column(Boolean, nullable=False, default=False)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    weighted = Column(Boolean, nullable=False, default=False)
    state = Column(String, nullable=False, default="draft")  # draft, active, closed
    order_index = Column(Integer, nullable=False, default=0)
    result = Column(JSON, nullable=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="questions")


class Proxy(Base):
    __tablename__ = "proxies"

    proxy_id = Column(String(36), primary_key=True, default=generate_id)
    event_id = Column(
        String(36),
        ForeignKey("events.event_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grantor_id = Column(
        String(36),
        ForeignKey("participants.participant_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grantee_id = Column(
        String(36),
        ForeignKey("participants.participant_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    document_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AuditLogEntry(Base):
    __tablename__ = "audit_log"

    entry_id = Column(String(36), primary_key=True, default=generate_id)
    event_id = Column(
        String(36),
        ForeignKey("events.event_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action = Column(String(64), nullable=False)
    entity_type = Column(String(32), nullable=True)
    entity_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
