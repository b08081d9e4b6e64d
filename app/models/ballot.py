from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    JSON,
    String,
    UniqueConstraint,
    func,
)

from ..database import Base


def generate_ballot_id() -> str:
    return str(uuid4())


class Ballot(Base):
    __tablename__ = "ballots"

    ballot_id = Column(String(36), primary_key=True, default=generate_ballot_id)
    question_id = Column(
        String(36),
        ForeignKey("questions.question_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # NULL for anonymous ballots; the cast marker still records who voted.
    participant_id = Column(
        String(36),
        ForeignKey("participants.participant_id", ondelete="SET NULL"),
        nullable=True,
    )
    # Set only on proxy ballots; participant_id then names the grantor.
    cast_by_id = Column(
        String(36),
        ForeignKey("participants.participant_id", ondelete="SET NULL"),
        nullable=True,
    )
    is_proxy = Column(Boolean, nullable=False, default=False)
    choices = Column(JSON, nullable=False)
    weight = Column(Float, nullable=False, default=1.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CastMarker(Base):
    __tablename__ = "cast_markers"
    __table_args__ = (
        UniqueConstraint("question_id", "participant_id", name="uq_cast_marker"),
    )

    marker_id = Column(String(36), primary_key=True, default=generate_ballot_id)
    question_id = Column(
        String(36),
        ForeignKey("questions.question_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id = Column(
        String(36),
        ForeignKey("participants.participant_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    cast_at = Column(DateTime(timezone=True), server_default=func.now())
