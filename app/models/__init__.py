# Import models to make them accessible via app.models
# and ensure they are registered with SQLAlchemy's Base metadata
from .event import Event, Participant, Question, Proxy, AuditLogEntry
from .ballot import Ballot, CastMarker

__all__ = [
    "Event",
    "Participant",
    "Question",
    "Proxy",
    "AuditLogEntry",
    "Ballot",
    "CastMarker",
]
