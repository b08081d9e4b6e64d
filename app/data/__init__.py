"""
Data access layer providing managers for events, participants and ballots.
Each manager owns its own persistence and audit entries.
"""

from .audit_manager import AuditLogManager
from .ballot_manager import BallotManager
from .event_manager import EventManager
from .participant_manager import ParticipantManager

__all__ = ["AuditLogManager", "BallotManager", "EventManager", "ParticipantManager"]
