from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.event import AuditLogEntry

audit_logger = logging.getLogger("audit")


def _sanitize_details(details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not details:
        return {}
    sanitized: Dict[str, Any] = {}
    for key, value in details.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            sanitized[key] = value
        elif isinstance(value, (list, dict)):
            sanitized[key] = value
        else:
            sanitized[key] = str(value)
    return sanitized


class AuditLogManager:
    """Append-only record of state-changing actions on an event."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        event_id: str,
        action: str,
        *,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        commit: bool = False,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            event_id=event_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=_sanitize_details(details),
        )
        self.db.add(entry)
        if commit:
            self.db.commit()
        audit_logger.info(
            "Audit action: %s",
            {
                "event": event_id,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
            },
        )
        return entry

    def list_entries(self, event_id: str, limit: int = 100) -> List[AuditLogEntry]:
        return (
            self.db.query(AuditLogEntry)
            .filter(AuditLogEntry.event_id == event_id)
            .order_by(AuditLogEntry.created_at.desc())
            .limit(max(1, limit))
            .all()
        )
