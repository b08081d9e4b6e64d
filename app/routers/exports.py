from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse, Response

from app.data.audit_manager import AuditLogManager
from app.data.event_manager import EventManager, get_event_manager
from app.schemas.event import AuditLogResponse
from app.services.results_manager import ResultsManager, get_results_manager


router = APIRouter(prefix="/api/events/{event_id}", tags=["exports"])


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/export/results.csv")
async def export_results(
    event_id: str,
    results: ResultsManager = Depends(get_results_manager),
):
    return _csv_response(results.results_csv(event_id), f"results-{event_id}.csv")


@router.get("/export/participants.csv")
async def export_participants(
    event_id: str,
    results: ResultsManager = Depends(get_results_manager),
):
    return _csv_response(
        results.participants_csv(event_id), f"participants-{event_id}.csv"
    )


@router.get("/export/minutes.txt", response_class=PlainTextResponse)
async def export_minutes(
    event_id: str,
    results: ResultsManager = Depends(get_results_manager),
):
    return PlainTextResponse(results.minutes(event_id))


@router.get("/audit", response_model=List[AuditLogResponse])
async def list_audit_entries(
    event_id: str,
    limit: int = Query(100, ge=1, le=1000),
    events: EventManager = Depends(get_event_manager),
):
    events.get_event(event_id)
    return AuditLogManager(events.db).list_entries(event_id, limit=limit)
