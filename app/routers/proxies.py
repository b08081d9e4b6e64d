from typing import List

from fastapi import APIRouter, Depends, Query

from app.data.event_manager import EventManager, get_event_manager
from app.data.participant_manager import ParticipantManager, get_participant_manager
from app.schemas.event import ProxyCreate, ProxyResponse, RepresentationEntry


router = APIRouter(prefix="/api/events/{event_id}/proxies", tags=["proxies"])


@router.post("", response_model=ProxyResponse, status_code=201)
async def grant_proxy(
    event_id: str,
    payload: ProxyCreate,
    events: EventManager = Depends(get_event_manager),
    participants: ParticipantManager = Depends(get_participant_manager),
):
    events.get_event(event_id)
    return participants.grant_proxy(event_id, payload)


@router.get("", response_model=List[ProxyResponse])
async def list_proxies(
    event_id: str,
    active_only: bool = Query(True),
    events: EventManager = Depends(get_event_manager),
    participants: ParticipantManager = Depends(get_participant_manager),
):
    events.get_event(event_id)
    return participants.list_proxies(event_id, active_only=active_only)


@router.get("/representation", response_model=List[RepresentationEntry])
async def get_representation(
    event_id: str,
    events: EventManager = Depends(get_event_manager),
    participants: ParticipantManager = Depends(get_participant_manager),
):
    """Present holders and the absent participants whose votes they carry."""
    events.get_event(event_id)
    return list(participants.representation(event_id).values())


@router.post("/{proxy_id}/revoke", response_model=ProxyResponse)
async def revoke_proxy(
    event_id: str,
    proxy_id: str,
    participants: ParticipantManager = Depends(get_participant_manager),
):
    return participants.revoke_proxy(event_id, proxy_id)
