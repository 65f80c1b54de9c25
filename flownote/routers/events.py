from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from flownote.schemas.events import Event, EventCreate, EventUpdate
from flownote.schemas.user import UserPublic
from flownote.services.event_service import EventService
from flownote.utils.dates import utcnow
from flownote.utils.dependencies import get_current_user, get_event_service, school_of
from flownote.utils.exceptions import NotFoundError


router = APIRouter(prefix="/events", tags=["calendar"])


@router.get("", response_model=List[Event], name="list_events")
async def list_events(current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    return await service.get_events_for_month(school_of(current_user), utcnow())


@router.post("", response_model=Event, status_code=status.HTTP_201_CREATED)
async def create_event(payload: EventCreate, current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    return await service.create_event(payload, current_user)


@router.get("/month", response_model=List[Event])
async def events_for_month(date: Optional[datetime] = None, current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    return await service.get_events_for_month(school_of(current_user), date or utcnow())


@router.get("/year/{year}", response_model=List[Event])
async def events_for_year(year: int, current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    return await service.get_events_for_year(school_of(current_user), year)


@router.get("/today", response_model=List[Event])
async def todays_events(current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    return await service.get_todays_events(school_of(current_user))


@router.get("/upcoming", response_model=List[Event])
async def upcoming_events(count: int = Query(5, ge=1, le=50), current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    return await service.get_upcoming_events(school_of(current_user), count)


@router.get("/search", response_model=List[Event])
async def search_events(q: str = "", start: Optional[datetime] = None, end: Optional[datetime] = None, current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    return await service.search_events(school_of(current_user), q, start, end)


@router.get("/{event_id}", response_model=Event)
async def get_event(event_id: str, request: Request, current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    try:
        found = await service.get_event(event_id)
    except NotFoundError:
        return RedirectResponse(request.url_for("list_events"), status_code=status.HTTP_303_SEE_OTHER)
    if found.school_id != current_user.school_id:
        return RedirectResponse(request.url_for("list_events"), status_code=status.HTTP_303_SEE_OTHER)
    return found


@router.patch("/{event_id}", response_model=Event)
async def update_event(event_id: str, payload: EventUpdate, current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    return await service.update_event(event_id, current_user.id, payload)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(event_id: str, current_user: UserPublic = Depends(get_current_user), service: EventService = Depends(get_event_service)):
    await service.delete_event(event_id, current_user.id)
