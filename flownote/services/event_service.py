import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from bson import ObjectId

from flownote.models.event import EventDocument
from flownote.repositories.event_repository import EventRepository
from flownote.schemas.events import Event, EventCreate, EventUpdate
from flownote.schemas.user import UserPublic
from flownote.utils.dates import day_range, month_range, to_naive_utc, utcnow, year_range
from flownote.utils.exceptions import ForbiddenError, NotFoundError
from flownote.utils.live_query import LiveQuery
from flownote.utils.realtime_bus import events_channel, get_bus, notify


logger = logging.getLogger(__name__)

ORGANIZER_ROLES = ("teacher", "admin")


class EventService:

    def __init__(self, event_repo: EventRepository, bus=None) -> None:
        self._event_repo = event_repo
        self._bus = bus

    async def _get_bus(self):
        if self._bus is None:
            self._bus = await get_bus()
        return self._bus

    async def _changed(self, school_id: str, change: str, event_id: str) -> None:
        await notify(await self._get_bus(), [events_channel(school_id)], change, event_id=event_id)

    async def create_event(self, payload: EventCreate, creator: UserPublic) -> Event:
        if creator.role not in ORGANIZER_ROLES:
            raise ForbiddenError("Only teachers can create events")
        if not creator.school_id:
            raise ValueError("Creator is not attached to a school")
        event_id = str(ObjectId())
        now = utcnow()
        doc: EventDocument = {
            "_id": event_id,
            "title": payload.title.strip(),
            "description": payload.description,
            "date": to_naive_utc(payload.date),
            "location": payload.location,
            "items": [i.strip() for i in payload.items if i.strip()],
            "school_id": creator.school_id,
            "created_by": creator.id,
            "created_at": now,
            "updated_at": now,
        }
        created = await self._event_repo.insert(doc)
        logger.info("Event %s created for school %s", event_id, creator.school_id)
        await self._changed(creator.school_id, "event_created", event_id)
        return created

    async def get_event(self, event_id: str) -> Event:
        found = await self._event_repo.get(event_id)
        if found is None:
            raise NotFoundError("event", event_id)
        return found

    async def get_events_for_month(self, school_id: str, date: datetime) -> List[Event]:
        start, end = month_range(to_naive_utc(date))
        return await self._event_repo.find_in_range(school_id, start, end)

    async def get_events_for_year(self, school_id: str, year: int) -> List[Event]:
        start, end = year_range(year)
        return await self._event_repo.find_in_range(school_id, start, end)

    async def get_todays_events(self, school_id: str) -> List[Event]:
        start, end = day_range(utcnow())
        return await self._event_repo.find_in_range(school_id, start, end)

    async def get_upcoming_events(self, school_id: str, count: int = 5) -> List[Event]:
        return await self._event_repo.find_in_range(school_id, start=utcnow(), limit=count)

    async def search_events(
        self,
        school_id: str,
        term: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[Event]:
        if start_date is None:
            # without a lower bound the newest come first
            events = await self._event_repo.find_in_range(school_id, descending=True)
        else:
            events = await self._event_repo.find_in_range(
                school_id,
                to_naive_utc(start_date),
                to_naive_utc(end_date) if end_date else None,
            )
        term = (term or "").strip().lower()
        if not term:
            return events
        return [
            e for e in events
            if term in e.title.lower()
            or term in e.description.lower()
            or (e.location and term in e.location.lower())
        ]

    async def _owned(self, event_id: str, editor_id: str) -> Event:
        found = await self.get_event(event_id)
        if found.created_by != editor_id:
            raise ForbiddenError("Only the creator can change this event")
        return found

    async def update_event(self, event_id: str, editor_id: str, updates: EventUpdate) -> Event:
        existing = await self._owned(event_id, editor_id)
        fields = updates.model_dump(exclude_unset=True, exclude_none=True)
        if "date" in fields:
            fields["date"] = to_naive_utc(fields["date"])
        updated = await self._event_repo.update_fields(event_id, fields)
        if updated is None:
            raise NotFoundError("event", event_id)
        await self._changed(existing.school_id, "event_updated", event_id)
        return updated

    async def delete_event(self, event_id: str, editor_id: str) -> None:
        existing = await self._owned(event_id, editor_id)
        await self._event_repo.delete(event_id)
        await self._changed(existing.school_id, "event_deleted", event_id)

    @asynccontextmanager
    async def watch_month(
        self, school_id: str, date: datetime, callback: Callable[[List[Event]], Awaitable[None]]
    ) -> AsyncIterator[LiveQuery]:
        bus = await self._get_bus()
        async with LiveQuery(
            bus, [events_channel(school_id)], lambda: self.get_events_for_month(school_id, date), callback
        ) as live:
            yield live
