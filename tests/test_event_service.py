from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from flownote.schemas.events import EventCreate, EventUpdate
from flownote.utils.dates import month_range, utcnow
from flownote.utils.exceptions import ForbiddenError, NotFoundError


def _event(title, date, **extra):
    return EventCreate(title=title, date=date, **extra)


async def test_month_includes_both_edges_and_nothing_else(event_service, alice):
    for title, date in [
        ("last of march", datetime(2026, 3, 31, 23, 0)),
        ("first of april", datetime(2026, 4, 1, 0, 0)),
        ("sports day", datetime(2026, 4, 15, 9, 30)),
        ("end of april", datetime(2026, 4, 30, 23, 59, 59)),
        ("first of may", datetime(2026, 5, 1, 0, 0)),
    ]:
        await event_service.create_event(_event(title, date), alice)

    events = await event_service.get_events_for_month("school-1", datetime(2026, 4, 10))

    assert [e.title for e in events] == ["first of april", "sports day", "end of april"]


async def test_month_range_handles_february():
    start, end = month_range(datetime(2028, 2, 10))
    assert start == datetime(2028, 2, 1)
    assert (end.month, end.day) == (2, 29)


async def test_aware_dates_are_stored_as_utc(event_service, alice):
    tokyo = timezone(timedelta(hours=9))
    created = await event_service.create_event(_event("assembly", datetime(2026, 6, 1, 9, 0, tzinfo=tokyo)), alice)

    assert created.date == datetime(2026, 6, 1, 0, 0)


async def test_year_and_school_scoping(event_service, alice, insert_user):
    other_teacher = await insert_user("dan", "Dan", role="teacher", school_id="school-2")
    await event_service.create_event(_event("2026 festival", datetime(2026, 11, 3)), alice)
    await event_service.create_event(_event("2027 festival", datetime(2027, 11, 3)), alice)
    await event_service.create_event(_event("other school", datetime(2026, 7, 1)), other_teacher)

    events = await event_service.get_events_for_year("school-1", 2026)

    assert [e.title for e in events] == ["2026 festival"]


async def test_upcoming_skips_past_and_respects_count(event_service, alice):
    now = utcnow()
    await event_service.create_event(_event("yesterday", now - timedelta(days=1)), alice)
    for days in (3, 1, 2):
        await event_service.create_event(_event(f"in {days} days", now + timedelta(days=days)), alice)

    upcoming = await event_service.get_upcoming_events("school-1", count=2)

    assert [e.title for e in upcoming] == ["in 1 days", "in 2 days"]


async def test_search_without_start_is_newest_first(event_service, alice):
    await event_service.create_event(_event("Open class", datetime(2026, 5, 1), location="Gym"), alice)
    await event_service.create_event(_event("Concert", datetime(2026, 6, 1), description="Bring recorders"), alice)
    await event_service.create_event(_event("Open day", datetime(2026, 7, 1)), alice)

    assert [e.title for e in await event_service.search_events("school-1", "open")] == ["Open day", "Open class"]
    assert [e.title for e in await event_service.search_events("school-1", "GYM")] == ["Open class"]
    assert [e.title for e in await event_service.search_events("school-1", "recorder")] == ["Concert"]


async def test_search_with_range_is_ascending(event_service, alice):
    for month in (4, 5, 6, 7):
        await event_service.create_event(_event(f"meeting {month}", datetime(2026, month, 10)), alice)

    events = await event_service.search_events(
        "school-1", "meeting", start_date=datetime(2026, 5, 1), end_date=datetime(2026, 6, 30)
    )

    assert [e.title for e in events] == ["meeting 5", "meeting 6"]


async def test_parents_cannot_create_events(event_service, bob):
    with pytest.raises(ForbiddenError):
        await event_service.create_event(_event("party", datetime(2026, 8, 1)), bob)


async def test_only_creator_updates_and_deletes(event_service, alice, insert_user):
    other = await insert_user("erin", "Erin", role="teacher")
    created = await event_service.create_event(_event("field trip", datetime(2026, 9, 1), items=["lunch", " "]), alice)
    assert created.items == ["lunch"]

    with pytest.raises(ForbiddenError):
        await event_service.update_event(created.id, other.id, EventUpdate(title="hijacked"))
    with pytest.raises(ForbiddenError):
        await event_service.delete_event(created.id, other.id)

    updated = await event_service.update_event(
        created.id, alice.id, EventUpdate(title="Field trip", date=datetime(2026, 9, 2), items=["lunch", "hat"])
    )
    assert (updated.title, updated.date, updated.items) == ("Field trip", datetime(2026, 9, 2), ["lunch", "hat"])

    await event_service.delete_event(created.id, alice.id)
    with pytest.raises(NotFoundError):
        await event_service.get_event(created.id)


def test_blank_titles_are_rejected():
    with pytest.raises(ValidationError):
        EventCreate(title="   ", date=datetime(2026, 8, 1))
    with pytest.raises(ValidationError):
        EventUpdate(title=" \t ")


async def test_titles_are_stored_trimmed(event_service, alice):
    created = await event_service.create_event(_event("  Sports day ", datetime(2026, 8, 1)), alice)
    updated = await event_service.update_event(created.id, alice.id, EventUpdate(title=" Sports day 2 "))

    assert created.title == "Sports day"
    assert updated.title == "Sports day 2"
